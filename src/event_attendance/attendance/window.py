from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from ..core.constants import DEFAULT_CHECK_IN_CLOSES_AFTER_MINUTES, DEFAULT_CHECK_IN_OPENS_BEFORE_MINUTES
from ..events.model import Event


@dataclass(frozen=True)
class CheckInWindow:
    """Interval around an event's schedule during which check-in is allowed."""

    opens_before_minutes: int = DEFAULT_CHECK_IN_OPENS_BEFORE_MINUTES
    closes_after_minutes: int = DEFAULT_CHECK_IN_CLOSES_AFTER_MINUTES

    def bounds(self, event: Event) -> tuple[datetime, datetime]:
        return (
            event.start_at - timedelta(minutes=self.opens_before_minutes),
            event.end_at + timedelta(minutes=self.closes_after_minutes),
        )

    def contains(self, event: Event, now: datetime) -> bool:
        opens_at, closes_at = self.bounds(event)
        return opens_at <= now <= closes_at
