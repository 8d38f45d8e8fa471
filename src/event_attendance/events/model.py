from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Event:
    """Domain entity: an event attendees check in to."""

    event_id: int
    title: str
    event_code: str
    start_at: datetime
    end_at: datetime
    duration_minutes: int
    attendee_count: int = 0
    event_type: Optional[str] = None
