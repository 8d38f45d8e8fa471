from __future__ import annotations

from typing import Optional, Protocol

from .model import Event


class EventRepository(Protocol):
    def get_by_id(self, event_id: int) -> Optional[Event]:
        raise NotImplementedError

    def increment_attendee_count(self, event_id: int) -> None:
        """At-least-once display counter; exactness is not required."""

        raise NotImplementedError
