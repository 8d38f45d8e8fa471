from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import AttendanceEntry, AttendanceInsightRow, NewAttendanceEntry


class AttendanceLogRepository(Protocol):
    """Append-only attendance audit log."""

    def append(self, entry: NewAttendanceEntry) -> int:
        raise NotImplementedError

    def list_for_event(self, event_id: int) -> Sequence[AttendanceEntry]:
        """All entries of an event, oldest first."""

        raise NotImplementedError

    def list_with_context(
        self,
        *,
        event_ids: Optional[Sequence[int]] = None,
        user_id: Optional[int] = None,
    ) -> Sequence[AttendanceInsightRow]:
        """Entries across events, optionally limited to some events and one user."""

        raise NotImplementedError
