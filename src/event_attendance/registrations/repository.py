from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..attendance.model import NewAttendanceEntry
from ..core.enums import CheckInMethod, RegistrationStatus
from .model import AttendanceHistoryRow, Registration


class RegistrationRepository(Protocol):
    def get_by_id(self, registration_id: int) -> Optional[Registration]:
        raise NotImplementedError

    def find_by_event_and_user(self, event_id: int, user_id: int) -> Optional[Registration]:
        raise NotImplementedError

    def list_for_event(
        self,
        event_id: int,
        *,
        statuses: Optional[Sequence[RegistrationStatus]] = None,
    ) -> Sequence[Registration]:
        """Registrations of an event with attendee profiles, ordered by check-in time."""

        raise NotImplementedError

    def list_recent_check_ins(self, event_id: int, limit: int) -> Sequence[Registration]:
        raise NotImplementedError

    def list_checked_in_for_user(
        self,
        user_id: int,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[Sequence[AttendanceHistoryRow], int]:
        """Page of checked-in registrations, newest first, and the total count."""

        raise NotImplementedError

    def mark_checked_in(
        self,
        registration_id: int,
        *,
        check_in_time: datetime,
        method: CheckInMethod,
        location: Optional[str],
        notes: Optional[str],
        audit: NewAttendanceEntry,
    ) -> bool:
        """Conditional update guarded on ``status=approved AND NOT checked_in``.

        Sets ``status=attended`` and appends ``audit`` in the same transaction.
        Returns ``False`` when the guard did not match (nothing is written).
        """

        raise NotImplementedError

    def mark_checked_out(
        self,
        registration_id: int,
        *,
        check_out_time: datetime,
        method: CheckInMethod,
        notes: Optional[str],
        duration: int,
        attendance_rate: int,
        audit: NewAttendanceEntry,
    ) -> bool:
        """Conditional update guarded on ``checked_in AND NOT checked_out``."""

        raise NotImplementedError

    def mark_checked_in_manually(
        self,
        registration_id: int,
        *,
        check_in_time: datetime,
        audit: NewAttendanceEntry,
    ) -> bool:
        """Admin recording: guarded on ``NOT checked_in`` only, no status precondition."""

        raise NotImplementedError
