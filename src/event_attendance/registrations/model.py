from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..common.datetime_utils import isoformat_or_none
from ..core.enums import CheckInMethod, RegistrationStatus


@dataclass(frozen=True)
class Attendee:
    """Profile of the registered user, as needed by reports."""

    user_id: int
    full_name: str = ""
    email: str = ""
    student_id: Optional[str] = None
    faculty: Optional[str] = None
    department: Optional[str] = None
    year: Optional[str] = None
    major: Optional[str] = None


@dataclass(frozen=True)
class AttendanceInfo:
    checked_in: bool = False
    check_in_time: Optional[datetime] = None
    check_in_method: Optional[CheckInMethod] = None
    check_in_location: Optional[str] = None
    notes: Optional[str] = None
    checked_out: bool = False
    check_out_time: Optional[datetime] = None
    check_out_method: Optional[CheckInMethod] = None
    check_out_notes: Optional[str] = None
    duration: Optional[int] = None
    attendance_rate: Optional[int] = None

    @property
    def currently_present(self) -> bool:
        return self.checked_in and not self.checked_out


@dataclass(frozen=True)
class Registration:
    """Domain entity: links a user to an event with approval and attendance state."""

    registration_id: int
    event_id: int
    user_id: int
    status: RegistrationStatus
    registered_at: Optional[datetime] = None
    attendance: AttendanceInfo = field(default_factory=AttendanceInfo)
    attendee: Optional[Attendee] = None

    def to_dict(self) -> dict:
        a = self.attendance
        return {
            "registration_id": self.registration_id,
            "event_id": self.event_id,
            "user_id": self.user_id,
            "status": self.status.value,
            "registered_at": isoformat_or_none(self.registered_at),
            "attendance": {
                "checked_in": a.checked_in,
                "check_in_time": isoformat_or_none(a.check_in_time),
                "check_in_method": a.check_in_method.value if a.check_in_method else None,
                "check_in_location": a.check_in_location,
                "notes": a.notes,
                "checked_out": a.checked_out,
                "check_out_time": isoformat_or_none(a.check_out_time),
                "check_out_method": a.check_out_method.value if a.check_out_method else None,
                "check_out_notes": a.check_out_notes,
                "duration": a.duration,
                "attendance_rate": a.attendance_rate,
            },
        }


@dataclass(frozen=True)
class AttendanceHistoryRow:
    """Read-model for a user's attendance history (registration joined with its event)."""

    registration: Registration
    event_title: str
    event_type: Optional[str]
    event_start_at: datetime
