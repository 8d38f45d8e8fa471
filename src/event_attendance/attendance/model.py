from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..common.datetime_utils import isoformat_or_none
from ..core.enums import AttendanceEventType, CheckInMethod


@dataclass(frozen=True)
class CheckInData:
    method: CheckInMethod = CheckInMethod.MANUAL
    location: Optional[str] = None
    notes: Optional[str] = None
    recorded_by: Optional[int] = None


@dataclass(frozen=True)
class CheckOutData:
    method: CheckInMethod = CheckInMethod.MANUAL
    notes: Optional[str] = None
    recorded_by: Optional[int] = None


@dataclass(frozen=True)
class ManualAttendanceData:
    """Admin-entered attendance record; ``timestamp`` defaults to now."""

    type: AttendanceEventType = AttendanceEventType.MANUAL_RECORD
    timestamp: Optional[datetime] = None
    notes: Optional[str] = None
    duration: Optional[int] = None
    location: Optional[str] = None


@dataclass(frozen=True)
class NewAttendanceEntry:
    """Audit log entry about to be appended."""

    event_id: int
    user_id: int
    registration_id: int
    type: AttendanceEventType
    timestamp: datetime
    method: CheckInMethod
    location: Optional[str] = None
    notes: Optional[str] = None
    duration: Optional[int] = None
    recorded_by: Optional[int] = None


@dataclass(frozen=True)
class AttendanceEntry:
    """Domain entity: immutable attendance audit log record."""

    attendance_event_id: int
    event_id: int
    user_id: int
    registration_id: int
    type: AttendanceEventType
    timestamp: datetime
    method: CheckInMethod
    location: Optional[str] = None
    notes: Optional[str] = None
    duration: Optional[int] = None
    recorded_by: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "attendance_event_id": self.attendance_event_id,
            "event_id": self.event_id,
            "user_id": self.user_id,
            "registration_id": self.registration_id,
            "type": self.type.value,
            "timestamp": isoformat_or_none(self.timestamp),
            "method": self.method.value,
            "location": self.location,
            "notes": self.notes,
            "duration": self.duration,
            "recorded_by": self.recorded_by,
        }


@dataclass(frozen=True)
class CheckOutResult:
    attendance_rate: int
    duration: int

    def to_dict(self) -> dict:
        return {"attendance_rate": self.attendance_rate, "duration": self.duration}


@dataclass(frozen=True)
class BulkCheckInError:
    user_id: int
    error: str


@dataclass
class BulkCheckInResult:
    successful: int = 0
    failed: int = 0
    errors: list[BulkCheckInError] = field(default_factory=list)
    cancelled: bool = False

    def add_failure(self, user_id: int, error: str) -> None:
        self.failed += 1
        self.errors.append(BulkCheckInError(user_id=user_id, error=error))

    def to_dict(self) -> dict:
        return {
            "successful": self.successful,
            "failed": self.failed,
            "errors": [{"user_id": e.user_id, "error": e.error} for e in self.errors],
            "cancelled": self.cancelled,
        }


@dataclass(frozen=True)
class AttendanceInsightRow:
    """Audit entry joined with the attendee's faculty and the event type."""

    entry: AttendanceEntry
    faculty: Optional[str] = None
    event_type: Optional[str] = None
