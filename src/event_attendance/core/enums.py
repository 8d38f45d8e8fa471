from __future__ import annotations

from enum import Enum


class RegistrationStatus(str, Enum):
    """Lifecycle state of a registration."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    WAITLIST = "waitlist"
    ATTENDED = "attended"
    NO_SHOW = "no_show"


class CheckInMethod(str, Enum):
    """How a check-in or check-out was captured."""

    MANUAL = "manual"
    QR_CODE = "qr_code"
    NFC = "nfc"
    MOBILE_APP = "mobile_app"
    BULK = "bulk"


class AttendanceEventType(str, Enum):
    """Kinds of entries in the attendance audit log."""

    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"
    MANUAL_RECORD = "manual_record"


class AnalyticsPeriod(str, Enum):
    """Bucket size of the check-in timeline."""

    HOURLY = "hourly"
    DAILY = "daily"
    ISO = "iso"
