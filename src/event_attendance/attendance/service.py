from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from ..cache.base import CacheLayer
from ..common.datetime_utils import as_utc, isoformat_or_none, now_utc
from ..core.constants import DEFAULT_BULK_CHECKIN_DELAY_SECONDS, MAX_RECORDED_DURATION_MINUTES
from ..core.enums import AttendanceEventType, CheckInMethod, RegistrationStatus
from ..core.exceptions import DomainError, NotFoundError, ValidationError
from ..events.model import Event
from ..events.repository import EventRepository
from ..qrcodes.service import EVENT_ATTENDANCE_PAYLOAD, REGISTRATION_PAYLOAD, QRCodeService
from ..registrations.model import Registration
from ..registrations.repository import RegistrationRepository
from .calculator.base import AttendanceCalculator
from .calculator.standard_calculator import StandardAttendanceCalculator
from .model import (
    BulkCheckInResult,
    CheckInData,
    CheckOutData,
    CheckOutResult,
    ManualAttendanceData,
    NewAttendanceEntry,
)
from .repository import AttendanceLogRepository
from .window import CheckInWindow

logger = logging.getLogger(__name__)


def attendance_cache_patterns(event_id: int, user_id: Optional[int] = None) -> list[str]:
    patterns = [
        f"attendance:report:{event_id}",
        f"attendance:summary:{event_id}",
        f"attendance:analytics:{event_id}:*",
    ]
    if user_id is not None:
        patterns.append(f"user:{user_id}:*")
    return patterns


class AttendanceService:
    """Check-in / check-out state machine of a registration.

    Transitions: approved -> checked in (status becomes ``attended``) ->
    checked out. Every transition is a conditional write in the registration
    store, so concurrent attempts yield exactly one winner. Counter updates
    and cache invalidation run after the write commits and never fail the
    operation.
    """

    def __init__(
        self,
        registrations: RegistrationRepository,
        events: EventRepository,
        attendance_log: AttendanceLogRepository,
        cache: CacheLayer,
        *,
        qr_codes: QRCodeService | None = None,
        window: CheckInWindow | None = None,
        calculator: AttendanceCalculator | None = None,
        bulk_delay_seconds: float = DEFAULT_BULK_CHECKIN_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._registrations = registrations
        self._events = events
        self._log = attendance_log
        self._cache = cache
        self._qr = qr_codes
        self._window = window or CheckInWindow()
        self._calculator = calculator or StandardAttendanceCalculator()
        self._bulk_delay = float(bulk_delay_seconds)
        self._sleep = sleep

    def _get_registration(self, registration_id: int) -> Registration:
        registration = self._registrations.get_by_id(registration_id)
        if not registration:
            raise NotFoundError("registration not found")
        return registration

    def _get_event(self, event_id: int) -> Event:
        event = self._events.get_by_id(event_id)
        if not event:
            raise NotFoundError("event not found")
        return event

    # ===== STATE TRANSITIONS =====

    def check_in(self, registration_id: int, data: CheckInData | None = None, *, now: datetime | None = None) -> Registration:
        data = data or CheckInData()
        now = as_utc(now) if now else now_utc()

        registration = self._get_registration(registration_id)
        if registration.status != RegistrationStatus.APPROVED:
            raise ValidationError("only approved registrations may check in")
        if registration.attendance.checked_in:
            raise ValidationError("already checked in")

        event = self._get_event(registration.event_id)
        if not self._window.contains(event, now):
            raise ValidationError("outside check-in window")

        audit = NewAttendanceEntry(
            event_id=event.event_id,
            user_id=registration.user_id,
            registration_id=registration.registration_id,
            type=AttendanceEventType.CHECK_IN,
            timestamp=now,
            method=data.method,
            location=data.location,
            notes=data.notes,
            recorded_by=data.recorded_by,
        )
        applied = self._registrations.mark_checked_in(
            registration.registration_id,
            check_in_time=now,
            method=data.method,
            location=data.location,
            notes=data.notes,
            audit=audit,
        )
        if not applied:
            # A concurrent request won the conditional update.
            raise ValidationError("already checked in")

        self._increment_attendees(event.event_id)
        self.clear_attendance_caches(event.event_id, registration.user_id)

        logger.info(
            "User %s checked in to event %s (registration %s, method=%s)",
            registration.user_id, event.event_id, registration.registration_id, data.method.value,
        )
        return self._get_registration(registration.registration_id)

    def check_out(self, registration_id: int, data: CheckOutData | None = None, *, now: datetime | None = None) -> CheckOutResult:
        data = data or CheckOutData()
        now = as_utc(now) if now else now_utc()

        registration = self._get_registration(registration_id)
        attendance = registration.attendance
        if not attendance.checked_in:
            raise ValidationError("not checked in")
        if attendance.checked_out:
            raise ValidationError("already checked out")
        if attendance.check_in_time and now < attendance.check_in_time:
            raise ValidationError("check-out time precedes check-in time")

        event = self._get_event(registration.event_id)
        duration = self._calculator.duration_minutes(attendance.check_in_time or now, now)
        rate = self._calculator.attendance_rate(duration, event.duration_minutes)

        audit = NewAttendanceEntry(
            event_id=event.event_id,
            user_id=registration.user_id,
            registration_id=registration.registration_id,
            type=AttendanceEventType.CHECK_OUT,
            timestamp=now,
            method=data.method,
            notes=data.notes,
            duration=duration,
            recorded_by=data.recorded_by,
        )
        applied = self._registrations.mark_checked_out(
            registration.registration_id,
            check_out_time=now,
            method=data.method,
            notes=data.notes,
            duration=duration,
            attendance_rate=rate,
            audit=audit,
        )
        if not applied:
            raise ValidationError("already checked out")

        self.clear_attendance_caches(event.event_id, registration.user_id)

        logger.info(
            "User %s checked out of event %s after %s min (rate %s%%)",
            registration.user_id, event.event_id, duration, rate,
        )
        return CheckOutResult(attendance_rate=rate, duration=duration)

    def bulk_check_in(
        self,
        event_id: int,
        user_ids: Iterable[int],
        data: CheckInData | None = None,
        *,
        now: datetime | None = None,
        cancel: threading.Event | None = None,
    ) -> BulkCheckInResult:
        data = data or CheckInData()
        event = self._get_event(event_id)
        bulk_data = CheckInData(
            method=CheckInMethod.BULK,
            location=data.location,
            notes=data.notes,
            recorded_by=data.recorded_by,
        )

        result = BulkCheckInResult()
        for index, user_id in enumerate(user_ids):
            if cancel is not None and cancel.is_set():
                result.cancelled = True
                break
            if index and self._bulk_delay > 0:
                self._sleep(self._bulk_delay)

            try:
                registration = self._registrations.find_by_event_and_user(event.event_id, user_id)
                if not registration:
                    raise NotFoundError("registration not found")
                self.check_in(registration.registration_id, bulk_data, now=now)
                result.successful += 1
            except DomainError as e:
                result.add_failure(user_id, e.message)
            except Exception as e:
                logger.exception("Bulk check-in failed for user %s at event %s", user_id, event.event_id)
                result.add_failure(user_id, str(e) or e.__class__.__name__)

        logger.info(
            "Bulk check-in for event %s completed: %s successful, %s failed",
            event.event_id, result.successful, result.failed,
        )
        return result

    def check_in_by_qr_code(self, qr_payload: str, data: CheckInData | None = None, *, now: datetime | None = None) -> Registration:
        if self._qr is None:
            raise ValidationError("QR check-in is not enabled")

        verification = self._qr.verify(qr_payload, REGISTRATION_PAYLOAD)
        if not verification.valid:
            raise ValidationError(f"invalid QR code: {verification.reason}")

        registration_id = verification.data.get("registration_id")
        if registration_id is None:
            raise ValidationError("invalid QR code: missing registration")

        data = data or CheckInData()
        qr_data = CheckInData(
            method=CheckInMethod.QR_CODE,
            location=data.location,
            notes=data.notes,
            recorded_by=data.recorded_by,
        )
        return self.check_in(int(registration_id), qr_data, now=now)

    # ===== MANUAL RECORDS =====

    def validate_attendance_data(self, data: ManualAttendanceData, *, now: datetime | None = None) -> list[str]:
        now = as_utc(now) if now else now_utc()
        errors = []
        if data.timestamp and as_utc(data.timestamp) > now:
            errors.append("timestamp cannot be in the future")
        if data.duration is not None and not 0 <= data.duration <= MAX_RECORDED_DURATION_MINUTES:
            errors.append("duration is out of range")
        if not isinstance(data.type, AttendanceEventType):
            errors.append("unknown attendance type")
        return errors

    def record_attendance(
        self,
        event_id: int,
        user_id: int,
        data: ManualAttendanceData,
        recorded_by: Optional[int] = None,
        *,
        now: datetime | None = None,
    ) -> NewAttendanceEntry:
        now = as_utc(now) if now else now_utc()
        errors = self.validate_attendance_data(data, now=now)
        if errors:
            raise ValidationError("; ".join(errors))

        event = self._get_event(event_id)
        registration = self._registrations.find_by_event_and_user(event.event_id, user_id)
        if not registration:
            raise NotFoundError("registration not found")

        entry = NewAttendanceEntry(
            event_id=event.event_id,
            user_id=registration.user_id,
            registration_id=registration.registration_id,
            type=data.type,
            timestamp=as_utc(data.timestamp) if data.timestamp else now,
            method=CheckInMethod.MANUAL,
            location=data.location,
            notes=data.notes,
            duration=data.duration,
            recorded_by=recorded_by,
        )

        checked_in_now = False
        if data.type == AttendanceEventType.CHECK_IN and not registration.attendance.checked_in:
            checked_in_now = self._registrations.mark_checked_in_manually(
                registration.registration_id, check_in_time=entry.timestamp, audit=entry
            )
        if not checked_in_now:
            self._log.append(entry)

        if checked_in_now:
            self._increment_attendees(event.event_id)
        self.clear_attendance_caches(event.event_id, registration.user_id)

        logger.info(
            "Manual attendance (%s) recorded for user %s at event %s by %s",
            data.type.value, registration.user_id, event.event_id, recorded_by,
        )
        return entry

    # ===== QR CODES =====

    def generate_registration_qr(self, registration_id: int) -> dict:
        if self._qr is None:
            raise ValidationError("QR check-in is not enabled")
        registration = self._get_registration(registration_id)
        token = self._qr.sign(
            REGISTRATION_PAYLOAD,
            registration_id=registration.registration_id,
            event_id=registration.event_id,
            user_id=registration.user_id,
        )
        return {"token": token, "png": self._qr.render_png(token)}

    def generate_event_attendance_qr(self, event_id: int, *, now: datetime | None = None) -> dict:
        if self._qr is None:
            raise ValidationError("QR check-in is not enabled")
        now = as_utc(now) if now else now_utc()
        event = self._get_event(event_id)
        data = {
            "event_id": event.event_id,
            "event_code": event.event_code,
            "issued_at": now.isoformat(),
        }
        token = self._qr.sign(EVENT_ATTENDANCE_PAYLOAD, **data)
        logger.info("Attendance QR code generated for event %s", event.event_id)
        return {
            "token": token,
            "png": self._qr.render_png(token),
            "data": {"type": EVENT_ATTENDANCE_PAYLOAD, **data},
            "valid_until": isoformat_or_none(now + timedelta(seconds=self._qr.max_age_seconds)),
        }

    # ===== SIDE EFFECTS AFTER COMMIT =====

    def _increment_attendees(self, event_id: int) -> None:
        try:
            self._events.increment_attendee_count(event_id)
        except Exception:
            # Display aggregate; the check-in itself is already committed.
            logger.warning("Attendee counter update failed for event %s", event_id, exc_info=True)

    def clear_attendance_caches(self, event_id: int, user_id: Optional[int] = None) -> None:
        for pattern in attendance_cache_patterns(event_id, user_id):
            try:
                self._cache.clear_pattern(pattern)
            except Exception:
                logger.warning("Cache invalidation failed for %s", pattern, exc_info=True)
