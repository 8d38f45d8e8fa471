from __future__ import annotations

import fnmatch
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

import pytest

from event_attendance.attendance.model import AttendanceEntry, AttendanceInsightRow, NewAttendanceEntry
from event_attendance.attendance.service import AttendanceService
from event_attendance.core.enums import RegistrationStatus
from event_attendance.events.model import Event
from event_attendance.qrcodes.service import QRCodeService
from event_attendance.registrations.model import AttendanceHistoryRow, Attendee, Registration
from event_attendance.reports.service import AttendanceReportService


class InMemoryAttendanceLog:
    def __init__(self):
        self.entries: list[AttendanceEntry] = []
        self.faculty_by_user: dict[int, str] = {}
        self.type_by_event: dict[int, str] = {}

    def append(self, entry: NewAttendanceEntry) -> int:
        new_id = len(self.entries) + 1
        self.entries.append(AttendanceEntry(attendance_event_id=new_id, **entry.__dict__))
        return new_id

    def list_for_event(self, event_id: int):
        return [e for e in self.entries if e.event_id == event_id]

    def list_with_context(self, *, event_ids=None, user_id=None):
        return [
            AttendanceInsightRow(entry=e, faculty=self.faculty_by_user.get(e.user_id), event_type=self.type_by_event.get(e.event_id))
            for e in self.entries
            if (not event_ids or e.event_id in event_ids) and (user_id is None or e.user_id == user_id)
        ]


class InMemoryEvents:
    def __init__(self, *events: Event):
        self.events = {e.event_id: e for e in events}
        self.fail_increment = False

    def get_by_id(self, event_id: int) -> Optional[Event]:
        return self.events.get(event_id)

    def increment_attendee_count(self, event_id: int) -> None:
        if self.fail_increment:
            raise RuntimeError("counter store unavailable")
        event = self.events[event_id]
        self.events[event_id] = replace(event, attendee_count=event.attendee_count + 1)


class InMemoryRegistrations:
    """Conditional writes mirror the guarded UPDATEs of the MySQL repository."""

    def __init__(self, log: InMemoryAttendanceLog, *registrations: Registration):
        self.log = log
        self.lock = threading.Lock()
        self.by_id = {r.registration_id: r for r in registrations}

    def add(self, registration: Registration) -> None:
        self.by_id[registration.registration_id] = registration

    def get_by_id(self, registration_id: int) -> Optional[Registration]:
        return self.by_id.get(registration_id)

    def find_by_event_and_user(self, event_id: int, user_id: int) -> Optional[Registration]:
        for r in self.by_id.values():
            if r.event_id == event_id and r.user_id == user_id:
                return r
        return None

    def list_for_event(self, event_id: int, *, statuses=None):
        items = [r for r in self.by_id.values() if r.event_id == event_id]
        if statuses:
            items = [r for r in items if r.status in statuses]
        return sorted(items, key=lambda r: r.attendance.check_in_time or datetime.max.replace(tzinfo=timezone.utc))

    def list_recent_check_ins(self, event_id: int, limit: int):
        items = [r for r in self.by_id.values() if r.event_id == event_id and r.attendance.checked_in]
        items.sort(key=lambda r: r.attendance.check_in_time, reverse=True)
        return items[:limit]

    def list_checked_in_for_user(self, user_id: int, *, start=None, end=None, offset=0, limit=20):
        items = [r for r in self.by_id.values() if r.user_id == user_id and r.attendance.checked_in]
        if start:
            items = [r for r in items if r.attendance.check_in_time >= start]
        if end:
            items = [r for r in items if r.attendance.check_in_time <= end]
        items.sort(key=lambda r: r.attendance.check_in_time, reverse=True)
        rows = [
            AttendanceHistoryRow(registration=r, event_title=f"Event {r.event_id}", event_type="seminar", event_start_at=r.attendance.check_in_time)
            for r in items[offset:offset + limit]
        ]
        return rows, len(items)

    def mark_checked_in(self, registration_id, *, check_in_time, method, location, notes, audit) -> bool:
        with self.lock:
            r = self.by_id[registration_id]
            if r.status != RegistrationStatus.APPROVED or r.attendance.checked_in:
                return False
            attendance = replace(
                r.attendance,
                checked_in=True,
                check_in_time=check_in_time,
                check_in_method=method,
                check_in_location=location,
                notes=notes,
            )
            self.by_id[registration_id] = replace(r, status=RegistrationStatus.ATTENDED, attendance=attendance)
            self.log.append(audit)
            return True

    def mark_checked_out(self, registration_id, *, check_out_time, method, notes, duration, attendance_rate, audit) -> bool:
        with self.lock:
            r = self.by_id[registration_id]
            if not r.attendance.checked_in or r.attendance.checked_out:
                return False
            attendance = replace(
                r.attendance,
                checked_out=True,
                check_out_time=check_out_time,
                check_out_method=method,
                check_out_notes=notes,
                duration=duration,
                attendance_rate=attendance_rate,
            )
            self.by_id[registration_id] = replace(r, attendance=attendance)
            self.log.append(audit)
            return True

    def mark_checked_in_manually(self, registration_id, *, check_in_time, audit) -> bool:
        with self.lock:
            r = self.by_id[registration_id]
            if r.attendance.checked_in:
                return False
            attendance = replace(r.attendance, checked_in=True, check_in_time=check_in_time, check_in_method=audit.method)
            self.by_id[registration_id] = replace(r, status=RegistrationStatus.ATTENDED, attendance=attendance)
            self.log.append(audit)
            return True


class FakeCache:
    def __init__(self):
        self.store: dict = {}
        self.cleared: list[str] = []

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ttl_seconds=None) -> bool:
        self.store[key] = value
        return True

    def delete(self, key) -> bool:
        return self.store.pop(key, None) is not None

    def clear_pattern(self, pattern) -> int:
        self.cleared.append(pattern)
        keys = [k for k in self.store if fnmatch.fnmatchcase(k, pattern)]
        for k in keys:
            del self.store[k]
        return len(keys)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def make_registration(registration_id, *, event_id=1, user_id=None, status=RegistrationStatus.APPROVED, **attendee) -> Registration:
    user_id = user_id if user_id is not None else 100 + registration_id
    return Registration(
        registration_id=registration_id,
        event_id=event_id,
        user_id=user_id,
        status=status,
        registered_at=utc(2024, 3, 1, 8, 0),
        attendee=Attendee(user_id=user_id, full_name=f"Student {user_id}", email=f"s{user_id}@example.edu", **attendee),
    )


@pytest.fixture
def fixed_now() -> datetime:
    return utc(2024, 3, 15, 9, 5)


@pytest.fixture
def event() -> Event:
    return Event(
        event_id=1,
        title="Career Day",
        event_code="EVT-CAREER",
        start_at=utc(2024, 3, 15, 9, 0),
        end_at=utc(2024, 3, 15, 17, 0),
        duration_minutes=480,
    )


@pytest.fixture
def attendance_log() -> InMemoryAttendanceLog:
    return InMemoryAttendanceLog()


@pytest.fixture
def events_repo(event) -> InMemoryEvents:
    return InMemoryEvents(event)


@pytest.fixture
def registrations_repo(attendance_log) -> InMemoryRegistrations:
    return InMemoryRegistrations(
        attendance_log,
        make_registration(1, user_id=7, faculty="Engineering", department="CS", year="3", major="Software"),
        make_registration(2, user_id=8, faculty="Engineering", department="EE"),
        make_registration(3, user_id=9, status=RegistrationStatus.PENDING),
    )


@pytest.fixture
def cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def qr_service() -> QRCodeService:
    return QRCodeService("test-secret", max_age_seconds=3600)


@pytest.fixture
def sleeps() -> list:
    return []


@pytest.fixture
def attendance_service(registrations_repo, events_repo, attendance_log, cache, qr_service, sleeps) -> AttendanceService:
    return AttendanceService(
        registrations_repo,
        events_repo,
        attendance_log,
        cache,
        qr_codes=qr_service,
        bulk_delay_seconds=0.05,
        sleep=sleeps.append,
    )


@pytest.fixture
def report_service(registrations_repo, events_repo, attendance_log, cache) -> AttendanceReportService:
    return AttendanceReportService(registrations_repo, events_repo, attendance_log, cache)
