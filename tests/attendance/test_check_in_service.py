from __future__ import annotations

import itertools
import threading
from dataclasses import replace
from datetime import timedelta

import pytest

from conftest import utc
from event_attendance.attendance.model import CheckInData, CheckOutData
from event_attendance.core.enums import AttendanceEventType, CheckInMethod, RegistrationStatus
from event_attendance.core.exceptions import NotFoundError, ValidationError


def test_check_in_marks_registration_attended(attendance_service, registrations_repo, events_repo, attendance_log, fixed_now):
    reg = attendance_service.check_in(1, CheckInData(location="Hall A"), now=fixed_now)

    assert reg.status == RegistrationStatus.ATTENDED
    assert reg.attendance.checked_in is True
    assert reg.attendance.check_in_time == fixed_now
    assert reg.attendance.check_in_method == CheckInMethod.MANUAL
    assert reg.attendance.check_in_location == "Hall A"
    assert events_repo.get_by_id(1).attendee_count == 1

    assert len(attendance_log.entries) == 1
    entry = attendance_log.entries[0]
    assert entry.type == AttendanceEventType.CHECK_IN
    assert entry.timestamp == fixed_now
    assert entry.user_id == 7


def test_check_in_clears_event_and_user_caches(attendance_service, cache, fixed_now):
    cache.set("attendance:summary:1", {"stale": True})
    cache.set("attendance:analytics:1:daily", {"stale": True})
    cache.set("user:7:attendance:1:20:-:-", {"stale": True})
    cache.set("attendance:summary:2", {"other": True})

    attendance_service.check_in(1, now=fixed_now)

    assert "attendance:summary:1" not in cache.store
    assert "attendance:analytics:1:daily" not in cache.store
    assert "user:7:attendance:1:20:-:-" not in cache.store
    assert cache.store["attendance:summary:2"] == {"other": True}


def test_check_in_unknown_registration(attendance_service, fixed_now):
    with pytest.raises(NotFoundError, match="registration not found"):
        attendance_service.check_in(999, now=fixed_now)


def test_check_in_requires_approved_status(attendance_service, attendance_log, fixed_now):
    with pytest.raises(ValidationError, match="only approved registrations may check in"):
        attendance_service.check_in(3, now=fixed_now)
    assert attendance_log.entries == []


def test_second_check_in_is_rejected(attendance_service, registrations_repo, attendance_log, fixed_now):
    attendance_service.check_in(1, now=fixed_now)
    first_time = registrations_repo.get_by_id(1).attendance.check_in_time

    with pytest.raises(ValidationError, match="only approved registrations may check in"):
        attendance_service.check_in(1, now=fixed_now + timedelta(minutes=5))

    assert registrations_repo.get_by_id(1).attendance.check_in_time == first_time
    assert len(attendance_log.entries) == 1


@pytest.mark.parametrize(
    "now, allowed",
    [
        (utc(2024, 3, 15, 7, 0), True),  # opens exactly 120 min before start
        (utc(2024, 3, 15, 6, 59), False),
        (utc(2024, 3, 15, 18, 0), True),  # closes exactly 60 min after end
        (utc(2024, 3, 15, 18, 1), False),
    ],
)
def test_check_in_window_bounds(attendance_service, now, allowed):
    if allowed:
        assert attendance_service.check_in(1, now=now).attendance.checked_in
    else:
        with pytest.raises(ValidationError, match="outside check-in window"):
            attendance_service.check_in(1, now=now)


def test_losing_the_conditional_update_reports_already_checked_in(
    attendance_service, registrations_repo, events_repo, attendance_log, fixed_now
):
    stale = registrations_repo.get_by_id(1)
    attendance_service.check_in(1, now=fixed_now)

    # Second request read the registration before the first one committed.
    registrations_repo.get_by_id = lambda _id: stale
    with pytest.raises(ValidationError, match="already checked in"):
        attendance_service.check_in(1, now=fixed_now)

    assert events_repo.get_by_id(1).attendee_count == 1
    assert len(attendance_log.entries) == 1


def test_counter_failure_does_not_fail_check_in(attendance_service, events_repo, fixed_now):
    events_repo.fail_increment = True

    reg = attendance_service.check_in(1, now=fixed_now)

    assert reg.attendance.checked_in


def test_cache_failure_does_not_fail_check_in(attendance_service, cache, fixed_now):
    def broken(pattern):
        raise ConnectionError("cache down")

    cache.clear_pattern = broken

    assert attendance_service.check_in(1, now=fixed_now).attendance.checked_in


def test_check_out_computes_duration_and_rate(attendance_service, registrations_repo, attendance_log, fixed_now):
    attendance_service.check_in(1, now=fixed_now)

    result = attendance_service.check_out(1, CheckOutData(notes="left early"), now=utc(2024, 3, 15, 15, 0))

    assert result.duration == 355
    assert result.attendance_rate == 74
    reg = registrations_repo.get_by_id(1)
    assert reg.attendance.checked_out
    assert reg.attendance.duration == 355
    assert reg.attendance.attendance_rate == 74
    assert reg.attendance.check_out_notes == "left early"
    assert [e.type for e in attendance_log.entries] == [AttendanceEventType.CHECK_IN, AttendanceEventType.CHECK_OUT]
    assert attendance_log.entries[1].duration == 355


def test_check_out_rate_is_capped_at_100(attendance_service, fixed_now):
    attendance_service.check_in(1, now=utc(2024, 3, 15, 7, 30))

    result = attendance_service.check_out(1, now=utc(2024, 3, 15, 17, 45))

    assert result.duration == 615
    assert result.attendance_rate == 100


def test_check_out_requires_check_in(attendance_service, fixed_now):
    with pytest.raises(ValidationError, match="not checked in"):
        attendance_service.check_out(1, now=fixed_now)


def test_second_check_out_is_rejected(attendance_service, registrations_repo, fixed_now):
    attendance_service.check_in(1, now=fixed_now)
    attendance_service.check_out(1, now=utc(2024, 3, 15, 12, 0))

    with pytest.raises(ValidationError, match="already checked out"):
        attendance_service.check_out(1, now=utc(2024, 3, 15, 13, 0))
    assert registrations_repo.get_by_id(1).attendance.check_out_time == utc(2024, 3, 15, 12, 0)


def test_check_out_before_check_in_is_rejected(attendance_service, fixed_now):
    attendance_service.check_in(1, now=fixed_now)

    with pytest.raises(ValidationError, match="precedes check-in"):
        attendance_service.check_out(1, now=fixed_now - timedelta(minutes=1))


def test_check_out_of_zero_length_event_has_zero_rate(attendance_service, events_repo, event, fixed_now):
    events_repo.events[1] = replace(event, duration_minutes=0)
    attendance_service.check_in(1, now=fixed_now)

    result = attendance_service.check_out(1, now=fixed_now + timedelta(minutes=30))

    assert result.duration == 30
    assert result.attendance_rate == 0


def test_concurrent_check_ins_have_exactly_one_winner(
    attendance_service, registrations_repo, events_repo, attendance_log, fixed_now
):
    # Both threads read the registration before either one writes.
    barrier = threading.Barrier(2)
    first_reads = itertools.count()
    read = registrations_repo.get_by_id

    def read_then_wait(registration_id):
        registration = read(registration_id)
        if next(first_reads) < 2:
            barrier.wait(timeout=5)
        return registration

    registrations_repo.get_by_id = read_then_wait
    outcomes = []

    def attempt():
        try:
            attendance_service.check_in(1, now=fixed_now)
            outcomes.append("checked in")
        except ValidationError as e:
            outcomes.append(e.message)

    threads = [threading.Thread(target=attempt) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert sorted(outcomes) == ["already checked in", "checked in"]
    assert events_repo.get_by_id(1).attendee_count == 1
    assert len(attendance_log.entries) == 1
