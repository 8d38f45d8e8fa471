from datetime import timedelta

import pytest

from conftest import utc
from event_attendance.attendance.calculator.standard_calculator import StandardAttendanceCalculator
from event_attendance.attendance.window import CheckInWindow
from event_attendance.common.datetime_utils import percentage, round_half_up


@pytest.mark.parametrize(
    "duration, event_duration, expected",
    [
        (90, 60, 100),
        (30, 60, 50),
        (355, 480, 74),
        (1, 200, 1),  # 0.5 rounds half up
        (10, 0, 0),
        (0, 480, 0),
    ],
)
def test_attendance_rate(duration, event_duration, expected):
    assert StandardAttendanceCalculator().attendance_rate(duration, event_duration) == expected


def test_duration_is_floored_to_whole_minutes():
    start = utc(2024, 3, 15, 9, 5, 0)

    assert StandardAttendanceCalculator().duration_minutes(start, start + timedelta(minutes=10, seconds=59)) == 10


def test_round_half_up_and_percentage():
    assert round_half_up(0.5) == 1
    assert round_half_up(2.5) == 3
    assert round_half_up(2.49) == 2
    assert percentage(1, 3) == 33
    assert percentage(2, 3) == 67
    assert percentage(5, 0) == 0


def test_window_is_configurable(event):
    window = CheckInWindow(opens_before_minutes=15, closes_after_minutes=0)

    assert window.bounds(event) == (utc(2024, 3, 15, 8, 45), utc(2024, 3, 15, 17, 0))
    assert window.contains(event, utc(2024, 3, 15, 8, 45))
    assert not window.contains(event, utc(2024, 3, 15, 8, 44))
    assert not window.contains(event, utc(2024, 3, 15, 17, 0, 1))
