from __future__ import annotations

import logging
from datetime import datetime

from ...common.datetime_utils import round_half_up, whole_minutes_between
from .base import AttendanceCalculator

logger = logging.getLogger(__name__)


class StandardAttendanceCalculator(AttendanceCalculator):
    """Standard rule: whole minutes present, rate capped at 100%.

    An event without a positive configured duration yields a rate of 0.
    """

    def duration_minutes(self, check_in_time: datetime, check_out_time: datetime) -> int:
        return whole_minutes_between(check_in_time, check_out_time)

    def attendance_rate(self, duration_minutes: int, event_duration_minutes: int) -> int:
        if event_duration_minutes <= 0:
            logger.warning("Event duration is %s minutes, attendance rate set to 0", event_duration_minutes)
            return 0
        return min(100, round_half_up(duration_minutes / event_duration_minutes * 100))
