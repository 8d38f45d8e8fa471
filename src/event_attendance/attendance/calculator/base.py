from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime


class AttendanceCalculator(ABC):
    """Calculator interface (Strategy Pattern for derived attendance metrics)."""

    @abstractmethod
    def duration_minutes(self, check_in_time: datetime, check_out_time: datetime) -> int:
        raise NotImplementedError

    @abstractmethod
    def attendance_rate(self, duration_minutes: int, event_duration_minutes: int) -> int:
        raise NotImplementedError
