from __future__ import annotations

from dataclasses import dataclass

from .attendance.mysql_attendance_repository import MySQLAttendanceLogRepository
from .attendance.service import AttendanceService
from .attendance.window import CheckInWindow
from .cache.redis_cache import RedisCacheService
from .core.constants import (
    DEFAULT_BULK_CHECKIN_DELAY_SECONDS,
    DEFAULT_CACHE_KEY_PREFIX,
    DEFAULT_CHECK_IN_CLOSES_AFTER_MINUTES,
    DEFAULT_CHECK_IN_OPENS_BEFORE_MINUTES,
    DEFAULT_QR_MAX_AGE_SECONDS,
)
from .database.connection import DBConfig, DatabaseConnection
from .events.mysql_event_repository import MySQLEventRepository
from .qrcodes.service import QRCodeService
from .registrations.mysql_registration_repository import MySQLRegistrationRepository
from .reports.service import AttendanceReportService


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection
    cache: RedisCacheService

    registrations_repo: MySQLRegistrationRepository
    events_repo: MySQLEventRepository
    attendance_log_repo: MySQLAttendanceLogRepository

    qr_code_service: QRCodeService
    attendance_service: AttendanceService
    report_service: AttendanceReportService


def build_container(
    *,
    db_config: dict,
    redis_url: str,
    secret_key: str,
    cache_key_prefix: str = DEFAULT_CACHE_KEY_PREFIX,
    check_in_opens_before_minutes: int = DEFAULT_CHECK_IN_OPENS_BEFORE_MINUTES,
    check_in_closes_after_minutes: int = DEFAULT_CHECK_IN_CLOSES_AFTER_MINUTES,
    bulk_delay_seconds: float = DEFAULT_BULK_CHECKIN_DELAY_SECONDS,
    qr_max_age_seconds: int = DEFAULT_QR_MAX_AGE_SECONDS,
) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))
    cache = RedisCacheService.from_url(redis_url, key_prefix=cache_key_prefix)

    registrations_repo = MySQLRegistrationRepository(conn)
    events_repo = MySQLEventRepository(conn)
    attendance_log_repo = MySQLAttendanceLogRepository(conn)

    qr_code_service = QRCodeService(secret_key, max_age_seconds=qr_max_age_seconds)
    attendance_service = AttendanceService(
        registrations_repo,
        events_repo,
        attendance_log_repo,
        cache,
        qr_codes=qr_code_service,
        window=CheckInWindow(
            opens_before_minutes=int(check_in_opens_before_minutes),
            closes_after_minutes=int(check_in_closes_after_minutes),
        ),
        bulk_delay_seconds=bulk_delay_seconds,
    )
    report_service = AttendanceReportService(registrations_repo, events_repo, attendance_log_repo, cache)

    return Container(
        conn=conn,
        cache=cache,
        registrations_repo=registrations_repo,
        events_repo=events_repo,
        attendance_log_repo=attendance_log_repo,
        qr_code_service=qr_code_service,
        attendance_service=attendance_service,
        report_service=report_service,
    )
