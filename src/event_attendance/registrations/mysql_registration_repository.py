from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..attendance.model import NewAttendanceEntry
from ..attendance.mysql_attendance_repository import insert_entry
from ..core.enums import CheckInMethod, RegistrationStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, from_db_datetime, to_bool, to_db_datetime
from .model import AttendanceHistoryRow, AttendanceInfo, Attendee, Registration
from .repository import RegistrationRepository

_SELECT = """
    SELECT
        r.registration_id, r.event_id, r.user_id, r.status, r.registered_at,
        r.checked_in, r.check_in_time, r.check_in_method, r.check_in_location, r.notes,
        r.checked_out, r.check_out_time, r.check_out_method, r.check_out_notes,
        r.duration_minutes, r.attendance_rate,
        u.full_name, u.email, u.student_id, u.faculty, u.department, u.study_year, u.major
    FROM registrations r
    JOIN users u ON u.user_id = r.user_id
"""


def _method(value: Any) -> Optional[CheckInMethod]:
    return CheckInMethod(value) if value else None


def _to_registration(r: Dict[str, Any]) -> Registration:
    return Registration(
        registration_id=int(r["registration_id"]),
        event_id=int(r["event_id"]),
        user_id=int(r["user_id"]),
        status=RegistrationStatus(r["status"]),
        registered_at=from_db_datetime(r.get("registered_at")),
        attendance=AttendanceInfo(
            checked_in=to_bool(r.get("checked_in")),
            check_in_time=from_db_datetime(r.get("check_in_time")),
            check_in_method=_method(r.get("check_in_method")),
            check_in_location=r.get("check_in_location"),
            notes=r.get("notes"),
            checked_out=to_bool(r.get("checked_out")),
            check_out_time=from_db_datetime(r.get("check_out_time")),
            check_out_method=_method(r.get("check_out_method")),
            check_out_notes=r.get("check_out_notes"),
            duration=r.get("duration_minutes"),
            attendance_rate=r.get("attendance_rate"),
        ),
        attendee=Attendee(
            user_id=int(r["user_id"]),
            full_name=r.get("full_name") or "",
            email=r.get("email") or "",
            student_id=r.get("student_id"),
            faculty=r.get("faculty"),
            department=r.get("department"),
            year=r.get("study_year"),
            major=r.get("major"),
        ),
    )


class MySQLRegistrationRepository(RegistrationRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, registration_id: int) -> Optional[Registration]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT + " WHERE r.registration_id=%s", (int(registration_id),))
            r = fetchone(cur)
            return _to_registration(r) if r else None

    def find_by_event_and_user(self, event_id: int, user_id: int) -> Optional[Registration]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT + " WHERE r.event_id=%s AND r.user_id=%s", (int(event_id), int(user_id)))
            r = fetchone(cur)
            return _to_registration(r) if r else None

    def list_for_event(
        self,
        event_id: int,
        *,
        statuses: Optional[Sequence[RegistrationStatus]] = None,
    ) -> Sequence[Registration]:
        clauses = ["r.event_id=%s"]
        params: list[object] = [int(event_id)]
        if statuses:
            clauses.append("r.status IN (" + ",".join(["%s"] * len(statuses)) + ")")
            params.extend(s.value for s in statuses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT
                + " WHERE "
                + " AND ".join(clauses)
                # NULL check-in times sort last
                + " ORDER BY r.check_in_time IS NULL, r.check_in_time ASC, r.registration_id ASC",
                tuple(params),
            )
            return [_to_registration(r) for r in fetchall(cur)]

    def list_recent_check_ins(self, event_id: int, limit: int) -> Sequence[Registration]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT + " WHERE r.event_id=%s AND r.checked_in=1 ORDER BY r.check_in_time DESC LIMIT %s",
                (int(event_id), int(limit)),
            )
            return [_to_registration(r) for r in fetchall(cur)]

    def list_checked_in_for_user(
        self,
        user_id: int,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[Sequence[AttendanceHistoryRow], int]:
        clauses = ["r.user_id=%s", "r.checked_in=1"]
        params: list[object] = [int(user_id)]
        if start is not None:
            clauses.append("r.check_in_time >= %s")
            params.append(to_db_datetime(start))
        if end is not None:
            clauses.append("r.check_in_time <= %s")
            params.append(to_db_datetime(end))
        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM registrations r WHERE {where}", tuple(params))
            total = int((fetchone(cur) or {}).get("total") or 0)

            cur.execute(
                f"""
                SELECT x.*, e.title AS event_title, e.event_type, e.start_at AS event_start_at
                FROM ({_SELECT} WHERE {where}) x
                JOIN events e ON e.event_id = x.event_id
                ORDER BY x.check_in_time DESC
                LIMIT %s OFFSET %s
                """,
                tuple(params) + (int(limit), int(offset)),
            )
            rows = [
                AttendanceHistoryRow(
                    registration=_to_registration(r),
                    event_title=r["event_title"],
                    event_type=r.get("event_type"),
                    event_start_at=from_db_datetime(r["event_start_at"]),
                )
                for r in fetchall(cur)
            ]
            return rows, total

    def mark_checked_in(
        self,
        registration_id: int,
        *,
        check_in_time: datetime,
        method: CheckInMethod,
        location: Optional[str],
        notes: Optional[str],
        audit: NewAttendanceEntry,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE registrations
                SET checked_in=1, check_in_time=%s, check_in_method=%s, check_in_location=%s, notes=%s,
                    status=%s
                WHERE registration_id=%s AND status=%s AND checked_in=0
                """,
                (
                    to_db_datetime(check_in_time),
                    method.value,
                    location,
                    notes,
                    RegistrationStatus.ATTENDED.value,
                    int(registration_id),
                    RegistrationStatus.APPROVED.value,
                ),
            )
            if cur.rowcount == 0:
                return False
            insert_entry(cur, audit)
            return True

    def mark_checked_out(
        self,
        registration_id: int,
        *,
        check_out_time: datetime,
        method: CheckInMethod,
        notes: Optional[str],
        duration: int,
        attendance_rate: int,
        audit: NewAttendanceEntry,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE registrations
                SET checked_out=1, check_out_time=%s, check_out_method=%s, check_out_notes=%s,
                    duration_minutes=%s, attendance_rate=%s
                WHERE registration_id=%s AND checked_in=1 AND checked_out=0
                """,
                (
                    to_db_datetime(check_out_time),
                    method.value,
                    notes,
                    int(duration),
                    int(attendance_rate),
                    int(registration_id),
                ),
            )
            if cur.rowcount == 0:
                return False
            insert_entry(cur, audit)
            return True

    def mark_checked_in_manually(
        self,
        registration_id: int,
        *,
        check_in_time: datetime,
        audit: NewAttendanceEntry,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE registrations
                SET checked_in=1, check_in_time=%s, check_in_method=%s, status=%s
                WHERE registration_id=%s AND checked_in=0
                """,
                (
                    to_db_datetime(check_in_time),
                    CheckInMethod.MANUAL.value,
                    RegistrationStatus.ATTENDED.value,
                    int(registration_id),
                ),
            )
            if cur.rowcount == 0:
                return False
            insert_entry(cur, audit)
            return True
