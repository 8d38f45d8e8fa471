from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from ..core.enums import AttendanceEventType, CheckInMethod
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, from_db_datetime, to_db_datetime
from .model import AttendanceEntry, AttendanceInsightRow, NewAttendanceEntry
from .repository import AttendanceLogRepository

_COLUMNS = """
    a.attendance_event_id, a.event_id, a.user_id, a.registration_id, a.type, a.occurred_at,
    a.method, a.location, a.notes, a.duration_minutes, a.recorded_by
"""


def insert_entry(cur, entry: NewAttendanceEntry) -> int:
    """Insert an audit entry on an open cursor (caller owns the transaction)."""

    cur.execute(
        """
        INSERT INTO attendance_events(
            event_id, user_id, registration_id, type, occurred_at, method,
            location, notes, duration_minutes, recorded_by
        )
        VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
        """,
        (
            int(entry.event_id),
            int(entry.user_id),
            int(entry.registration_id),
            entry.type.value,
            to_db_datetime(entry.timestamp),
            entry.method.value,
            entry.location,
            entry.notes,
            entry.duration,
            entry.recorded_by,
        ),
    )
    return int(cur.lastrowid)


def _to_entry(r: Dict[str, Any]) -> AttendanceEntry:
    return AttendanceEntry(
        attendance_event_id=int(r["attendance_event_id"]),
        event_id=int(r["event_id"]),
        user_id=int(r["user_id"]),
        registration_id=int(r["registration_id"]),
        type=AttendanceEventType(r["type"]),
        timestamp=from_db_datetime(r["occurred_at"]),
        method=CheckInMethod(r["method"]),
        location=r.get("location"),
        notes=r.get("notes"),
        duration=r.get("duration_minutes"),
        recorded_by=r.get("recorded_by"),
    )


class MySQLAttendanceLogRepository(AttendanceLogRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def append(self, entry: NewAttendanceEntry) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            return insert_entry(cur, entry)

    def list_for_event(self, event_id: int) -> Sequence[AttendanceEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_events a
                WHERE a.event_id=%s
                ORDER BY a.occurred_at ASC, a.attendance_event_id ASC
                """,
                (int(event_id),),
            )
            return [_to_entry(r) for r in fetchall(cur)]

    def list_with_context(
        self,
        *,
        event_ids: Optional[Sequence[int]] = None,
        user_id: Optional[int] = None,
    ) -> Sequence[AttendanceInsightRow]:
        clauses: list[str] = []
        params: list[object] = []
        if event_ids:
            clauses.append("a.event_id IN (" + ",".join(["%s"] * len(event_ids)) + ")")
            params.extend(int(e) for e in event_ids)
        if user_id is not None:
            clauses.append("a.user_id=%s")
            params.append(int(user_id))
        where = ("WHERE " + " AND ".join(clauses)) if clauses else ""

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}, u.faculty, e.event_type
                FROM attendance_events a
                JOIN users u ON u.user_id = a.user_id
                JOIN events e ON e.event_id = a.event_id
                {where}
                ORDER BY a.occurred_at ASC, a.attendance_event_id ASC
                """,
                tuple(params),
            )
            return [
                AttendanceInsightRow(entry=_to_entry(r), faculty=r.get("faculty"), event_type=r.get("event_type"))
                for r in fetchall(cur)
            ]
