from __future__ import annotations

from typing import Optional

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone, from_db_datetime
from .model import Event
from .repository import EventRepository


class MySQLEventRepository(EventRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, event_id: int) -> Optional[Event]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT event_id, title, event_code, event_type, start_at, end_at, duration_minutes, attendee_count
                FROM events
                WHERE event_id=%s
                """,
                (int(event_id),),
            )
            r = fetchone(cur)
            if not r:
                return None
            return Event(
                event_id=int(r["event_id"]),
                title=r["title"],
                event_code=r["event_code"],
                event_type=r.get("event_type"),
                start_at=from_db_datetime(r["start_at"]),
                end_at=from_db_datetime(r["end_at"]),
                duration_minutes=int(r["duration_minutes"] or 0),
                attendee_count=int(r.get("attendee_count") or 0),
            )

    def increment_attendee_count(self, event_id: int) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE events SET attendee_count = attendee_count + 1 WHERE event_id=%s",
                (int(event_id),),
            )
