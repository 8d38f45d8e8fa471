"""Read-side attendance aggregations.

Results are cached for a few minutes and may lag recent check-ins by up to
their TTL; the attendance service evicts them on every state change.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from math import ceil
from typing import Optional, Sequence

from ..attendance.repository import AttendanceLogRepository
from ..cache.base import CacheLayer
from ..common.datetime_utils import as_utc, isoformat_or_none, now_utc, percentage, round_half_up
from ..core.constants import (
    ANALYTICS_CACHE_TTL_SECONDS,
    DEFAULT_HISTORY_PAGE_SIZE,
    REALTIME_CHECKIN_LIMIT,
    REPORT_CACHE_TTL_SECONDS,
    SUMMARY_CACHE_TTL_SECONDS,
    UNKNOWN_GROUP,
    USER_HISTORY_CACHE_TTL_SECONDS,
)
from ..core.enums import AnalyticsPeriod, AttendanceEventType, RegistrationStatus
from ..core.exceptions import NotFoundError, ValidationError
from ..events.repository import EventRepository
from ..registrations.model import Registration
from ..registrations.repository import RegistrationRepository

logger = logging.getLogger(__name__)

CSV_HEADERS = [
    "no",
    "full_name",
    "email",
    "student_id",
    "faculty",
    "department",
    "registered_at",
    "status",
    "checked_in",
    "check_in_time",
    "check_in_method",
    "checked_out",
    "check_out_time",
    "duration_minutes",
    "attendance_rate",
]


@dataclass(frozen=True)
class ExportFile:
    data: str
    filename: str
    content_type: str


def _group(value: Optional[str]) -> str:
    return value or UNKNOWN_GROUP


def _average_rate(registrations: Sequence[Registration]) -> int:
    rates = [r.attendance.attendance_rate for r in registrations if r.attendance.attendance_rate is not None]
    if not rates:
        return 0
    return round_half_up(sum(rates) / len(rates))


class AttendanceReportService:
    def __init__(
        self,
        registrations: RegistrationRepository,
        events: EventRepository,
        attendance_log: AttendanceLogRepository,
        cache: CacheLayer,
    ):
        self._registrations = registrations
        self._events = events
        self._log = attendance_log
        self._cache = cache

    def get_attendance_summary(self, event_id: int) -> dict:
        cache_key = f"attendance:summary:{event_id}"
        summary = self._cache.get(cache_key)
        if summary is not None:
            return summary

        registrations = self._registrations.list_for_event(
            event_id, statuses=[RegistrationStatus.APPROVED, RegistrationStatus.ATTENDED]
        )
        total = len(registrations)
        checked_in = sum(1 for r in registrations if r.attendance.checked_in)
        checked_out = sum(1 for r in registrations if r.attendance.checked_out)

        summary = {
            "total_registered": total,
            "checked_in": checked_in,
            "checked_out": checked_out,
            "currently_present": sum(1 for r in registrations if r.attendance.currently_present),
            "no_show": sum(
                1 for r in registrations if not r.attendance.checked_in and r.status == RegistrationStatus.APPROVED
            ),
            "attendance_rate": percentage(checked_in, total),
            "completion_rate": percentage(checked_out, checked_in),
        }

        self._cache.set(cache_key, summary, SUMMARY_CACHE_TTL_SECONDS)
        return summary

    def get_attendance_report(self, event_id: int, *, refresh: bool = False, now: datetime | None = None) -> dict:
        cache_key = f"attendance:report:{event_id}"
        if not refresh:
            report = self._cache.get(cache_key)
            if report is not None:
                return report

        event = self._events.get_by_id(event_id)
        if not event:
            raise NotFoundError("event not found")

        registrations = self._registrations.list_for_event(event_id)

        by_hour: Counter = Counter()
        by_department: dict[str, dict] = {}
        by_faculty: dict[str, dict] = {}

        for reg in registrations:
            a = reg.attendance
            if a.check_in_time:
                by_hour[str(a.check_in_time.hour)] += 1

            attendee = reg.attendee
            for groups, name in (
                (by_department, _group(attendee.department if attendee else None)),
                (by_faculty, _group(attendee.faculty if attendee else None)),
            ):
                bucket = groups.setdefault(name, {"total": 0, "attended": 0})
                bucket["total"] += 1
                if a.checked_in:
                    bucket["attended"] += 1

        total = len(registrations)
        total_checked_in = sum(1 for r in registrations if r.attendance.checked_in)
        statistics = {
            "total_registered": total,
            "total_checked_in": total_checked_in,
            "total_checked_out": sum(1 for r in registrations if r.attendance.checked_out),
            "average_attendance_rate": _average_rate(registrations),
            "attendance_by_time": dict(sorted(by_hour.items(), key=lambda kv: int(kv[0]))),
            "attendance_by_department": by_department,
            "attendance_by_faculty": by_faculty,
            "attendance_rate": percentage(total_checked_in, total),
        }

        report = {
            "event": {
                "id": event.event_id,
                "title": event.title,
                "start_date": isoformat_or_none(event.start_at),
                "end_date": isoformat_or_none(event.end_at),
            },
            "statistics": statistics,
            "attendees": [self._attendee_row(r) for r in registrations],
            "generated_at": (as_utc(now) if now else now_utc()).isoformat(),
        }

        self._cache.set(cache_key, report, REPORT_CACHE_TTL_SECONDS)
        return report

    @staticmethod
    def _attendee_row(reg: Registration) -> dict:
        attendee = reg.attendee
        row = reg.to_dict()
        row["user"] = {
            "id": reg.user_id,
            "full_name": attendee.full_name if attendee else "",
            "email": attendee.email if attendee else "",
            "student_id": attendee.student_id if attendee else None,
            "faculty": attendee.faculty if attendee else None,
            "department": attendee.department if attendee else None,
        }
        return row

    def get_attendance_analytics(self, event_id: int, period: AnalyticsPeriod = AnalyticsPeriod.DAILY) -> dict:
        cache_key = f"attendance:analytics:{event_id}:{period.value}"
        analytics = self._cache.get(cache_key)
        if analytics is not None:
            return analytics

        check_ins = [e for e in self._log.list_for_event(event_id) if e.type == AttendanceEventType.CHECK_IN]

        timeline: Counter = Counter()
        methods: Counter = Counter()
        hours: Counter = Counter()
        total_minutes = 0
        for entry in check_ins:
            ts = entry.timestamp
            if period == AnalyticsPeriod.HOURLY:
                key = f"{ts.day}/{ts.month} {ts.hour}:00"
            elif period == AnalyticsPeriod.DAILY:
                key = f"{ts.day}/{ts.month}/{ts.year}"
            else:
                key = ts.date().isoformat()
            timeline[key] += 1
            methods[entry.method.value] += 1
            hours[ts.hour] += 1
            total_minutes += ts.hour * 60 + ts.minute

        if check_ins:
            # ties go to the later hour
            peak_hour = max(sorted(hours, reverse=True), key=lambda h: hours[h])
            avg = total_minutes / len(check_ins)
            patterns = {
                "peak_hour": peak_hour,
                "average_check_in_time": f"{int(avg // 60):02d}:{int(avg % 60):02d}",
                "hourly_distribution": {str(h): c for h, c in sorted(hours.items())},
            }
        else:
            patterns = {"peak_hour": None, "average_check_in_time": None, "hourly_distribution": {}}

        analytics = {
            "timeline": dict(timeline),
            "methods": dict(methods),
            "patterns": patterns,
            "demographics": self._demographics(event_id),
        }

        self._cache.set(cache_key, analytics, ANALYTICS_CACHE_TTL_SECONDS)
        return analytics

    def _demographics(self, event_id: int) -> dict:
        demographics = {"by_faculty": Counter(), "by_department": Counter(), "by_year": Counter(), "by_major": Counter()}
        for reg in self._registrations.list_for_event(event_id):
            if not reg.attendance.checked_in:
                continue
            a = reg.attendee
            demographics["by_faculty"][_group(a.faculty if a else None)] += 1
            demographics["by_department"][_group(a.department if a else None)] += 1
            demographics["by_year"][_group(a.year if a else None)] += 1
            demographics["by_major"][_group(a.major if a else None)] += 1
        return {k: dict(v) for k, v in demographics.items()}

    def track_real_time_attendance(self, event_id: int, *, now: datetime | None = None) -> dict:
        recent = self._registrations.list_recent_check_ins(event_id, REALTIME_CHECKIN_LIMIT)
        return {
            "recent_check_ins": [
                {
                    "user_id": r.user_id,
                    "user_name": r.attendee.full_name if r.attendee else "",
                    "student_id": r.attendee.student_id if r.attendee else None,
                    "check_in_time": isoformat_or_none(r.attendance.check_in_time),
                    "method": r.attendance.check_in_method.value if r.attendance.check_in_method else None,
                }
                for r in recent
            ],
            "total_present": len(recent),
            "last_update": (as_utc(now) if now else now_utc()).isoformat(),
        }

    def export_attendance(self, event_id: int, fmt: str = "csv", *, now: datetime | None = None) -> ExportFile:
        now = as_utc(now) if now else now_utc()
        report = self.get_attendance_report(event_id, refresh=True, now=now)

        if fmt == "json":
            return ExportFile(
                data=json.dumps(report, ensure_ascii=False),
                filename=f"attendance_{event_id}_{now.strftime('%Y%m%d')}.json",
                content_type="application/json",
            )
        if fmt != "csv":
            raise ValidationError("export format must be csv or json")

        out = io.StringIO()
        writer = csv.DictWriter(out, fieldnames=CSV_HEADERS)
        writer.writeheader()
        for index, row in enumerate(report["attendees"], start=1):
            a = row["attendance"]
            writer.writerow(
                {
                    "no": index,
                    "full_name": row["user"]["full_name"],
                    "email": row["user"]["email"],
                    "student_id": row["user"]["student_id"] or "",
                    "faculty": row["user"]["faculty"] or "",
                    "department": row["user"]["department"] or "",
                    "registered_at": row["registered_at"] or "",
                    "status": row["status"],
                    "checked_in": "yes" if a["checked_in"] else "no",
                    "check_in_time": a["check_in_time"] or "",
                    "check_in_method": a["check_in_method"] or "",
                    "checked_out": "yes" if a["checked_out"] else "no",
                    "check_out_time": a["check_out_time"] or "",
                    "duration_minutes": a["duration"] or 0,
                    "attendance_rate": a["attendance_rate"] or 0,
                }
            )

        logger.info("Attendance export generated for event %s (%d rows)", event_id, len(report["attendees"]))
        return ExportFile(
            data=out.getvalue(),
            filename=f"attendance_{event_id}_{now.strftime('%Y%m%d')}.csv",
            content_type="text/csv",
        )

    def get_user_attendance_history(
        self,
        user_id: int,
        *,
        page: int = 1,
        limit: int = DEFAULT_HISTORY_PAGE_SIZE,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> dict:
        page = max(int(page), 1)
        limit = max(int(limit), 1)
        cache_key = (
            f"user:{user_id}:attendance:{page}:{limit}:"
            f"{isoformat_or_none(start) or '-'}:{isoformat_or_none(end) or '-'}"
        )
        history = self._cache.get(cache_key)
        if history is not None:
            return history

        rows, total = self._registrations.list_checked_in_for_user(
            user_id, start=start, end=end, offset=(page - 1) * limit, limit=limit
        )

        history = {
            "history": [
                {
                    "event": {
                        "id": row.registration.event_id,
                        "title": row.event_title,
                        "type": row.event_type,
                        "date": isoformat_or_none(row.event_start_at),
                    },
                    "attendance": {
                        "check_in_time": isoformat_or_none(row.registration.attendance.check_in_time),
                        "check_out_time": isoformat_or_none(row.registration.attendance.check_out_time),
                        "duration": row.registration.attendance.duration,
                        "attendance_rate": row.registration.attendance.attendance_rate,
                        "method": (
                            row.registration.attendance.check_in_method.value
                            if row.registration.attendance.check_in_method
                            else None
                        ),
                    },
                }
                for row in rows
            ],
            "pagination": {"page": page, "limit": limit, "total": total, "pages": ceil(total / limit)},
            "statistics": {
                "total_events": total,
                "average_attendance_rate": _average_rate([row.registration for row in rows]),
            },
        }

        self._cache.set(cache_key, history, USER_HISTORY_CACHE_TTL_SECONDS)
        return history

    def get_attendance_insights(
        self,
        event_ids: Optional[Sequence[int]] = None,
        user_id: Optional[int] = None,
    ) -> dict:
        """Audit-log aggregation across events, optionally for one user."""

        rows = self._log.list_with_context(event_ids=list(event_ids or []), user_id=user_id)

        methods: Counter = Counter()
        types: Counter = Counter()
        faculties: Counter = Counter()
        event_types: Counter = Counter()
        for row in rows:
            methods[row.entry.method.value] += 1
            types[row.entry.type.value] += 1
            if row.faculty:
                faculties[row.faculty] += 1
            if row.event_type:
                event_types[row.event_type] += 1

        return {
            "total_records": len(rows),
            "unique_events": len({row.entry.event_id for row in rows}),
            "unique_users": len({row.entry.user_id for row in rows}),
            "method_distribution": dict(methods),
            "type_distribution": dict(types),
            "faculty_participation": dict(faculties),
            "event_type_engagement": dict(event_types),
        }
