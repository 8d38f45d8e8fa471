from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.datetime_utils import parse_iso_datetime
from ..common.validators import parse_enum, require_positive_int
from ..core.constants import DEFAULT_HISTORY_PAGE_SIZE
from ..core.enums import AnalyticsPeriod
from ..core.exceptions import ValidationError


def _int_arg(name: str, default: int) -> int:
    value = request.args.get(name)
    if value in (None, ""):
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def _datetime_arg(name: str):
    value = request.args.get(name)
    if not value:
        return None
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 datetime")


def register(app: Flask, container) -> None:
    reports = container.report_service

    @app.route("/api/attendance/events/<int:event_id>/summary", methods=["GET"], endpoint="api_attendance_summary")
    def api_attendance_summary(event_id: int):
        return jsonify({"success": True, "summary": reports.get_attendance_summary(event_id)}), 200

    @app.route("/api/attendance/events/<int:event_id>/report", methods=["GET"], endpoint="api_attendance_report")
    def api_attendance_report(event_id: int):
        refresh = request.args.get("refresh", "").lower() in {"1", "true", "yes"}
        return jsonify({"success": True, "report": reports.get_attendance_report(event_id, refresh=refresh)}), 200

    @app.route("/api/attendance/events/<int:event_id>/analytics", methods=["GET"], endpoint="api_attendance_analytics")
    def api_attendance_analytics(event_id: int):
        period = parse_enum(AnalyticsPeriod, request.args.get("period"), "period", default=AnalyticsPeriod.DAILY)
        return jsonify({"success": True, "analytics": reports.get_attendance_analytics(event_id, period)}), 200

    @app.route("/api/attendance/events/<int:event_id>/live", methods=["GET"], endpoint="api_attendance_live")
    def api_attendance_live(event_id: int):
        return jsonify({"success": True, **reports.track_real_time_attendance(event_id)}), 200

    @app.route("/api/attendance/events/<int:event_id>/export", methods=["GET"], endpoint="api_attendance_export")
    def api_attendance_export(event_id: int):
        export = reports.export_attendance(event_id, request.args.get("format", "csv").lower())
        # utf-8-sig so spreadsheet tools detect the encoding
        body = export.data.encode("utf-8-sig") if export.content_type == "text/csv" else export.data
        return app.response_class(
            body,
            mimetype=export.content_type,
            headers={"Content-Disposition": f"attachment; filename={export.filename}"},
        )

    @app.route("/api/attendance/users/<int:user_id>/history", methods=["GET"], endpoint="api_attendance_history")
    def api_attendance_history(user_id: int):
        history = reports.get_user_attendance_history(
            user_id,
            page=_int_arg("page", 1),
            limit=_int_arg("limit", DEFAULT_HISTORY_PAGE_SIZE),
            start=_datetime_arg("start"),
            end=_datetime_arg("end"),
        )
        return jsonify({"success": True, **history}), 200

    @app.route("/api/attendance/insights", methods=["GET"], endpoint="api_attendance_insights")
    def api_attendance_insights():
        raw_ids = [part for part in request.args.get("event_ids", "").split(",") if part.strip()]
        event_ids = [require_positive_int(part, "event_ids") for part in raw_ids]
        user_id = request.args.get("user_id")
        insights = reports.get_attendance_insights(
            event_ids,
            require_positive_int(user_id, "user_id") if user_id else None,
        )
        return jsonify({"success": True, "insights": insights}), 200
