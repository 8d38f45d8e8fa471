from __future__ import annotations

import io

from flask import Flask, jsonify, request, send_file

from ..common.datetime_utils import parse_iso_datetime
from ..common.validators import optional_text, parse_enum, require_positive_int
from ..core.enums import AttendanceEventType, CheckInMethod
from ..core.exceptions import ValidationError
from .model import CheckInData, CheckOutData, ManualAttendanceData


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("request body must be a JSON object")
    return payload


def _optional_id(value, field_name: str):
    if value is None or value == "":
        return None
    return require_positive_int(value, field_name)


def _check_in_data(payload: dict) -> CheckInData:
    return CheckInData(
        method=parse_enum(CheckInMethod, payload.get("method"), "method", default=CheckInMethod.MANUAL),
        location=optional_text(payload.get("location")),
        notes=optional_text(payload.get("notes")),
        recorded_by=_optional_id(payload.get("recorded_by"), "recorded_by"),
    )


def _check_out_data(payload: dict) -> CheckOutData:
    return CheckOutData(
        method=parse_enum(CheckInMethod, payload.get("method"), "method", default=CheckInMethod.MANUAL),
        notes=optional_text(payload.get("notes")),
        recorded_by=_optional_id(payload.get("recorded_by"), "recorded_by"),
    )


def _manual_data(payload: dict) -> ManualAttendanceData:
    raw_timestamp = payload.get("timestamp")
    try:
        timestamp = parse_iso_datetime(str(raw_timestamp)) if raw_timestamp else None
    except ValueError:
        raise ValidationError("timestamp must be an ISO-8601 datetime")

    raw_duration = payload.get("duration")
    try:
        duration = int(raw_duration) if raw_duration is not None else None
    except (TypeError, ValueError):
        raise ValidationError("duration must be an integer")

    return ManualAttendanceData(
        type=parse_enum(
            AttendanceEventType, payload.get("type"), "type", default=AttendanceEventType.MANUAL_RECORD
        ),
        timestamp=timestamp,
        notes=optional_text(payload.get("notes")),
        duration=duration,
        location=optional_text(payload.get("location")),
    )


def register(app: Flask, container) -> None:
    service = container.attendance_service

    @app.route(
        "/api/attendance/registrations/<int:registration_id>/check-in",
        methods=["POST"],
        endpoint="api_check_in",
    )
    def api_check_in(registration_id: int):
        registration = service.check_in(registration_id, _check_in_data(_json_body()))
        return jsonify({"success": True, "message": "checked in", "registration": registration.to_dict()}), 200

    @app.route(
        "/api/attendance/registrations/<int:registration_id>/check-out",
        methods=["POST"],
        endpoint="api_check_out",
    )
    def api_check_out(registration_id: int):
        result = service.check_out(registration_id, _check_out_data(_json_body()))
        return jsonify({"success": True, "message": "checked out", **result.to_dict()}), 200

    @app.route("/api/attendance/events/<int:event_id>/bulk-check-in", methods=["POST"], endpoint="api_bulk_check_in")
    def api_bulk_check_in(event_id: int):
        payload = _json_body()
        user_ids = payload.get("user_ids")
        if not isinstance(user_ids, list) or not user_ids:
            raise ValidationError("user_ids must be a non-empty list")
        ids = [require_positive_int(u, "user_ids") for u in user_ids]

        result = service.bulk_check_in(event_id, ids, _check_in_data(payload))
        return jsonify({"success": True, **result.to_dict()}), 200

    @app.route("/api/attendance/qr/check-in", methods=["POST"], endpoint="api_qr_check_in")
    def api_qr_check_in():
        payload = _json_body()
        qr_code = str(payload.get("qr_code") or "").strip()
        if not qr_code:
            raise ValidationError("qr_code is required")

        registration = service.check_in_by_qr_code(qr_code, _check_in_data(payload))
        return jsonify({"success": True, "message": "checked in", "registration": registration.to_dict()}), 200

    @app.route("/api/attendance/events/<int:event_id>/records", methods=["POST"], endpoint="api_record_attendance")
    def api_record_attendance(event_id: int):
        payload = _json_body()
        user_id = require_positive_int(payload.get("user_id"), "user_id")
        entry = service.record_attendance(
            event_id,
            user_id,
            _manual_data(payload),
            recorded_by=_optional_id(payload.get("recorded_by"), "recorded_by"),
        )
        return jsonify(
            {
                "success": True,
                "record": {
                    "type": entry.type.value,
                    "timestamp": entry.timestamp.isoformat(),
                    "user_id": entry.user_id,
                    "registration_id": entry.registration_id,
                },
            }
        ), 201

    @app.route(
        "/api/attendance/registrations/<int:registration_id>/qr.png",
        methods=["GET"],
        endpoint="api_registration_qr_image",
    )
    def api_registration_qr_image(registration_id: int):
        qr = service.generate_registration_qr(registration_id)
        return send_file(io.BytesIO(qr["png"]), mimetype="image/png")

    @app.route("/api/attendance/events/<int:event_id>/qr", methods=["GET"], endpoint="api_event_qr")
    def api_event_qr(event_id: int):
        qr = service.generate_event_attendance_qr(event_id)
        return jsonify(
            {"success": True, "token": qr["token"], "data": qr["data"], "valid_until": qr["valid_until"]}
        ), 200

    @app.route("/api/attendance/events/<int:event_id>/qr.png", methods=["GET"], endpoint="api_event_qr_image")
    def api_event_qr_image(event_id: int):
        qr = service.generate_event_attendance_qr(event_id)
        return send_file(io.BytesIO(qr["png"]), mimetype="image/png")
