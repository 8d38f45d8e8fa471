from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace

import pytest

from event_attendance.common.datetime_utils import now_utc
from event_attendance.core.exceptions import AuthorizationError, InternalError
from event_attendance.events.model import Event
from event_attendance.main import create_app


@pytest.fixture
def event() -> Event:
    # Requests run at wall-clock time, so the event is happening now.
    start = now_utc().replace(microsecond=0) - timedelta(minutes=30)
    return Event(
        event_id=1,
        title="Career Day",
        event_code="EVT-CAREER",
        start_at=start,
        end_at=start + timedelta(hours=8),
        duration_minutes=480,
    )


@pytest.fixture
def client(attendance_service, report_service):
    container = SimpleNamespace(attendance_service=attendance_service, report_service=report_service)
    app = create_app(container, settings_module="event_attendance.config.testing")
    return app.test_client()


def test_check_in_and_check_out(client):
    resp = client.post("/api/attendance/registrations/1/check-in", json={"method": "mobile_app", "location": "Gate 2"})

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert body["registration"]["status"] == "attended"
    assert body["registration"]["attendance"]["check_in_method"] == "mobile_app"

    resp = client.post("/api/attendance/registrations/1/check-out", json={})
    assert resp.status_code == 200
    assert resp.get_json()["duration"] == 0


def test_domain_errors_map_to_status_codes(client):
    resp = client.post("/api/attendance/registrations/404/check-in")
    assert resp.status_code == 404
    assert resp.get_json() == {"success": False, "error": {"kind": "not_found", "message": "registration not found"}}

    resp = client.post("/api/attendance/registrations/3/check-in")
    assert resp.status_code == 400
    assert resp.get_json()["error"]["kind"] == "validation"


def test_unknown_check_in_method_is_rejected(client):
    resp = client.post("/api/attendance/registrations/1/check-in", json={"method": "telepathy"})

    assert resp.status_code == 400


def test_bulk_check_in(client):
    resp = client.post("/api/attendance/events/1/bulk-check-in", json={"user_ids": [7, 8, 9]})

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["successful"] == 2
    assert body["failed"] == 1
    assert body["errors"] == [{"user_id": 9, "error": "only approved registrations may check in"}]

    assert client.post("/api/attendance/events/1/bulk-check-in", json={"user_ids": []}).status_code == 400


def test_qr_check_in(client, attendance_service):
    token = attendance_service.generate_registration_qr(2)["token"]

    resp = client.post("/api/attendance/qr/check-in", json={"qr_code": token})

    assert resp.status_code == 200
    assert resp.get_json()["registration"]["attendance"]["check_in_method"] == "qr_code"
    assert client.post("/api/attendance/qr/check-in", json={"qr_code": "garbage"}).status_code == 400


def test_record_attendance(client):
    resp = client.post("/api/attendance/events/1/records", json={"user_id": 7, "notes": "late arrival", "duration": 30})

    assert resp.status_code == 201
    assert resp.get_json()["record"]["type"] == "manual_record"


def test_qr_images(client):
    resp = client.get("/api/attendance/registrations/1/qr.png")
    assert resp.status_code == 200
    assert resp.mimetype == "image/png"

    resp = client.get("/api/attendance/events/1/qr")
    assert resp.get_json()["data"]["event_code"] == "EVT-CAREER"


def test_summary_report_and_live(client):
    client.post("/api/attendance/registrations/1/check-in")

    summary = client.get("/api/attendance/events/1/summary").get_json()["summary"]
    assert summary["checked_in"] == 1

    report = client.get("/api/attendance/events/1/report?refresh=1").get_json()["report"]
    assert report["statistics"]["total_checked_in"] == 1

    live = client.get("/api/attendance/events/1/live").get_json()
    assert live["total_present"] == 1

    assert client.get("/api/attendance/events/1/analytics?period=hourly").status_code == 200
    assert client.get("/api/attendance/events/1/analytics?period=weekly").status_code == 400


def test_export_and_history(client):
    client.post("/api/attendance/registrations/1/check-in")

    resp = client.get("/api/attendance/events/1/export?format=csv")
    assert resp.status_code == 200
    assert "attachment; filename=attendance_1_" in resp.headers["Content-Disposition"]
    assert resp.data.startswith(b"\xef\xbb\xbfno,full_name")

    history = client.get("/api/attendance/users/7/history?page=1&limit=5").get_json()
    assert history["pagination"]["total"] == 1
    assert client.get("/api/attendance/users/7/history?page=abc").status_code == 400


def test_unknown_route_is_json(client):
    resp = client.get("/api/nope")

    assert resp.status_code == 404
    assert resp.get_json()["error"]["kind"] == "http"


@pytest.mark.parametrize("error, status", [(AuthorizationError("organizers only"), 403), (InternalError("boom"), 500)])
def test_other_error_kinds(client, attendance_service, monkeypatch, error, status):
    def fail(*args, **kwargs):
        raise error

    monkeypatch.setattr(attendance_service, "check_out", fail)

    resp = client.post("/api/attendance/registrations/1/check-out")

    assert resp.status_code == status
    assert resp.get_json()["error"]["message"] == error.message


def test_insights(client):
    client.post("/api/attendance/registrations/1/check-in")
    client.post("/api/attendance/registrations/2/check-in")

    insights = client.get("/api/attendance/insights?event_ids=1&user_id=7").get_json()["insights"]
    assert insights["total_records"] == 1
    assert insights["unique_users"] == 1

    assert client.get("/api/attendance/insights").get_json()["insights"]["total_records"] == 2
    assert client.get("/api/attendance/insights?event_ids=1,x").status_code == 400


def test_boolean_user_id_is_rejected(client):
    resp = client.post("/api/attendance/events/1/records", json={"user_id": True})

    assert resp.status_code == 400
    assert resp.get_json()["error"]["message"] == "user_id must be an integer"
