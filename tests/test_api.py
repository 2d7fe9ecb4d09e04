from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

import main
from app.api import queue as queue_api
from app.api import whatsapp as whatsapp_api
from app.celery_app import celery_app
from app.services import scheduler
from app.types.messaging import BatchResult, QueueStats
from config import settings
from db import appointments


@pytest.fixture
def client():
    return TestClient(main.app)


@pytest.fixture
def send_task(monkeypatch):
    mock = Mock(return_value=Mock(id="task-1"))
    monkeypatch.setattr(celery_app, "send_task", mock)
    return mock


def _status(connected):
    return {
        "status": "CONNECTED" if connected else "DISCONNECTED",
        "is_connected": connected,
        "updated_at": None,
        "has_qr": False,
    }


# ── Webhook ──────────────────────────────────────────────────────────

def test_webhook_forwards_message_to_worker(client, send_task):
    payload = {"from": "5585999990000@c.us", "body": "SIM", "fromMe": False}

    response = client.post(
        "/v1/whatsapp/webhook",
        json={"event": "message", "session": "main-session", "payload": payload},
    )

    assert response.status_code == 200
    assert response.text == "OK"
    send_task.assert_called_once_with(
        "app.workers.inbound.handle_event", args=["message", payload], queue="inbound"
    )


def test_webhook_translates_session_status(client, send_task):
    client.post("/v1/whatsapp/webhook", json={"event": "session.status", "payload": {"status": "WORKING"}})
    assert send_task.call_args.kwargs["args"][0] == "ready"


def test_webhook_ignores_other_events_and_sessions(client, send_task):
    assert client.post("/v1/whatsapp/webhook", json={"event": "message.ack", "payload": {}}).text == "IGNORED"
    assert client.post(
        "/v1/whatsapp/webhook", json={"event": "message", "session": "other", "payload": {}}
    ).text == "IGNORED"
    send_task.assert_not_called()


def test_webhook_checks_shared_secret(client, send_task, monkeypatch):
    monkeypatch.setattr(settings, "WHATSAPP_WEBHOOK_SECRET", "s3cret")
    body = {"event": "message", "payload": {"from": "5585999990000@c.us", "body": "oi"}}

    assert client.post("/v1/whatsapp/webhook", json=body).status_code == 401
    ok = client.post("/v1/whatsapp/webhook", json=body, headers={"X-Webhook-Token": "s3cret"})
    assert ok.status_code == 200


def test_webhook_rejects_bad_payload(client, send_task):
    assert client.post("/v1/whatsapp/webhook", content=b"not json").status_code == 400
    assert client.post("/v1/whatsapp/webhook", json=["message"]).status_code == 400


# ── Appointment queue ────────────────────────────────────────────────

def test_process_date(client, monkeypatch):
    process = AsyncMock(return_value=BatchResult(date="2026-10-20", total=3, processed=2, skipped=1))
    monkeypatch.setattr(scheduler, "process_date", process)

    response = client.post("/v1/appointment-queue/process-date", json={"date": "20-10-2026"})

    assert response.status_code == 200
    body = response.json()
    assert (body["date"], body["total"], body["processed"], body["skipped"]) == ("2026-10-20", 3, 2, 1)
    assert body["errors"] == []
    assert process.call_args.args[0].isoformat() == "2026-10-20"


def test_process_date_rejects_bad_date(client):
    response = client.post("/v1/appointment-queue/process-date", json={"date": "amanhã"})
    assert response.status_code == 400


def test_process_next_day(client, monkeypatch):
    monkeypatch.setattr(
        scheduler, "process_next_day", AsyncMock(return_value=BatchResult(date="2026-10-20", total=1, processed=1))
    )
    response = client.post("/v1/appointment-queue/process-next-day")
    assert response.json()["processed"] == 1


def test_queue_stats(client, monkeypatch):
    monkeypatch.setattr(queue_api, "get_queue_stats", lambda: QueueStats(waiting=1, active=0, completed=5, failed=1))
    assert client.get("/v1/appointment-queue/stats").json() == {
        "waiting": 1, "active": 0, "completed": 5, "failed": 1,
    }


def test_response_stats(client, monkeypatch):
    stats = {"total": 3, "confirmed": 1, "cancelled": 1, "unknown": 1}
    monkeypatch.setattr(appointments, "response_stats", AsyncMock(return_value=stats))
    assert client.get("/v1/appointment-queue/response-stats").json() == stats


def test_test_message_requires_connected_session(client, send_task, monkeypatch):
    monkeypatch.setattr(queue_api, "read_status", lambda: _status(False))

    response = client.post("/v1/appointment-queue/test-message", json={"phone": "85999990000", "message": "oi"})

    assert response.status_code == 409
    send_task.assert_not_called()


def test_test_message_dispatches_to_worker(client, send_task, monkeypatch):
    monkeypatch.setattr(queue_api, "read_status", lambda: _status(True))
    send_task.return_value = Mock(
        id="task-1", get=Mock(return_value={"success": True, "phone": "5585999990000", "error": None})
    )

    response = client.post("/v1/appointment-queue/test-message", json={"phone": "85999990000", "message": "oi"})

    assert response.json() == {"success": True, "phone": "5585999990000", "error": None}
    assert send_task.call_args.kwargs == {"args": ["85999990000", "oi"], "queue": "session"}


def test_admin_token_enforced_when_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_TOKEN", "admin-token")
    monkeypatch.setattr(queue_api, "get_queue_stats", lambda: QueueStats())

    assert client.get("/v1/appointment-queue/stats").status_code == 401
    assert client.get(
        "/v1/appointment-queue/stats", headers={"Authorization": "Bearer wrong"}
    ).status_code == 401
    assert client.get(
        "/v1/appointment-queue/stats", headers={"Authorization": "Bearer admin-token"}
    ).status_code == 200


# ── WhatsApp session ─────────────────────────────────────────────────

@pytest.mark.parametrize(
    "method, path, task",
    [
        ("post", "/v1/whatsapp/connect", "app.workers.session.connect"),
        ("post", "/v1/whatsapp/reconnect", "app.workers.session.reconnect"),
        ("delete", "/v1/whatsapp/disconnect", "app.workers.session.disconnect"),
    ],
)
def test_session_commands_go_to_worker(client, send_task, method, path, task):
    response = getattr(client, method)(path)
    assert response.status_code == 202
    assert response.json()["task_id"] == "task-1"
    send_task.assert_called_once_with(task, queue="session")


def test_session_status(client, monkeypatch):
    monkeypatch.setattr(whatsapp_api, "read_status", lambda: _status(True))
    assert client.get("/v1/whatsapp/status").json()["is_connected"] is True


def test_qr_not_available(client, monkeypatch):
    monkeypatch.setattr(whatsapp_api, "read_qr", lambda: None)
    assert client.get("/v1/whatsapp/qr").status_code == 404


def test_qr_available(client, monkeypatch):
    monkeypatch.setattr(whatsapp_api, "read_qr", lambda: "2@abc")
    assert client.get("/v1/whatsapp/qr").json() == {"qr": "2@abc"}
