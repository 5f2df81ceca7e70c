import json
from datetime import datetime, timedelta

import httpx
import pytest

import database
from conftest import auth_headers, run
from utils.webhook_dispatcher import (
    MAX_ATTEMPTS,
    build_payload,
    deliver,
    generate_secret,
    process_due_retries,
    sign_payload,
    trigger_webhooks,
)


def _mock_client(status_code=200, seen=None):
    def handler(request: httpx.Request):
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, text="ok" if status_code < 400 else "boom")
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _create(client, user, **fields):
    payload = {"name": "Ops", "url": "https://hooks.example.com/in", "events": ["event.created"]}
    payload.update(fields)
    return client.post("/api/webhooks", json=payload, headers=auth_headers(user))


def _insert_delivery(webhook_id, **fields):
    doc = {
        "webhook_id": webhook_id,
        "event": "event.created",
        "payload": build_payload("event.created", {"event_id": "e1"}),
        "status": "pending",
        "attempts": 0,
        "created_at": datetime.utcnow(),
        **fields,
    }
    return str(run(database.webhook_deliveries_collection.insert_one(doc)).inserted_id)


def _insert_webhook(user, **fields):
    doc = {
        "user_id": str(user["_id"]), "name": "hook", "url": "https://hooks.example.com/in",
        "events": ["event.created"], "status": "active", "secret": "whsec_test", "failure_count": 0,
        "total_deliveries": 0, "created_at": datetime.utcnow(), **fields,
    }
    return str(run(database.webhooks_collection.insert_one(doc)).inserted_id)


def test_secret_format_and_signature():
    secret = generate_secret()
    assert secret.startswith("whsec_")
    assert len(secret) == len("whsec_") + 32
    assert sign_payload("s", 100, "{}") == sign_payload("s", 100, "{}")
    assert sign_payload("s", 100, "{}") != sign_payload("s", 101, "{}")


def test_available_events(client):
    events = {e["event"] for e in client.get("/api/webhooks/events").json()}
    assert "task.completed" in events
    assert len(events) == 12


def test_create_returns_secret_once(client, organizer):
    r = _create(client, organizer, events=["event.created", "event.created", "task.completed"])
    assert r.status_code == 201
    body = r.json()
    assert body["secret"].startswith("whsec_")
    assert body["events"] == ["event.created", "task.completed"]

    r = client.get(f"/api/webhooks/{body['webhook_id']}", headers=auth_headers(organizer))
    assert "secret" not in r.json()
    assert run(database.audit_logs_collection.find_one({"action": "webhook_created"})) is not None


def test_create_validation(client, organizer):
    assert _create(client, organizer, url="http://hooks.example.com/in").status_code == 400
    assert _create(client, organizer, url="http://localhost:8000/hook").status_code == 201
    assert _create(client, organizer, events=[]).status_code == 400
    r = _create(client, organizer, events=["event.exploded"])
    assert r.status_code == 400
    assert r.json()["errors"] == {"events": ["event.exploded"]}
    assert _create(client, organizer, name="   ").status_code == 400
    assert _create(client, organizer, url="http://localhost:8000/hook").status_code == 409


def test_webhook_limit_per_user(client, organizer):
    for i in range(10):
        assert _create(client, organizer, url=f"https://hooks.example.com/{i}").status_code == 201
    assert _create(client, organizer, url="https://hooks.example.com/extra").status_code == 400


def test_webhooks_are_private(client, organizer, other_organizer):
    webhook_id = _create(client, organizer).json()["webhook_id"]
    assert client.get(f"/api/webhooks/{webhook_id}", headers=auth_headers(other_organizer)).status_code == 403
    assert client.get("/api/webhooks", headers=auth_headers(other_organizer)).json() == []


def test_reactivating_disabled_webhook_resets_failures(client, organizer):
    webhook_id = _insert_webhook(organizer, status="disabled", failure_count=5)
    r = client.patch(f"/api/webhooks/{webhook_id}", json={"status": "active"}, headers=auth_headers(organizer))
    assert r.json()["status"] == "active"
    assert r.json()["failure_count"] == 0


def test_regenerate_secret_and_delete(client, organizer):
    created = _create(client, organizer).json()
    r = client.post(f"/api/webhooks/{created['webhook_id']}/regenerate-secret", headers=auth_headers(organizer))
    assert r.json()["secret"] != created["secret"]

    _insert_delivery(created["webhook_id"])
    assert client.delete(f"/api/webhooks/{created['webhook_id']}", headers=auth_headers(organizer)).status_code == 200
    assert run(database.webhook_deliveries_collection.count_documents({})) == 0


def test_send_test_signs_request(client, organizer, monkeypatch):
    created = _create(client, organizer).json()
    seen = []

    async def deliver_with_mock(delivery_id):
        return await deliver(delivery_id, client=_mock_client(200, seen))

    monkeypatch.setattr("controllers.webhook_controller.deliver", deliver_with_mock)
    r = client.post(f"/api/webhooks/{created['webhook_id']}/test", headers=auth_headers(organizer))
    assert r.json()["status"] == "success"
    assert r.json()["event"] == "test"

    request = seen[0]
    timestamp = int(request.headers["X-Webhook-Timestamp"])
    expected = sign_payload(created["secret"], timestamp, request.content.decode())
    assert request.headers["X-Webhook-Signature"] == f"sha256={expected}"
    assert json.loads(request.content)["data"]["webhook_name"] == "Ops"

    r = client.get(f"/api/webhooks/{created['webhook_id']}/deliveries", headers=auth_headers(organizer))
    assert [d["status"] for d in r.json()] == ["success"]


def test_trigger_only_targets_subscribed_active_webhooks(organizer):
    subscribed = _insert_webhook(organizer)
    _insert_webhook(organizer, url="https://hooks.example.com/paused", status="paused")
    _insert_webhook(organizer, url="https://hooks.example.com/tasks", events=["task.created"])

    ids = run(trigger_webhooks(str(organizer["_id"]), "event.created", {"event_id": "e1"}))
    assert len(ids) == 1
    delivery = run(database.webhook_deliveries_collection.find_one({}))
    assert delivery["webhook_id"] == subscribed
    assert delivery["status"] == "pending"


def test_failed_delivery_is_retried_with_backoff(organizer):
    webhook_id = _insert_webhook(organizer)
    delivery_id = _insert_delivery(webhook_id)

    result = run(deliver(delivery_id, client=_mock_client(500)))
    assert result["status"] == "retrying"
    assert result["attempts"] == 1
    assert result["error"] == "HTTP 500"
    assert timedelta(seconds=55) < result["next_retry_at"] - datetime.utcnow() <= timedelta(seconds=60)


def test_delivery_fails_after_max_attempts_and_disables_webhook(organizer):
    webhook_id = _insert_webhook(organizer, failure_count=4)
    delivery_id = _insert_delivery(webhook_id)

    for _ in range(MAX_ATTEMPTS):
        result = run(deliver(delivery_id, client=_mock_client(503)))
    assert result["status"] == "failed"
    assert result["attempts"] == MAX_ATTEMPTS

    webhook = run(database.webhooks_collection.find_one({}))
    assert webhook["failure_count"] == 5
    assert webhook["status"] == "disabled"


def test_success_resets_failure_count(organizer):
    webhook_id = _insert_webhook(organizer, failure_count=3)
    run(deliver(_insert_delivery(webhook_id), client=_mock_client(204)))
    webhook = run(database.webhooks_collection.find_one({}))
    assert webhook["failure_count"] == 0
    assert webhook["total_deliveries"] == 1


@pytest.mark.real_delivery
def test_process_due_retries(organizer):
    webhook_id = _insert_webhook(organizer)
    _insert_delivery(webhook_id, status="retrying", attempts=1, next_retry_at=datetime.utcnow() - timedelta(minutes=1))
    _insert_delivery(webhook_id, status="retrying", attempts=1, next_retry_at=datetime.utcnow() + timedelta(hours=1))

    assert run(process_due_retries(client=_mock_client(200))) == 1
    statuses = sorted(d["status"] for d in run(database.webhook_deliveries_collection.find({}).to_list(length=None)))
    assert statuses == ["retrying", "success"]
