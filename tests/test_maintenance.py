from datetime import datetime, timedelta

import database
from conftest import run
from auth.auth_utils import verify_password
from scripts.create_superadmin import create_superadmin
from scripts.run_maintenance import JOBS, run_maintenance


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] in ("ok", "degraded")


def test_run_selected_jobs():
    run(database.audit_logs_collection.insert_one({"action": "login", "created_at": datetime.utcnow() - timedelta(days=400)}))
    run(database.audit_logs_collection.insert_one({"action": "login", "created_at": datetime.utcnow()}))

    results = run(run_maintenance(["audit_logs", "webhooks"]))
    assert results == {"audit_logs": 1, "webhooks": 0}
    assert set(JOBS) == {"lockouts", "rate_limits", "audit_logs", "webhooks", "verification_tokens"}


def test_create_superadmin_inserts_new_account():
    message = run(create_superadmin("Root@Example.com", "Root", "Str0ng!Passw0rd"))
    assert message == "Created superadmin root@example.com"
    user = run(database.users_collection.find_one({"email": "root@example.com"}))
    assert user["role"] == "superadmin"
    assert verify_password("Str0ng!Passw0rd", user["password_hash"])


def test_create_superadmin_promotes_existing(organizer):
    message = run(create_superadmin(organizer["email"], "ignored", "Str0ng!Passw0rd"))
    assert message.startswith("Promoted")
    user = run(database.users_collection.find_one({"_id": organizer["_id"]}))
    assert user["role"] == "superadmin"
    assert "password_hash" not in user
