"""Tests for user management and content moderation."""
from datetime import datetime

import database
from conftest import auth_headers, insert_user, run


def _insert_event(organizer, **fields):
    doc = {
        "organizer_id": str(organizer["_id"]),
        "title": "Harbour Fest",
        "status": "planning",
        "is_public": True,
        "created_at": datetime.utcnow(),
        **fields,
    }
    result = run(database.events_collection.insert_one(doc))
    return str(result.inserted_id)


def test_list_users_requires_admin(client, organizer):
    r = client.get("/api/admin/users", headers=auth_headers(organizer))
    assert r.status_code == 403


def test_list_users_filters_and_paginates(client, admin, organizer, other_organizer):
    r = client.get("/api/admin/users", params={"role": "organizer", "page_size": 1}, headers=auth_headers(admin))
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 2
    assert len(body["items"]) == 1
    assert body["has_next"] is True

    r = client.get("/api/admin/users", params={"search": "oscar"}, headers=auth_headers(admin))
    assert [u["email"] for u in r.json()["items"]] == ["oscar@example.com"]


def test_user_counts(client, admin, organizer):
    insert_user(name="Sue", email="sue@example.com", status="suspended")
    r = client.get("/api/admin/users/counts", headers=auth_headers(admin))
    body = r.json()
    assert body["total"] == 3
    assert body["by_role"] == {"admin": 1, "organizer": 2}
    assert body["by_status"]["suspended"] == 1


def test_suspend_and_unsuspend(client, admin, organizer):
    user_id = str(organizer["_id"])
    r = client.post(f"/api/admin/moderation/users/{user_id}/suspend", json={"reason": "spam"}, headers=auth_headers(admin))
    assert r.status_code == 200
    assert r.json()["status"] == "suspended"
    assert r.json()["suspended_reason"] == "spam"

    r = client.post(f"/api/admin/moderation/users/{user_id}/suspend", json={"reason": "again"}, headers=auth_headers(admin))
    assert r.status_code == 409

    r = client.get("/api/admin/moderation/users/suspended/count", headers=auth_headers(admin))
    assert r.json()["count"] == 1

    r = client.post(f"/api/admin/moderation/users/{user_id}/unsuspend", headers=auth_headers(admin))
    assert r.json()["status"] == "active"
    assert r.json()["suspended_reason"] is None

    r = client.get(f"/api/admin/moderation/logs/user/{user_id}", headers=auth_headers(admin))
    assert {log["action"] for log in r.json()} == {"user_unsuspended", "user_suspended"}
    assert r.json()[0]["admin_email"] == admin["email"]


def test_admin_cannot_suspend_admin_or_self(client, admin, superadmin):
    other_admin = insert_user(name="Al", email="al@example.com", role="admin")
    r = client.post(f"/api/admin/moderation/users/{other_admin['_id']}/suspend", json={"reason": "x"}, headers=auth_headers(admin))
    assert r.status_code == 403

    r = client.post(f"/api/admin/moderation/users/{superadmin['_id']}/suspend", json={"reason": "x"}, headers=auth_headers(admin))
    assert r.status_code == 403

    r = client.post(f"/api/admin/moderation/users/{other_admin['_id']}/suspend", json={"reason": "x"}, headers=auth_headers(superadmin))
    assert r.status_code == 200


def test_bulk_suspend_reports_failures(client, admin, organizer, superadmin):
    r = client.post(
        "/api/admin/users/bulk/suspend",
        json={"user_ids": [str(organizer["_id"]), str(superadmin["_id"]), "not-an-id"], "reason": "cleanup"},
        headers=auth_headers(admin),
    )
    body = r.json()
    assert body["succeeded"] == [str(organizer["_id"])]
    assert {f["user_id"] for f in body["failed"]} == {str(superadmin["_id"]), "not-an-id"}


def test_my_moderation_status(client, organizer):
    r = client.get("/api/moderation/status", headers=auth_headers(organizer))
    assert r.json() == {"status": "active", "is_suspended": False, "suspended_at": None, "suspended_reason": None}


def test_suspended_user_can_read_own_status(client, admin, organizer):
    client.post(f"/api/admin/moderation/users/{organizer['_id']}/suspend", json={"reason": "Spam listings"},
                headers=auth_headers(admin))

    r = client.get("/api/moderation/status", headers=auth_headers(organizer))
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "suspended"
    assert body["is_suspended"] is True
    assert body["suspended_reason"] == "Spam listings"
    assert body["suspended_at"] is not None

    assert client.get("/api/events/mine", headers=auth_headers(organizer)).status_code == 403


def test_change_role(client, superadmin, organizer, admin):
    user_id = str(organizer["_id"])
    r = client.post(f"/api/admin/moderation/users/{user_id}/role", json={"new_role": "admin"}, headers=auth_headers(admin))
    assert r.status_code == 403

    r = client.post(f"/api/admin/moderation/users/{user_id}/role", json={"new_role": "admin", "reason": "helper"},
                    headers=auth_headers(superadmin))
    assert r.status_code == 200
    assert r.json()["role"] == "admin"

    r = client.post(f"/api/admin/moderation/users/{user_id}/role", json={"new_role": "admin"}, headers=auth_headers(superadmin))
    assert r.status_code == 409

    r = client.post(f"/api/admin/moderation/users/{superadmin['_id']}/role", json={"new_role": "organizer"},
                    headers=auth_headers(superadmin))
    assert r.status_code == 403

    audit = run(database.audit_logs_collection.find_one({"action": "role_changed"}))
    assert audit["details"] == {"previous_role": "organizer", "new_role": "admin"}


def test_create_and_remove_admin(client, superadmin, organizer):
    r = client.post("/api/admin/users/admins", json={"email": "New@Example.com", "name": "Newt"}, headers=auth_headers(superadmin))
    assert r.status_code == 201
    assert r.json()["role"] == "admin"
    assert r.json()["status"] == "pending"

    r = client.post("/api/admin/users/admins", json={"email": organizer["email"], "name": "x"}, headers=auth_headers(superadmin))
    assert r.json()["role"] == "admin"
    assert r.json()["user_id"] == str(organizer["_id"])

    r = client.post("/api/admin/users/admins", json={"email": organizer["email"], "name": "x"}, headers=auth_headers(superadmin))
    assert r.status_code == 409

    r = client.delete(f"/api/admin/users/admins/{organizer['_id']}", headers=auth_headers(superadmin))
    assert r.json()["role"] == "organizer"

    r = client.get("/api/admin/users/admins", headers=auth_headers(superadmin))
    assert {u["email"] for u in r.json()} == {"sam@example.com", "new@example.com"}


def test_flag_unflag_and_counts(client, admin, organizer):
    event_id = _insert_event(organizer)
    r = client.post(f"/api/admin/moderation/events/{event_id}/flag", json={"reason": "scam", "severity": "high"},
                    headers=auth_headers(admin))
    assert r.status_code == 200
    assert r.json()["is_flagged"] is True

    r = client.post(f"/api/admin/moderation/events/{event_id}/flag", json={"reason": "scam", "severity": "high"},
                    headers=auth_headers(admin))
    assert r.status_code == 409

    r = client.get("/api/admin/moderation/events/flagged/count", headers=auth_headers(admin))
    assert r.json() == {"total": 1, "low": 0, "medium": 0, "high": 1}

    r = client.get("/api/admin/moderation/events/flagged", params={"severity": "high"}, headers=auth_headers(admin))
    assert r.json()[0]["organizer_name"] == organizer["name"]

    notifications = run(database.notifications_collection.find({"type": "flagged_content"}).to_list(length=None))
    assert [n["user_id"] for n in notifications] == [str(admin["_id"])]

    r = client.post(f"/api/admin/moderation/events/{event_id}/unflag", headers=auth_headers(admin))
    assert r.json()["is_flagged"] is False
    assert r.json()["flag_reason"] is None


def test_remove_event_cancels_it(client, admin, organizer):
    event_id = _insert_event(organizer, is_flagged=True, flag_reason="bad", flag_severity="low")
    r = client.post(f"/api/admin/moderation/events/{event_id}/remove", json={"reason": "policy"}, headers=auth_headers(admin))
    assert r.json()["status"] == "cancelled"
    assert r.json()["is_flagged"] is False

    r = client.get("/api/admin/moderation/logs", params={"action": "event_removed"}, headers=auth_headers(admin))
    assert r.json()[0]["metadata"] == {"previous_status": "planning"}


def test_moderation_logs_reject_unknown_action(client, admin):
    r = client.get("/api/admin/moderation/logs", params={"action": "nope"}, headers=auth_headers(admin))
    assert r.status_code == 400


def test_invalid_object_id(client, admin):
    r = client.post("/api/admin/moderation/events/xyz/unflag", headers=auth_headers(admin))
    assert r.status_code == 400
    assert r.json()["error_code"] == "INVALID_ID"
