import database
import email_helper
from conftest import auth_headers, run
from utils.notifier import create_notification, notify_admins


def _notify(user, title="Hello", type="system", **kwargs):
    return run(create_notification(str(user["_id"]), type, title, "Something happened", **kwargs))


def test_list_and_unread_count(client, organizer, other_organizer):
    _notify(organizer, "First")
    _notify(organizer, "Second")
    _notify(other_organizer, "Not mine")

    r = client.get("/api/notifications", headers=auth_headers(organizer))
    assert {n["title"] for n in r.json()} == {"First", "Second"}
    assert client.get("/api/notifications/unread-count", headers=auth_headers(organizer)).json() == {"count": 2}


def test_mark_read_and_read_all(client, organizer):
    first = _notify(organizer, "First")
    _notify(organizer, "Second")

    r = client.post(f"/api/notifications/{first}/read", headers=auth_headers(organizer))
    assert r.json()["read"] is True

    r = client.get("/api/notifications", params={"unread_only": True}, headers=auth_headers(organizer))
    assert [n["title"] for n in r.json()] == ["Second"]

    assert client.post("/api/notifications/read-all", headers=auth_headers(organizer)).json() == {"updated": 1}
    assert client.get("/api/notifications/unread-count", headers=auth_headers(organizer)).json() == {"count": 0}


def test_cannot_touch_someone_elses_notification(client, organizer, other_organizer):
    notification_id = _notify(organizer)
    assert client.post(f"/api/notifications/{notification_id}/read", headers=auth_headers(other_organizer)).status_code == 403
    assert client.delete(f"/api/notifications/{notification_id}", headers=auth_headers(other_organizer)).status_code == 403


def test_delete_notifications(client, organizer):
    notification_id = _notify(organizer)
    _notify(organizer)
    assert client.delete(f"/api/notifications/{notification_id}", headers=auth_headers(organizer)).status_code == 200
    assert client.delete(f"/api/notifications/{notification_id}", headers=auth_headers(organizer)).status_code == 404
    assert client.delete("/api/notifications", headers=auth_headers(organizer)).json() == {"deleted": 1}


def test_email_is_rendered_and_flagged_when_sent(organizer, monkeypatch):
    sent = []

    async def fake_send_email(to_email, subject, html, text=None):
        sent.append((to_email, subject, html))
        return True

    monkeypatch.setattr(email_helper, "send_email", fake_send_email)
    notification_id = _notify(organizer, "Event reminder", send_email=True, action_url="/events/1",
                              action_label="Open event")

    to_email, subject, html = sent[0]
    assert to_email == organizer["email"]
    assert subject == "Event reminder"
    assert "/events/1" in html
    doc = run(database.notifications_collection.find_one({}))
    assert str(doc["_id"]) == notification_id
    assert doc["email_sent"] is True


def test_email_disabled_leaves_flag_unset(organizer):
    _notify(organizer, send_email=True)
    assert run(database.notifications_collection.find_one({}))["email_sent"] is False


def test_notify_admins_fans_out(admin, superadmin, organizer):
    assert run(notify_admins("system", "Heads up", "Check the queue")) == 2
    recipients = {n["user_id"] for n in run(database.notifications_collection.find({}).to_list(length=None))}
    assert recipients == {str(admin["_id"]), str(superadmin["_id"])}


def test_templates_render():
    html = email_helper.render_email(
        "application_decision.html", title="Application accepted", accepted=True,
        applicant_type="vendor", event_title="Harbour <Fest>", reason=None,
    )
    assert "Harbour &lt;Fest&gt;" in html
    assert email_helper.absolute_url("https://x.example.com/a") == "https://x.example.com/a"
    assert email_helper.absolute_url(None) is None


def test_preferences_default_until_saved(client, organizer):
    r = client.get("/api/notifications/preferences", headers=auth_headers(organizer))
    body = r.json()
    assert body["is_default"] is True
    assert body["email_enabled"] is True
    assert body["daily_digest"] is False
    assert body["digest_time"] == "09:00"


def test_update_and_reset_preferences(client, organizer):
    r = client.put("/api/notifications/preferences", json={"email_vendor_applications": False, "digest_time": "18:30"},
                   headers=auth_headers(organizer))
    body = r.json()
    assert body["is_default"] is False
    assert body["email_vendor_applications"] is False
    assert body["digest_time"] == "18:30"
    assert body["in_app_vendor_applications"] is True

    r = client.put("/api/notifications/preferences", json={"digest_time": "25:00"}, headers=auth_headers(organizer))
    assert r.status_code == 422

    r = client.post("/api/notifications/preferences/reset", headers=auth_headers(organizer))
    assert r.json()["email_vendor_applications"] is True
    assert r.json()["digest_time"] == "09:00"
    assert run(database.notification_preferences_collection.count_documents({})) == 1


def test_preferences_gate_each_channel(client, organizer, monkeypatch):
    sent = []

    async def fake_send_email(to_email, subject, html, text=None):
        sent.append(subject)
        return True

    monkeypatch.setattr(email_helper, "send_email", fake_send_email)
    client.put("/api/notifications/preferences",
               json={"email_vendor_applications": False, "in_app_sponsor_applications": False},
               headers=auth_headers(organizer))

    assert _notify(organizer, "Vendor applied", type="vendor_application", send_email=True) is not None
    assert sent == []

    assert run(create_notification(str(organizer["_id"]), "sponsor_application", "Sponsor applied", "x",
                                   send_email=True)) is None
    assert sent == ["Sponsor applied"]

    titles = [n["title"] for n in run(database.notifications_collection.find({}).to_list(length=None))]
    assert titles == ["Vendor applied"]


def test_master_switch_silences_every_type(client, organizer):
    client.put("/api/notifications/preferences", json={"in_app_enabled": False}, headers=auth_headers(organizer))
    assert _notify(organizer, "System notice") is None
    assert run(database.notifications_collection.count_documents({})) == 0
