import json
from datetime import datetime

import database
from conftest import auth_headers, insert_user, run
from utils.export_formatter import export_value, format_export, to_csv


def test_to_csv_quotes_every_field():
    rows = [{"name": 'Say "hi"', "tags": ["a", "b"], "missing": None}]
    assert to_csv(rows, ("name", "tags", "missing")) == 'name,tags,missing\n"Say ""hi""","a; b",""'
    assert to_csv([], ("name", "tags")) == "name,tags"
    assert to_csv([{"note": "line one\nline two, more"}], ("note",)) == 'note\n"line one\nline two, more"'


def test_export_value():
    assert export_value(datetime(2030, 1, 2, 3, 4, 5)) == "2030-01-02T03:04:05"
    assert export_value(True) == "True"
    assert export_value(None) == ""


def test_format_export_json():
    result = format_export([{"when": datetime(2030, 1, 1)}], ("when",), "json")
    assert result["count"] == 1
    assert json.loads(result["data"]) == [{"when": "2030-01-01T00:00:00"}]


def test_user_export_is_audited_and_hides_passwords(client, admin):
    insert_user(name="Pat", email="pat@example.com", password="Str0ng!Passw0rd")
    r = client.get("/api/admin/exports/users", params={"role": "organizer"}, headers=auth_headers(admin))
    body = r.json()
    assert body["count"] == 1
    assert "pat@example.com" in body["data"]
    assert "password" not in body["data"]

    audit = run(database.audit_logs_collection.find_one({"action": "data_exported"}))
    assert audit["resource"] == "user"
    assert audit["details"]["type"] == "users"
    assert audit["details"]["count"] == 1


def test_event_export_joins_organizer(client, admin, organizer):
    run(database.events_collection.insert_one({
        "organizer_id": str(organizer["_id"]), "title": "Harbour Fest", "status": "planning",
        "start_date": datetime(2030, 6, 1), "created_at": datetime.utcnow(),
    }))
    r = client.get("/api/admin/exports/events", params={"format": "json"}, headers=auth_headers(admin))
    row = json.loads(r.json()["data"])[0]
    assert row["organizer_email"] == organizer["email"]
    assert row["start_date"] == "2030-06-01T00:00:00"


def test_vendor_and_sponsor_exports(client, admin):
    run(database.vendors_collection.insert_one({"name": "Zed", "category": "av", "status": "approved"}))
    run(database.vendors_collection.insert_one({"name": "Alpha", "category": "catering", "status": "pending"}))
    r = client.get("/api/admin/exports/vendors", params={"format": "json"}, headers=auth_headers(admin))
    assert [v["name"] for v in json.loads(r.json()["data"])] == ["Alpha", "Zed"]

    r = client.get("/api/admin/exports/sponsors", params={"status": "approved"}, headers=auth_headers(admin))
    assert r.json()["count"] == 0


def test_exports_require_admin_and_known_format(client, organizer, admin):
    assert client.get("/api/admin/exports/users", headers=auth_headers(organizer)).status_code == 403
    assert client.get("/api/admin/exports/users", params={"format": "xlsx"}, headers=auth_headers(admin)).status_code == 422


def test_moderation_log_export(client, admin):
    run(database.moderation_logs_collection.insert_one({
        "action": "user_suspended", "target_type": "user", "target_id": "u1", "admin_id": str(admin["_id"]),
        "reason": "spam, again", "created_at": datetime.utcnow(),
    }))
    r = client.get("/api/admin/exports/moderation-logs", headers=auth_headers(admin))
    assert '"spam, again"' in r.json()["data"]
    audit = run(database.audit_logs_collection.find_one({"action": "data_exported"}))
    assert audit["details"]["type"] == "moderation_logs"
