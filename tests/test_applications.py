"""Tests for event partners and the vendor/sponsor application workflow."""
from datetime import datetime

import pytest

import database
from conftest import auth_headers, insert_user, run


def _event(organizer, **fields):
    doc = {
        "organizer_id": str(organizer["_id"]),
        "title": "Harbour Fest",
        "status": "planning",
        "is_public": True,
        "seeking_vendors": True,
        "seeking_sponsors": False,
        "created_at": datetime.utcnow(),
        **fields,
    }
    return str(run(database.events_collection.insert_one(doc)).inserted_id)


def _vendor(owner=None, status="approved", name="Blue Plate Catering"):
    doc = {
        "name": name,
        "category": "catering",
        "status": status,
        "owner_id": str(owner["_id"]) if owner else None,
        "contact_email": "hello@blueplate.example",
        "created_at": datetime.utcnow(),
    }
    return str(run(database.vendors_collection.insert_one(doc)).inserted_id)


@pytest.fixture()
def vendor_owner():
    return insert_user(name="Vera Vendor", email="vera@example.com")


# -------------------
# EVENT PARTNERS
# -------------------
def test_add_vendor_to_event_is_idempotent(client, organizer):
    event_id = _event(organizer)
    vendor_id = _vendor()

    r = client.post(f"/api/events/{event_id}/vendors", json={"vendor_id": vendor_id, "proposed_budget": 800},
                    headers=auth_headers(organizer))
    assert r.status_code == 200
    assert r.json()["status"] == "inquiry"
    assert r.json()["existed"] is False
    assert r.json()["partner"]["name"] == "Blue Plate Catering"

    r = client.post(f"/api/events/{event_id}/vendors", json={"vendor_id": vendor_id}, headers=auth_headers(organizer))
    assert r.json()["existed"] is True
    assert run(database.event_vendors_collection.count_documents({})) == 1


def test_partner_status_triggers_webhook(client, organizer):
    run(database.webhooks_collection.insert_one({
        "user_id": str(organizer["_id"]), "name": "hook", "url": "https://hooks.example.com/in",
        "events": ["vendor.confirmed"], "status": "active", "secret": "whsec_test",
    }))
    event_id = _event(organizer)
    link = client.post(f"/api/events/{event_id}/vendors", json={"vendor_id": _vendor()},
                       headers=auth_headers(organizer)).json()

    r = client.patch(f"/api/events/{event_id}/vendors/{link['id']}", json={"status": "confirmed", "final_budget": 750},
                     headers=auth_headers(organizer))
    assert r.json()["status"] == "confirmed"
    assert r.json()["final_budget"] == 750

    delivery = run(database.webhook_deliveries_collection.find_one({}))
    assert delivery["payload"]["data"]["vendor_name"] == "Blue Plate Catering"

    client.patch(f"/api/events/{event_id}/vendors/{link['id']}", json={"status": "confirmed"},
                 headers=auth_headers(organizer))
    assert run(database.webhook_deliveries_collection.count_documents({})) == 1


def test_partners_listed_and_removed(client, organizer, other_organizer):
    event_id = _event(organizer)
    sponsor_id = str(run(database.sponsors_collection.insert_one({
        "name": "Acme", "industry": "technology", "status": "approved", "created_at": datetime.utcnow(),
    })).inserted_id)
    link = client.post(f"/api/events/{event_id}/sponsors", json={"sponsor_id": sponsor_id},
                       headers=auth_headers(organizer)).json()

    assert client.get(f"/api/events/{event_id}/sponsors", headers=auth_headers(other_organizer)).status_code == 403
    r = client.get(f"/api/events/{event_id}/sponsors", headers=auth_headers(organizer))
    assert [row["partner"]["name"] for row in r.json()] == ["Acme"]
    assert client.get(f"/api/sponsors/by-event/{event_id}").json()[0]["partner_id"] == sponsor_id

    r = client.delete(f"/api/events/{event_id}/sponsors/{link['id']}", headers=auth_headers(organizer))
    assert r.status_code == 200
    r = client.delete(f"/api/events/{event_id}/sponsors/{link['id']}", headers=auth_headers(organizer))
    assert r.status_code == 404


def test_add_unknown_vendor(client, organizer):
    event_id = _event(organizer)
    r = client.post(f"/api/events/{event_id}/vendors", json={"vendor_id": "64b7f0c2e4b0a1a2b3c4d5e6"},
                    headers=auth_headers(organizer))
    assert r.status_code == 404


# -------------------
# APPLICATIONS
# -------------------
def test_self_service_application(client, organizer, vendor_owner):
    event_id = _event(organizer)
    vendor_id = _vendor(vendor_owner)

    r = client.post("/api/applications/self", json={
        "event_id": event_id, "applicant_type": "vendor", "applicant_id": vendor_id, "message": "We cater!",
    }, headers=auth_headers(vendor_owner))
    assert r.status_code == 201
    body = r.json()
    assert body["status"] == "pending"
    assert body["applicant_name"] == "Blue Plate Catering"
    assert body["event_title"] == "Harbour Fest"

    notification = run(database.notifications_collection.find_one({"user_id": str(organizer["_id"])}))
    assert notification["type"] == "vendor_application"

    r = client.post("/api/applications/self", json={
        "event_id": event_id, "applicant_type": "vendor", "applicant_id": vendor_id,
    }, headers=auth_headers(vendor_owner))
    assert r.status_code == 409


def test_self_service_rules(client, organizer, vendor_owner, other_organizer):
    vendor_id = _vendor(vendor_owner)
    private_event = _event(organizer, is_public=False)
    not_seeking = _event(organizer, seeking_vendors=False)
    open_event = _event(organizer)
    pending_vendor = _vendor(vendor_owner, status="pending", name="Pending Pies")

    def submit(event_id, applicant_id, user):
        return client.post("/api/applications/self", json={
            "event_id": event_id, "applicant_type": "vendor", "applicant_id": applicant_id,
        }, headers=auth_headers(user))

    assert submit(private_event, vendor_id, vendor_owner).status_code == 400
    assert submit(not_seeking, vendor_id, vendor_owner).status_code == 400
    assert submit(open_event, pending_vendor, vendor_owner).status_code == 400
    assert submit(open_event, vendor_id, other_organizer).status_code == 403


def test_admin_submission_blocks_duplicates(client, admin, organizer):
    event_id = _event(organizer, seeking_vendors=False)
    vendor_id = _vendor()
    payload = {"event_id": event_id, "applicant_type": "vendor", "applicant_id": vendor_id}

    r = client.post("/api/applications", json=payload, headers=auth_headers(admin))
    assert r.status_code == 201
    assert r.json()["submitted_by"] == str(admin["_id"])

    assert client.post("/api/applications", json=payload, headers=auth_headers(admin)).status_code == 409
    assert client.post("/api/applications", json=payload, headers=auth_headers(organizer)).status_code == 403


def test_accepting_application_confirms_partner(client, organizer, vendor_owner):
    event_id = _event(organizer)
    vendor_id = _vendor(vendor_owner)
    application = client.post("/api/applications/self", json={
        "event_id": event_id, "applicant_type": "vendor", "applicant_id": vendor_id, "proposed_budget": 1200,
    }, headers=auth_headers(vendor_owner)).json()

    r = client.get(f"/api/applications/event/{event_id}/count", headers=auth_headers(organizer))
    assert r.json() == {"total": 1, "pending": 1, "accepted": 0}
    assert client.get("/api/applications/pending-count", headers=auth_headers(organizer)).json() == {"count": 1}

    r = client.patch(f"/api/applications/{application['application_id']}/status", json={"status": "accepted"},
                     headers=auth_headers(organizer))
    assert r.status_code == 200
    assert r.json()["status"] == "accepted"
    assert r.json()["responded_by"] == str(organizer["_id"])
    assert r.json()["rejection_reason"] is None

    link = run(database.event_vendors_collection.find_one({"event_id": event_id}))
    assert link["status"] == "confirmed"
    assert link["proposed_budget"] == 1200

    decision = run(database.notifications_collection.find_one({"user_id": str(vendor_owner["_id"])}))
    assert decision["type"] == "application_decision"

    r = client.post(f"/api/applications/{application['application_id']}/withdraw", headers=auth_headers(vendor_owner))
    assert r.status_code == 409


def test_reject_and_reapply(client, organizer, vendor_owner):
    event_id = _event(organizer)
    vendor_id = _vendor(vendor_owner)
    payload = {"event_id": event_id, "applicant_type": "vendor", "applicant_id": vendor_id}
    application = client.post("/api/applications/self", json=payload, headers=auth_headers(vendor_owner)).json()

    r = client.patch(f"/api/applications/{application['application_id']}/status",
                     json={"status": "rejected", "rejection_reason": "full"}, headers=auth_headers(organizer))
    assert r.json()["rejection_reason"] == "full"

    r = client.post("/api/applications/self", json=payload, headers=auth_headers(vendor_owner))
    assert r.status_code == 201


def test_withdraw_and_status_on_withdrawn(client, organizer, vendor_owner, other_organizer):
    event_id = _event(organizer)
    vendor_id = _vendor(vendor_owner)
    application = client.post("/api/applications/self", json={
        "event_id": event_id, "applicant_type": "vendor", "applicant_id": vendor_id,
    }, headers=auth_headers(vendor_owner)).json()
    app_id = application["application_id"]

    assert client.post(f"/api/applications/{app_id}/withdraw", headers=auth_headers(other_organizer)).status_code == 403
    r = client.post(f"/api/applications/{app_id}/withdraw", headers=auth_headers(vendor_owner))
    assert r.json()["status"] == "withdrawn"

    r = client.patch(f"/api/applications/{app_id}/status", json={"status": "accepted"}, headers=auth_headers(organizer))
    assert r.status_code == 409


def test_application_listings(client, organizer, vendor_owner, admin):
    event_id = _event(organizer)
    vendor_id = _vendor(vendor_owner)
    client.post("/api/applications/self", json={
        "event_id": event_id, "applicant_type": "vendor", "applicant_id": vendor_id,
    }, headers=auth_headers(vendor_owner))

    r = client.get(f"/api/applications/event/{event_id}", params={"applicant_type": "vendor"}, headers=auth_headers(organizer))
    assert [a["applicant_id"] for a in r.json()] == [vendor_id]
    assert client.get(f"/api/applications/event/{event_id}", headers=auth_headers(vendor_owner)).status_code == 403

    r = client.get("/api/applications/mine", headers=auth_headers(vendor_owner))
    assert [a["event_title"] for a in r.json()] == ["Harbour Fest"]
    assert client.get("/api/applications/mine", headers=auth_headers(organizer)).json() == []

    r = client.get(f"/api/applications/applicant/vendor/{vendor_id}", headers=auth_headers(admin))
    assert len(r.json()) == 1
