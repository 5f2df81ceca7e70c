from datetime import datetime

import database
from conftest import auth_headers, run
from controllers.budget_controller import summarize_budget


def _event(organizer, budget=5000):
    doc = {"organizer_id": str(organizer["_id"]), "title": "Harbour Fest", "status": "planning",
           "budget": budget, "created_at": datetime.utcnow()}
    return str(run(database.events_collection.insert_one(doc)).inserted_id)


ITEMS = [
    {"category": "venue", "estimated_amount": 1000, "actual_amount": 1200, "status": "paid"},
    {"category": "catering", "estimated_amount": 500, "status": "committed"},
    {"category": "av", "estimated_amount": 300, "status": "planned"},
    {"category": "misc", "estimated_amount": 999, "actual_amount": 999, "status": "cancelled"},
]


def test_summarize_budget_ignores_cancelled_items():
    summary = summarize_budget(ITEMS, 5000)
    assert summary.item_count == 3
    assert summary.total_estimated == 1800
    assert summary.total_actual == 1200
    assert summary.total_paid == 1200
    assert summary.total_committed == 500
    assert summary.total_planned == 300
    assert summary.variance == -600
    assert summary.variance_percent == -33.33
    assert summary.remaining == 3300
    assert "misc" not in summary.by_category
    assert summary.by_category["venue"].actual == 1200


def test_summarize_budget_without_event_budget():
    summary = summarize_budget([], None)
    assert summary.variance_percent == 0
    assert summary.remaining is None


def test_budget_item_crud(client, organizer):
    event_id = _event(organizer)
    r = client.post(f"/api/events/{event_id}/budget",
                    json={"name": " Hall rental ", "category": "venue", "estimated_amount": 1000},
                    headers=auth_headers(organizer))
    assert r.status_code == 201
    item = r.json()
    assert item["name"] == "Hall rental"
    assert item["status"] == "planned"
    assert item["paid_at"] is None

    r = client.patch(f"/api/events/{event_id}/budget/{item['item_id']}",
                     json={"status": "paid", "actual_amount": 950, "name": None}, headers=auth_headers(organizer))
    assert r.json()["status"] == "paid"
    assert r.json()["paid_at"] is not None
    assert r.json()["name"] == "Hall rental"

    r = client.get(f"/api/events/{event_id}/budget/summary", headers=auth_headers(organizer))
    assert r.json()["total_paid"] == 950
    assert r.json()["remaining"] == 4050

    r = client.get(f"/api/events/{event_id}/budget", params={"status": "planned"}, headers=auth_headers(organizer))
    assert r.json() == []

    assert client.delete(f"/api/events/{event_id}/budget/{item['item_id']}", headers=auth_headers(organizer)).status_code == 200
    assert client.delete(f"/api/events/{event_id}/budget/{item['item_id']}", headers=auth_headers(organizer)).status_code == 404


def test_budget_rejects_negative_amounts(client, organizer):
    event_id = _event(organizer)
    r = client.post(f"/api/events/{event_id}/budget", json={"name": "Refund", "category": "misc", "estimated_amount": -5},
                    headers=auth_headers(organizer))
    assert r.status_code == 422


def test_budget_is_private(client, organizer, other_organizer):
    event_id = _event(organizer)
    assert client.get(f"/api/events/{event_id}/budget", headers=auth_headers(other_organizer)).status_code == 403
