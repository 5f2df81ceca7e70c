from datetime import datetime

import database
from conftest import auth_headers, run
from controllers.analytics_controller import bucket_counts, compute_admin_analytics, percent_change

NOW = datetime(2030, 3, 31, 0, 0, 0)


def test_percent_change():
    assert percent_change(15, 10) == 50
    assert percent_change(5, 10) == -50
    assert percent_change(3, 0) == 100
    assert percent_change(0, 0) == 0


def test_bucket_counts():
    start = datetime(2030, 3, 1)
    stamps = [datetime(2030, 3, 1, 5), datetime(2030, 3, 2, 23, 59), datetime(2030, 3, 3), datetime(2030, 2, 28)]
    assert bucket_counts(stamps, start, 1, 3) == [
        {"date": "2030-03-01", "count": 1},
        {"date": "2030-03-02", "count": 1},
        {"date": "2030-03-03", "count": 1},
    ]


def test_compute_admin_analytics_week():
    users = [
        {"created_at": datetime(2030, 3, 25, 10)},
        {"created_at": datetime(2030, 3, 30, 12)},
        {"created_at": datetime(2030, 3, 20)},
        {"created_at": datetime(2030, 1, 1)},
    ]
    events = [{"created_at": datetime(2030, 3, 26), "status": "active"}, {"created_at": None, "status": "draft"}]
    applications = [
        {"created_at": datetime(2030, 3, 26), "status": "accepted"},
        {"created_at": datetime(2030, 3, 27), "status": "rejected"},
        {"created_at": datetime(2030, 3, 28), "status": "pending"},
        {"created_at": datetime(2030, 2, 1), "status": "accepted"},
    ]
    result = compute_admin_analytics(users, events, applications, "7d", now=NOW)

    assert len(result["user_growth"]) == 7
    assert result["user_growth"][0]["date"] == "2030-03-24"
    assert {row["date"]: row["count"] for row in result["user_growth"]}["2030-03-25"] == 1
    assert result["summary"]["new_users"] == 2
    assert result["summary"]["user_change"] == 100
    assert result["summary"]["total_users"] == 4
    assert result["summary"]["event_change"] == 100
    assert result["summary"]["active_events"] == 1
    assert result["application_stats"] == {"total": 3, "pending": 1, "accepted": 1, "rejected": 1, "approval_rate": 50}


def test_ninety_day_period_uses_weekly_buckets():
    result = compute_admin_analytics([], [], [], "90d", now=NOW)
    assert len(result["user_growth"]) == 12
    assert result["application_stats"]["approval_rate"] == 0


def test_organizer_dashboard(client, organizer):
    event_id = str(run(database.events_collection.insert_one({
        "organizer_id": str(organizer["_id"]), "title": "Harbour Fest", "status": "active",
        "start_date": datetime(2099, 1, 1), "created_at": datetime.utcnow(),
    })).inserted_id)
    run(database.event_vendors_collection.insert_one({"event_id": event_id, "vendor_id": "v1", "status": "confirmed"}))
    run(database.attendees_collection.insert_one({"event_id": event_id, "status": "checked_in"}))
    run(database.event_tasks_collection.insert_one({"event_id": event_id, "status": "completed"}))

    r = client.get("/api/analytics/dashboard", headers=auth_headers(organizer))
    body = r.json()
    assert body["stats"] == {"total_events": 1, "upcoming_events": 1, "active_events": 1}
    event = body["events"][0]
    assert event["vendors"] == {"total": 1, "confirmed": 1}
    assert event["attendees"] == {"total": 1, "checked_in": 1}
    assert event["task_completion_rate"] == 100


def test_event_performance(client, organizer, other_organizer):
    event_id = str(run(database.events_collection.insert_one({
        "organizer_id": str(organizer["_id"]), "title": "Harbour Fest", "status": "active",
        "expected_attendees": 4, "budget": 1000, "created_at": datetime.utcnow(),
    })).inserted_id)
    for n, status in enumerate(("checked_in", "registered", "cancelled")):
        run(database.attendees_collection.insert_one(
            {"event_id": event_id, "status": status, "ticket_number": f"TKT-PERF-{n}"}))
    run(database.event_sponsors_collection.insert_one(
        {"event_id": event_id, "sponsor_id": "s1", "status": "confirmed", "final_budget": 2500}))

    r = client.get(f"/api/analytics/events/{event_id}/performance", headers=auth_headers(organizer))
    body = r.json()
    assert body["attendance"]["registered"] == 2
    assert body["attendance"]["check_in_rate"] == 50
    assert body["attendance"]["capacity_rate"] == 50
    assert body["partners"]["sponsor_funding"] == 2500
    assert body["budget"]["remaining"] == 1000

    r = client.get(f"/api/analytics/events/{event_id}/performance", headers=auth_headers(other_organizer))
    assert r.status_code == 403


def test_platform_dashboards_are_restricted(client, organizer, admin, superadmin):
    assert client.get("/api/analytics/admin", headers=auth_headers(organizer)).status_code == 403
    assert client.get("/api/analytics/superadmin", headers=auth_headers(admin)).status_code == 403

    r = client.get("/api/analytics/admin", params={"period": "7d"}, headers=auth_headers(admin))
    assert r.json()["summary"]["total_users"] == 3
    assert client.get("/api/analytics/admin", params={"period": "1y"}, headers=auth_headers(admin)).status_code == 422

    r = client.get("/api/analytics/superadmin", headers=auth_headers(superadmin))
    assert r.json()["stats"]["total_organizers"] == 1
