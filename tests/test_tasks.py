from datetime import datetime, timedelta

import database
from conftest import auth_headers, run
from controllers.event_task_controller import summarize_tasks, task_sort_key

NOW = datetime(2030, 1, 1, 12, 0, 0)


def _event(organizer, **fields):
    doc = {
        "organizer_id": str(organizer["_id"]),
        "title": "Harbour Fest",
        "status": "planning",
        "start_date": datetime(2030, 6, 1, 10, 0, 0),
        "created_at": datetime.utcnow(),
        **fields,
    }
    return str(run(database.events_collection.insert_one(doc)).inserted_id)


def _create_task(client, user, event_id, **fields):
    payload = {"title": "Book venue"}
    payload.update(fields)
    r = client.post(f"/api/events/{event_id}/tasks", json=payload, headers=auth_headers(user))
    assert r.status_code == 201, r.text
    return r.json()


def test_summarize_tasks():
    tasks = [
        {"status": "completed", "due_date": NOW - timedelta(days=3), "priority": "urgent"},
        {"status": "todo", "due_date": NOW - timedelta(days=1), "priority": "urgent"},
        {"status": "in_progress", "due_date": NOW + timedelta(days=2)},
        {"status": "todo", "due_date": NOW + timedelta(days=30)},
    ]
    summary = summarize_tasks(tasks, now=NOW)
    assert summary.total == 4
    assert summary.by_status == {"todo": 2, "in_progress": 1, "blocked": 0, "completed": 1}
    assert summary.overdue == 1
    assert summary.due_this_week == 1
    assert summary.urgent == 1
    assert summary.completion_rate == 25


def test_summarize_no_tasks():
    assert summarize_tasks([], now=NOW).completion_rate == 0


def test_task_sort_key_orders_by_position_priority_then_due_date():
    tasks = [
        {"title": "c", "sort_order": 2, "priority": "urgent"},
        {"title": "b", "sort_order": 1, "priority": "low", "due_date": NOW},
        {"title": "undated", "sort_order": 1, "priority": "high"},
        {"title": "a", "sort_order": 1, "priority": "high", "due_date": NOW},
    ]
    assert [t["title"] for t in sorted(tasks, key=task_sort_key)] == ["a", "undated", "b", "c"]


def test_create_and_list_tasks(client, organizer):
    event_id = _event(organizer)
    first = _create_task(client, organizer, event_id, title="  Book venue  ", priority="urgent")
    second = _create_task(client, organizer, event_id, title="Order badges", category="marketing")
    assert first["title"] == "Book venue"
    assert (first["sort_order"], second["sort_order"]) == (1, 2)

    r = client.get(f"/api/events/{event_id}/tasks", headers=auth_headers(organizer))
    assert [t["title"] for t in r.json()] == ["Book venue", "Order badges"]

    r = client.get(f"/api/events/{event_id}/tasks", params={"category": "marketing"}, headers=auth_headers(organizer))
    assert [t["title"] for t in r.json()] == ["Order badges"]


def test_tasks_are_private_to_the_organizer(client, organizer, other_organizer):
    event_id = _event(organizer)
    r = client.get(f"/api/events/{event_id}/tasks", headers=auth_headers(other_organizer))
    assert r.status_code == 403


def test_completing_task_sets_timestamp_and_fires_webhook(client, organizer):
    run(database.webhooks_collection.insert_one({
        "user_id": str(organizer["_id"]), "name": "hook", "url": "https://hooks.example.com/in",
        "events": ["task.completed"], "status": "active", "secret": "whsec_test",
    }))
    event_id = _event(organizer)
    task = _create_task(client, organizer, event_id)

    r = client.patch(f"/api/events/{event_id}/tasks/{task['task_id']}", json={"status": "completed", "title": None},
                     headers=auth_headers(organizer))
    assert r.json()["status"] == "completed"
    assert r.json()["completed_at"] is not None
    assert r.json()["title"] == "Book venue"

    delivery = run(database.webhook_deliveries_collection.find_one({}))
    assert delivery["event"] == "task.completed"
    assert delivery["payload"]["data"]["event_title"] == "Harbour Fest"


def test_toggle_task(client, organizer):
    event_id = _event(organizer)
    task = _create_task(client, organizer, event_id)

    r = client.post(f"/api/events/{event_id}/tasks/{task['task_id']}/toggle", headers=auth_headers(organizer))
    assert r.json()["status"] == "completed"
    r = client.post(f"/api/events/{event_id}/tasks/{task['task_id']}/toggle", headers=auth_headers(organizer))
    assert r.json()["status"] == "todo"
    assert r.json()["completed_at"] is None


def test_delete_task(client, organizer):
    event_id = _event(organizer)
    task = _create_task(client, organizer, event_id)
    assert client.delete(f"/api/events/{event_id}/tasks/{task['task_id']}", headers=auth_headers(organizer)).status_code == 200
    assert client.delete(f"/api/events/{event_id}/tasks/{task['task_id']}", headers=auth_headers(organizer)).status_code == 404


def test_template_due_dates_count_back_from_start(client, organizer):
    event_id = _event(organizer)
    r = client.post(f"/api/events/{event_id}/tasks/template", json={"template": "workshop"}, headers=auth_headers(organizer))
    assert r.json() == {"created": 7}

    venue = run(database.event_tasks_collection.find_one({"title": "Book workshop venue"}))
    assert venue["due_date"] == datetime(2030, 6, 1, 10, 0, 0) - timedelta(days=45)
    assert venue["sort_order"] == 1


def test_unknown_template_falls_back_to_conference(client, organizer):
    event_id = _event(organizer, start_date=None)
    r = client.post(f"/api/events/{event_id}/tasks/template", json={"template": "picnic"}, headers=auth_headers(organizer))
    assert r.json() == {"created": 12}
    assert run(database.event_tasks_collection.count_documents({"due_date": None})) == 12


def test_reorder_tasks(client, organizer):
    event_id = _event(organizer)
    a = _create_task(client, organizer, event_id, title="A")
    b = _create_task(client, organizer, event_id, title="B")

    r = client.post(f"/api/events/{event_id}/tasks/reorder", json={"task_ids": [b["task_id"], a["task_id"]]},
                    headers=auth_headers(organizer))
    assert r.json() == {"reordered": 2}
    r = client.get(f"/api/events/{event_id}/tasks", headers=auth_headers(organizer))
    assert [t["title"] for t in r.json()] == ["B", "A"]

    r = client.post(f"/api/events/{event_id}/tasks/reorder", json={"task_ids": [a["task_id"], a["task_id"]]},
                    headers=auth_headers(organizer))
    assert r.status_code == 400


def test_reorder_rejects_foreign_tasks(client, organizer):
    event_id = _event(organizer)
    other_event = _event(organizer, title="Other")
    task = _create_task(client, organizer, other_event)
    r = client.post(f"/api/events/{event_id}/tasks/reorder", json={"task_ids": [task["task_id"]]},
                    headers=auth_headers(organizer))
    assert r.status_code == 400


def test_task_summary_endpoint(client, organizer):
    event_id = _event(organizer)
    _create_task(client, organizer, event_id, status="completed")
    _create_task(client, organizer, event_id)
    r = client.get(f"/api/events/{event_id}/tasks/summary", headers=auth_headers(organizer))
    assert r.json()["total"] == 2
    assert r.json()["completion_rate"] == 50
