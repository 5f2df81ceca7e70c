from datetime import datetime, timedelta
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, BackgroundTasks, Depends, Query

from auth.user_role_utils import verify_organizer, get_managed_event
from config.task_templates import TASK_TEMPLATES, DEFAULT_TEMPLATE
from constants import TASK_PRIORITY_ORDER, TASK_STATUSES
from database import event_tasks_collection
from models.event_task import (
    TaskCreate,
    TaskUpdate,
    TaskTemplateRequest,
    TaskReorderRequest,
    TaskResponse,
    TaskSummary,
    to_task_response,
)
from utils.dates import normalize_datetimes
from utils.exceptions import NotFoundException, ValidationException
from utils.webhook_dispatcher import trigger_webhooks

router = APIRouter(prefix="/events/{event_id}/tasks", tags=["event_tasks"])


def task_sort_key(task: dict):
    due_date = task.get("due_date")
    return (
        task.get("sort_order", 0),
        TASK_PRIORITY_ORDER.get(task.get("priority"), len(TASK_PRIORITY_ORDER)),
        due_date is None,
        due_date or datetime.min,
    )


def summarize_tasks(tasks: List[dict], now: Optional[datetime] = None) -> TaskSummary:
    now = now or datetime.utcnow()
    week_ahead = now + timedelta(days=7)
    by_status = {status: 0 for status in TASK_STATUSES}
    overdue = due_this_week = urgent = 0

    for task in tasks:
        status = task.get("status", "todo")
        by_status[status] = by_status.get(status, 0) + 1
        if status == "completed":
            continue
        due_date = task.get("due_date")
        if due_date and due_date < now:
            overdue += 1
        elif due_date and due_date <= week_ahead:
            due_this_week += 1
        if task.get("priority") == "urgent":
            urgent += 1

    total = len(tasks)
    completion_rate = round(by_status["completed"] / total * 100) if total else 0
    return TaskSummary(
        total=total,
        by_status=by_status,
        overdue=overdue,
        due_this_week=due_this_week,
        urgent=urgent,
        completion_rate=completion_rate,
    )


async def _next_sort_order(event_id: str) -> int:
    last = await event_tasks_collection.find({"event_id": event_id}).sort("sort_order", -1).to_list(length=1)
    return last[0].get("sort_order", 0) + 1 if last else 1


async def _get_task(event_id: str, task_id: str) -> dict:
    task = await event_tasks_collection.find_one({"_id": ObjectId(task_id), "event_id": event_id})
    if not task:
        raise NotFoundException("Task", task_id)
    return task


def _task_webhook_data(task: dict, event: dict) -> dict:
    data = to_task_response(task).model_dump(mode="json")
    data["event_title"] = event["title"]
    return data


# -------------------
# READ
# -------------------
@router.get("", response_model=List[TaskResponse])
async def list_tasks(
        event_id: str,
        status: Optional[str] = Query(None),
        category: Optional[str] = Query(None),
        current_user: dict = Depends(verify_organizer)
):
    await get_managed_event(event_id, current_user)
    query = {"event_id": event_id}
    if status:
        query["status"] = status
    if category:
        query["category"] = category
    tasks = await event_tasks_collection.find(query).to_list(length=None)
    return [to_task_response(t) for t in sorted(tasks, key=task_sort_key)]


@router.get("/summary", response_model=TaskSummary)
async def get_task_summary(event_id: str, current_user: dict = Depends(verify_organizer)):
    await get_managed_event(event_id, current_user)
    tasks = await event_tasks_collection.find({"event_id": event_id}).to_list(length=None)
    return summarize_tasks(tasks)


# -------------------
# WRITE
# -------------------
@router.post("", response_model=TaskResponse, status_code=201)
async def create_task(
        event_id: str,
        data: TaskCreate,
        background_tasks: BackgroundTasks,
        current_user: dict = Depends(verify_organizer)
):
    event = await get_managed_event(event_id, current_user)
    now = datetime.utcnow()
    task = normalize_datetimes(data.model_dump())
    task.update({
        "event_id": event_id,
        "title": data.title.strip(),
        "sort_order": await _next_sort_order(event_id),
        "completed_at": now if data.status == "completed" else None,
        "created_by": str(current_user["_id"]),
        "created_at": now,
        "updated_at": now,
    })
    result = await event_tasks_collection.insert_one(task)
    task["_id"] = result.inserted_id

    await trigger_webhooks(event["organizer_id"], "task.created", _task_webhook_data(task, event), background_tasks)
    return to_task_response(task)


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
        event_id: str,
        task_id: str,
        data: TaskUpdate,
        background_tasks: BackgroundTasks,
        current_user: dict = Depends(verify_organizer)
):
    event = await get_managed_event(event_id, current_user)
    task = await _get_task(event_id, task_id)

    changes = normalize_datetimes(data.model_dump(exclude_unset=True))
    for field in ("title", "category", "priority", "status"):
        if field in changes and changes[field] is None:
            del changes[field]
    updated = await _apply_task_changes(task, changes)

    if task.get("status") != "completed" and updated.get("status") == "completed":
        await trigger_webhooks(event["organizer_id"], "task.completed", _task_webhook_data(updated, event),
                               background_tasks)
    return to_task_response(updated)


async def _apply_task_changes(task: dict, changes: dict) -> dict:
    new_status = changes.get("status")
    if new_status == "completed" and task.get("status") != "completed":
        changes["completed_at"] = datetime.utcnow()
    elif new_status and new_status != "completed" and task.get("status") == "completed":
        changes["completed_at"] = None
    changes["updated_at"] = datetime.utcnow()
    return await event_tasks_collection.find_one_and_update(
        {"_id": task["_id"]}, {"$set": changes}, return_document=True
    )


@router.post("/{task_id}/toggle", response_model=TaskResponse)
async def toggle_task_complete(
        event_id: str,
        task_id: str,
        background_tasks: BackgroundTasks,
        current_user: dict = Depends(verify_organizer)
):
    event = await get_managed_event(event_id, current_user)
    task = await _get_task(event_id, task_id)
    new_status = "todo" if task.get("status") == "completed" else "completed"
    updated = await _apply_task_changes(task, {"status": new_status})
    if new_status == "completed":
        await trigger_webhooks(event["organizer_id"], "task.completed", _task_webhook_data(updated, event),
                               background_tasks)
    return to_task_response(updated)


@router.delete("/{task_id}")
async def delete_task(event_id: str, task_id: str, current_user: dict = Depends(verify_organizer)):
    await get_managed_event(event_id, current_user)
    result = await event_tasks_collection.delete_one({"_id": ObjectId(task_id), "event_id": event_id})
    if result.deleted_count == 0:
        raise NotFoundException("Task", task_id)
    return {"message": "Task deleted successfully"}


# -------------------
# TEMPLATES & ORDERING
# -------------------
@router.post("/template")
async def create_tasks_from_template(
        event_id: str,
        data: TaskTemplateRequest,
        current_user: dict = Depends(verify_organizer)
):
    """Seed the event with a starter checklist. Unknown templates fall back to the conference list."""
    event = await get_managed_event(event_id, current_user)
    template = TASK_TEMPLATES.get(data.template) or TASK_TEMPLATES[DEFAULT_TEMPLATE]
    start_date = event.get("start_date")
    sort_order = await _next_sort_order(event_id)
    now = datetime.utcnow()

    tasks = []
    for offset, item in enumerate(template):
        tasks.append({
            "event_id": event_id,
            "title": item["title"],
            "description": None,
            "category": item["category"],
            "priority": item["priority"],
            "status": "todo",
            "due_date": start_date - timedelta(days=item["days_before"]) if start_date else None,
            "assignee_name": None,
            "sort_order": sort_order + offset,
            "completed_at": None,
            "created_by": str(current_user["_id"]),
            "created_at": now,
            "updated_at": now,
        })
    await event_tasks_collection.insert_many(tasks)
    return {"created": len(tasks)}


@router.post("/reorder")
async def reorder_tasks(event_id: str, data: TaskReorderRequest, current_user: dict = Depends(verify_organizer)):
    await get_managed_event(event_id, current_user)
    if len(set(data.task_ids)) != len(data.task_ids):
        raise ValidationException("task_ids must not contain duplicates")

    ids = [ObjectId(task_id) for task_id in data.task_ids]
    found = await event_tasks_collection.count_documents({"_id": {"$in": ids}, "event_id": event_id})
    if found != len(ids):
        raise ValidationException("Every task must belong to this event")

    now = datetime.utcnow()
    for position, task_id in enumerate(ids, start=1):
        await event_tasks_collection.update_one({"_id": task_id}, {"$set": {"sort_order": position, "updated_at": now}})
    return {"reordered": len(ids)}
