from datetime import datetime, timedelta
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, Query

from auth.user_role_utils import verify_organizer, verify_admin, verify_superadmin, get_managed_event
from constants import ROLE_ORGANIZER, DIRECTORY_STATUS_APPROVED, DIRECTORY_STATUS_PENDING
from controllers.budget_controller import summarize_budget
from controllers.event_task_controller import summarize_tasks
from database import (
    users_collection,
    events_collection,
    vendors_collection,
    sponsors_collection,
    event_vendors_collection,
    event_sponsors_collection,
    event_applications_collection,
    event_tasks_collection,
    budget_items_collection,
    attendees_collection,
)
from middleware.global_rate_limit import rate_limit

router = APIRouter(prefix="/analytics", tags=["analytics"])

PERIODS = {"7d": (7, 1, 7), "30d": (30, 1, 30), "90d": (90, 7, 12)}


def percent_change(current: int, previous: int) -> int:
    if previous > 0:
        return round((current - previous) / previous * 100)
    return 100 if current > 0 else 0


def bucket_counts(timestamps: List[datetime], start: datetime, bucket_days: int, buckets: int) -> List[dict]:
    """Count timestamps into consecutive buckets of bucket_days starting at start."""
    size = timedelta(days=bucket_days)
    series = []
    for i in range(buckets):
        bucket_start = start + i * size
        bucket_end = bucket_start + size
        series.append({
            "date": bucket_start.strftime("%Y-%m-%d"),
            "count": sum(1 for t in timestamps if bucket_start <= t < bucket_end),
        })
    return series


def _in_range(docs, start: datetime, end: datetime) -> List[dict]:
    return [d for d in docs if d.get("created_at") and start <= d["created_at"] < end]


def _by_id(docs) -> dict:
    return {str(d["_id"]): d for d in docs}


# -------------------
# ORGANIZER
# -------------------
@router.get("/dashboard")
async def organizer_dashboard(current_user: dict = Depends(verify_organizer)):
    now = datetime.utcnow()
    events = await events_collection.find({"organizer_id": str(current_user["_id"])}).to_list(length=None)
    event_ids = [str(e["_id"]) for e in events]

    vendor_links = await event_vendors_collection.find({"event_id": {"$in": event_ids}}).to_list(length=None)
    sponsor_links = await event_sponsors_collection.find({"event_id": {"$in": event_ids}}).to_list(length=None)
    attendees = await attendees_collection.find({"event_id": {"$in": event_ids}}, {"event_id": 1, "status": 1}).to_list(length=None)
    tasks = await event_tasks_collection.find({"event_id": {"$in": event_ids}}).to_list(length=None)

    def for_event(rows, event_id):
        return [r for r in rows if r["event_id"] == event_id]

    per_event = []
    for event in sorted(events, key=lambda e: e.get("start_date") or datetime.max):
        event_id = str(event["_id"])
        event_vendors = for_event(vendor_links, event_id)
        event_sponsors = for_event(sponsor_links, event_id)
        event_attendees = for_event(attendees, event_id)
        per_event.append({
            "event_id": event_id,
            "title": event["title"],
            "status": event.get("status"),
            "start_date": event.get("start_date"),
            "vendors": {
                "total": len(event_vendors),
                "confirmed": sum(1 for v in event_vendors if v["status"] == "confirmed"),
            },
            "sponsors": {
                "total": len(event_sponsors),
                "confirmed": sum(1 for s in event_sponsors if s["status"] == "confirmed"),
            },
            "attendees": {
                "total": len(event_attendees),
                "checked_in": sum(1 for a in event_attendees if a["status"] == "checked_in"),
            },
            "task_completion_rate": summarize_tasks(for_event(tasks, event_id), now).completion_rate,
        })

    return {
        "stats": {
            "total_events": len(events),
            "upcoming_events": sum(1 for e in events if e.get("start_date") and e["start_date"] > now),
            "active_events": sum(1 for e in events if e.get("status") == "active"),
        },
        "events": per_event,
    }


@router.get("/events/{event_id}/performance")
async def event_performance(event_id: str, current_user: dict = Depends(verify_organizer)):
    event = await get_managed_event(event_id, current_user)
    attendees = await attendees_collection.find({"event_id": event_id}).to_list(length=None)
    tasks = await event_tasks_collection.find({"event_id": event_id}).to_list(length=None)
    budget_items = await budget_items_collection.find({"event_id": event_id}).to_list(length=None)
    vendor_links = await event_vendors_collection.find({"event_id": event_id}).to_list(length=None)
    sponsor_links = await event_sponsors_collection.find({"event_id": event_id}).to_list(length=None)

    active_attendees = [a for a in attendees if a["status"] != "cancelled"]
    checked_in = sum(1 for a in attendees if a["status"] == "checked_in")
    expected = event.get("expected_attendees")
    return {
        "event_id": event_id,
        "title": event["title"],
        "attendance": {
            "registered": len(active_attendees),
            "checked_in": checked_in,
            "no_show": sum(1 for a in attendees if a["status"] == "no_show"),
            "expected": expected,
            "check_in_rate": round(checked_in / len(active_attendees) * 100) if active_attendees else 0,
            "capacity_rate": round(len(active_attendees) / expected * 100) if expected else None,
        },
        "tasks": summarize_tasks(tasks).model_dump(),
        "budget": summarize_budget(budget_items, event.get("budget")).model_dump(),
        "partners": {
            "vendors_confirmed": sum(1 for v in vendor_links if v["status"] == "confirmed"),
            "sponsors_confirmed": sum(1 for s in sponsor_links if s["status"] == "confirmed"),
            "sponsor_funding": sum(s.get("final_budget") or 0 for s in sponsor_links if s["status"] == "confirmed"),
        },
    }


# -------------------
# PLATFORM
# -------------------
@router.get("/superadmin", dependencies=[Depends(rate_limit("admin"))])
async def superadmin_dashboard(superadmin: dict = Depends(verify_superadmin)):
    users = await users_collection.find({}, {"role": 1}).to_list(length=None)
    recent_events = await events_collection.find({}).sort("created_at", -1).to_list(length=10)
    organizer_ids = [ObjectId(e["organizer_id"]) for e in recent_events if ObjectId.is_valid(e["organizer_id"])]
    organizers = _by_id(await users_collection.find({"_id": {"$in": organizer_ids}}, {"name": 1}).to_list(length=None))

    return {
        "stats": {
            "total_organizers": sum(1 for u in users if (u.get("role") or ROLE_ORGANIZER) == ROLE_ORGANIZER),
            "total_events": await events_collection.count_documents({}),
            "approved_vendors": await vendors_collection.count_documents({"status": DIRECTORY_STATUS_APPROVED}),
            "approved_sponsors": await sponsors_collection.count_documents({"status": DIRECTORY_STATUS_APPROVED}),
        },
        "pending": {
            "vendors": await vendors_collection.count_documents({"status": DIRECTORY_STATUS_PENDING}),
            "sponsors": await sponsors_collection.count_documents({"status": DIRECTORY_STATUS_PENDING}),
        },
        "recent_events": [
            {
                "event_id": str(e["_id"]),
                "title": e["title"],
                "status": e.get("status"),
                "created_at": e.get("created_at"),
                "organizer_name": organizers.get(e["organizer_id"], {}).get("name"),
            }
            for e in recent_events
        ],
    }


def compute_admin_analytics(users: List[dict], events: List[dict], applications: List[dict],
                            period: str, now: Optional[datetime] = None) -> dict:
    """Growth time series plus period-over-period comparison."""
    days, bucket_days, buckets = PERIODS[period]
    end = now or datetime.utcnow()
    start = end - timedelta(days=days)
    previous_start = start - timedelta(days=days)
    series_start = end - timedelta(days=bucket_days * buckets)

    period_users = _in_range(users, start, end)
    period_events = _in_range(events, start, end)
    period_applications = _in_range(applications, start, end)

    accepted = sum(1 for a in period_applications if a["status"] == "accepted")
    rejected = sum(1 for a in period_applications if a["status"] == "rejected")
    return {
        "period": period,
        "user_growth": bucket_counts([u["created_at"] for u in users if u.get("created_at")], series_start, bucket_days, buckets),
        "event_creations": bucket_counts([e["created_at"] for e in events if e.get("created_at")], series_start, bucket_days, buckets),
        "application_stats": {
            "total": len(period_applications),
            "pending": sum(1 for a in period_applications if a["status"] in ("pending", "under_review")),
            "accepted": accepted,
            "rejected": rejected,
            "approval_rate": round(accepted / (accepted + rejected) * 100) if accepted + rejected else 0,
        },
        "summary": {
            "total_users": len(users),
            "new_users": len(period_users),
            "user_change": percent_change(len(period_users), len(_in_range(users, previous_start, start))),
            "total_events": len(events),
            "new_events": len(period_events),
            "event_change": percent_change(len(period_events), len(_in_range(events, previous_start, start))),
            "active_events": sum(1 for e in events if e.get("status") == "active"),
        },
    }


@router.get("/admin", dependencies=[Depends(rate_limit("admin"))])
async def admin_analytics(
    period: str = Query("30d", pattern="^(7d|30d|90d)$"),
    admin: dict = Depends(verify_admin),
):
    users = await users_collection.find({}, {"created_at": 1}).to_list(length=None)
    events = await events_collection.find({}, {"created_at": 1, "status": 1}).to_list(length=None)
    applications = await event_applications_collection.find({}, {"created_at": 1, "status": 1}).to_list(length=None)
    return compute_admin_analytics(users, events, applications, period)
