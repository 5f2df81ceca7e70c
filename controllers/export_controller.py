from datetime import datetime
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, Query, Request

from auth.user_role_utils import verify_admin
from database import (
    users_collection,
    vendors_collection,
    sponsors_collection,
    events_collection,
    moderation_logs_collection,
)
from middleware.global_rate_limit import rate_limit
from utils.audit_logger import log_audit_event
from utils.export_formatter import format_export

router = APIRouter(prefix="/admin/exports", tags=["exports"], dependencies=[Depends(rate_limit("admin"))])

FORMAT_PATTERN = "^(csv|json)$"

USER_HEADERS = ("id", "name", "email", "role", "status", "created_at", "last_login_at")
VENDOR_HEADERS = (
    "id", "name", "category", "status", "contact_email", "contact_phone",
    "website", "location", "price_range", "rating", "verified", "created_at",
)
SPONSOR_HEADERS = (
    "id", "name", "company_name", "industry", "status", "contact_email", "contact_phone",
    "website", "budget_min", "budget_max", "sponsorship_tiers", "created_at",
)
EVENT_HEADERS = (
    "id", "title", "event_type", "status", "start_date", "end_date", "location_type", "venue_name",
    "expected_attendees", "budget", "is_public", "organizer_name", "organizer_email", "created_at",
)
MODERATION_HEADERS = ("id", "action", "target_type", "target_id", "admin_id", "reason", "created_at")


def _date_range(field: str, after: Optional[datetime], before: Optional[datetime]) -> dict:
    bounds = {}
    if after:
        bounds["$gte"] = after
    if before:
        bounds["$lte"] = before
    return {field: bounds} if bounds else {}


def _rows(docs, headers) -> list:
    rows = []
    for doc in docs:
        row = {header: doc.get(header) for header in headers}
        row["id"] = str(doc["_id"])
        rows.append(row)
    return rows


async def _audited(rows, headers, format: str, export_type: str, resource: str,
                   admin: dict, request: Request, filters: dict) -> dict:
    await log_audit_event("data_exported", resource, user=admin, request=request,
                          details={"type": export_type, "format": format, "count": len(rows), "filters": filters})
    return format_export(rows, headers, format)


@router.get("/users")
async def export_users(
    request: Request,
    format: str = Query("csv", pattern=FORMAT_PATTERN),
    role: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    created_after: Optional[datetime] = Query(None),
    created_before: Optional[datetime] = Query(None),
    admin: dict = Depends(verify_admin),
):
    query = _date_range("created_at", created_after, created_before)
    if role:
        query["role"] = role
    if status:
        query["status"] = status
    users = await users_collection.find(query, {"password_hash": 0}).sort("created_at", -1).to_list(length=None)
    return await _audited(_rows(users, USER_HEADERS), USER_HEADERS, format, "users", "user", admin, request,
                          {"role": role, "status": status})


@router.get("/vendors")
async def export_vendors(
    request: Request,
    format: str = Query("csv", pattern=FORMAT_PATTERN),
    status: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    admin: dict = Depends(verify_admin),
):
    query = {}
    if status:
        query["status"] = status
    if category:
        query["category"] = category
    vendors = await vendors_collection.find(query).sort("name", 1).to_list(length=None)
    return await _audited(_rows(vendors, VENDOR_HEADERS), VENDOR_HEADERS, format, "vendors", "vendor", admin,
                          request, {"status": status, "category": category})


@router.get("/sponsors")
async def export_sponsors(
    request: Request,
    format: str = Query("csv", pattern=FORMAT_PATTERN),
    status: Optional[str] = Query(None),
    industry: Optional[str] = Query(None),
    admin: dict = Depends(verify_admin),
):
    query = {}
    if status:
        query["status"] = status
    if industry:
        query["industry"] = industry
    sponsors = await sponsors_collection.find(query).sort("name", 1).to_list(length=None)
    return await _audited(_rows(sponsors, SPONSOR_HEADERS), SPONSOR_HEADERS, format, "sponsors", "sponsor", admin,
                          request, {"status": status, "industry": industry})


@router.get("/events")
async def export_events(
    request: Request,
    format: str = Query("csv", pattern=FORMAT_PATTERN),
    status: Optional[str] = Query(None),
    event_type: Optional[str] = Query(None),
    created_after: Optional[datetime] = Query(None),
    created_before: Optional[datetime] = Query(None),
    start_after: Optional[datetime] = Query(None),
    start_before: Optional[datetime] = Query(None),
    admin: dict = Depends(verify_admin),
):
    query = {
        **_date_range("created_at", created_after, created_before),
        **_date_range("start_date", start_after, start_before),
    }
    if status:
        query["status"] = status
    if event_type:
        query["event_type"] = event_type
    events = await events_collection.find(query).sort("start_date", 1).to_list(length=None)

    organizer_ids = {ObjectId(e["organizer_id"]) for e in events if ObjectId.is_valid(e.get("organizer_id", ""))}
    organizers = await users_collection.find({"_id": {"$in": list(organizer_ids)}}, {"name": 1, "email": 1}).to_list(length=None)
    organizers_by_id = {str(o["_id"]): o for o in organizers}

    for event in events:
        organizer = organizers_by_id.get(event.get("organizer_id"), {})
        event["organizer_name"] = organizer.get("name")
        event["organizer_email"] = organizer.get("email")
    return await _audited(_rows(events, EVENT_HEADERS), EVENT_HEADERS, format, "events", "event", admin, request,
                          {"status": status, "event_type": event_type})


@router.get("/moderation-logs")
async def export_moderation_logs(
    request: Request,
    format: str = Query("csv", pattern=FORMAT_PATTERN),
    action: Optional[str] = Query(None),
    limit: int = Query(1000, ge=1, le=10000),
    admin: dict = Depends(verify_admin),
):
    query = {"action": action} if action else {}
    logs = await moderation_logs_collection.find(query).sort("created_at", -1).to_list(length=limit)
    return await _audited(_rows(logs, MODERATION_HEADERS), MODERATION_HEADERS, format, "moderation_logs", "user",
                          admin, request, {"action": action, "limit": limit})
