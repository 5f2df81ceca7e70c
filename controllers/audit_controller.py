from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query

from auth.user_role_utils import verify_admin
from database import audit_logs_collection
from middleware.global_rate_limit import rate_limit
from utils.audit_logger import AUDIT_ACTIONS, AUDIT_RESOURCES, AUDIT_STATUSES
from utils.exceptions import ValidationException

router = APIRouter(prefix="/admin/audit", tags=["audit"], dependencies=[Depends(rate_limit("admin"))])


def _serialize(entry: dict) -> dict:
    entry = dict(entry)
    entry["id"] = str(entry.pop("_id"))
    return entry


@router.get("/logs")
async def list_audit_logs(
    action: Optional[str] = Query(None),
    resource: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    admin: dict = Depends(verify_admin),
):
    for name, value, allowed in (
        ("action", action, AUDIT_ACTIONS),
        ("resource", resource, AUDIT_RESOURCES),
        ("status", status, AUDIT_STATUSES),
    ):
        if value and value not in allowed:
            raise ValidationException(f"Unknown {name}: {value}")

    query = {}
    if action:
        query["action"] = action
    if resource:
        query["resource"] = resource
    if status:
        query["status"] = status
    if user_id:
        query["user_id"] = user_id
    entries = await audit_logs_collection.find(query).sort("created_at", -1).to_list(length=limit)
    return [_serialize(e) for e in entries]


@router.get("/stats")
async def get_audit_stats(
    hours_back: int = Query(24, ge=1, le=24 * 90),
    admin: dict = Depends(verify_admin),
):
    since = datetime.utcnow() - timedelta(hours=hours_back)
    entries = await audit_logs_collection.find(
        {"created_at": {"$gte": since}}, {"action": 1, "status": 1}
    ).to_list(length=None)

    by_action = {}
    by_status = {status: 0 for status in AUDIT_STATUSES}
    for entry in entries:
        by_action[entry["action"]] = by_action.get(entry["action"], 0) + 1
        by_status[entry["status"]] = by_status.get(entry["status"], 0) + 1

    return {
        "hours_back": hours_back,
        "total": len(entries),
        "by_action": by_action,
        "by_status": by_status,
        "failed_logins": by_action.get("login_failed", 0),
    }
