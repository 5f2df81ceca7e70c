"""
Security audit trail.
Writes are best effort: a failed audit insert is logged and never fails the request.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Request

from constants import AUDIT_LOG_RETENTION_DAYS
from database import audit_logs_collection
from utils.request_info import get_client_ip, get_user_agent

logger = logging.getLogger(__name__)

AUDIT_ACTIONS = (
    "login", "login_failed", "logout", "signup",
    "password_reset_requested", "password_reset_completed",
    "role_changed",
    "event_created", "event_updated", "event_deleted",
    "vendor_approved", "vendor_rejected", "sponsor_approved", "sponsor_rejected",
    "settings_changed", "rate_limited", "account_locked",
    "webhook_created", "webhook_deleted", "data_exported",
)
AUDIT_RESOURCES = ("user", "event", "vendor", "sponsor", "webhook", "settings", "auth")
AUDIT_STATUSES = ("success", "failure", "blocked")


async def log_audit_event(
    action: str,
    resource: str,
    status: str = "success",
    user: Optional[dict] = None,
    user_email: Optional[str] = None,
    resource_id: Optional[str] = None,
    request: Optional[Request] = None,
    details: Optional[dict] = None,
) -> None:
    entry = {
        "user_id": str(user["_id"]) if user else None,
        "user_email": user_email or (user.get("email") if user else None),
        "action": action,
        "resource": resource,
        "resource_id": resource_id,
        "status": status,
        "ip_address": get_client_ip(request) if request else None,
        "user_agent": get_user_agent(request),
        "details": details or {},
        "created_at": datetime.utcnow(),
    }
    try:
        await audit_logs_collection.insert_one(entry)
    except Exception as e:
        logger.warning(f"Could not write audit entry '{action}': {e}")


async def cleanup_audit_logs(retention_days: int = AUDIT_LOG_RETENTION_DAYS) -> int:
    cutoff = datetime.utcnow() - timedelta(days=retention_days)
    result = await audit_logs_collection.delete_many({"created_at": {"$lt": cutoff}})
    if result.deleted_count:
        logger.info(f"Removed {result.deleted_count} audit entries older than {retention_days} days")
    return result.deleted_count
