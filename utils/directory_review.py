"""
Approval workflow shared by the vendor and sponsor directories.

Both listing kinds move pending -> approved | rejected. Every decision is
written to the moderation log and the audit trail, and the listing owner
(when there is one) gets a notification plus a webhook.
"""
from datetime import datetime
from typing import Optional

from bson import ObjectId
from fastapi import BackgroundTasks, Request

from constants import DIRECTORY_STATUS_APPROVED, DIRECTORY_STATUS_REJECTED
from utils.audit_logger import log_audit_event
from utils.exceptions import ConflictException, NotFoundException
from utils.moderation_log import record_moderation_action
from utils.notifier import create_notification
from utils.webhook_dispatcher import trigger_webhooks


async def approve_listing(
    kind: str,
    collection,
    listing_id: str,
    admin: dict,
    notes: Optional[str] = None,
    request: Optional[Request] = None,
    background_tasks: Optional[BackgroundTasks] = None,
) -> dict:
    listing = await collection.find_one({"_id": ObjectId(listing_id)})
    if not listing:
        raise NotFoundException(kind.capitalize(), listing_id)
    if listing.get("status") == DIRECTORY_STATUS_APPROVED:
        raise ConflictException(f"{kind.capitalize()} is already approved")

    now = datetime.utcnow()
    updated = await collection.find_one_and_update(
        {"_id": listing["_id"]},
        {
            "$set": {
                "status": DIRECTORY_STATUS_APPROVED,
                "verified": True,
                "reviewed_by": str(admin["_id"]),
                "reviewed_at": now,
                "review_notes": notes,
                "updated_at": now,
            },
            "$unset": {"rejection_reason": ""},
        },
        return_document=True,
    )

    await record_moderation_action(admin, f"{kind}_approved", kind, listing_id, reason=notes,
                                   metadata={"previous_status": listing.get("status")})
    await log_audit_event(f"{kind}_approved", kind, user=admin, resource_id=listing_id, request=request)
    await _tell_owner(
        updated, kind, f"{kind}.confirmed",
        title=f"Your {kind} listing was approved",
        message=f'"{updated["name"]}" is now visible in the {kind} directory.',
        background_tasks=background_tasks,
    )
    return updated


async def reject_listing(
    kind: str,
    collection,
    listing_id: str,
    admin: dict,
    reason: str,
    notes: Optional[str] = None,
    request: Optional[Request] = None,
    background_tasks: Optional[BackgroundTasks] = None,
) -> dict:
    listing = await collection.find_one({"_id": ObjectId(listing_id)})
    if not listing:
        raise NotFoundException(kind.capitalize(), listing_id)
    if listing.get("status") == DIRECTORY_STATUS_REJECTED:
        raise ConflictException(f"{kind.capitalize()} is already rejected")

    now = datetime.utcnow()
    updated = await collection.find_one_and_update(
        {"_id": listing["_id"]},
        {"$set": {
            "status": DIRECTORY_STATUS_REJECTED,
            "verified": False,
            "reviewed_by": str(admin["_id"]),
            "reviewed_at": now,
            "review_notes": notes,
            "rejection_reason": reason,
            "updated_at": now,
        }},
        return_document=True,
    )

    await record_moderation_action(admin, f"{kind}_rejected", kind, listing_id, reason=reason,
                                   metadata={"previous_status": listing.get("status"), "notes": notes})
    await log_audit_event(f"{kind}_rejected", kind, user=admin, resource_id=listing_id, request=request,
                          details={"reason": reason})
    await _tell_owner(
        updated, kind, f"{kind}.declined",
        title=f"Your {kind} listing was not approved",
        message=f'"{updated["name"]}" was rejected: {reason}',
        background_tasks=background_tasks,
    )
    return updated


async def _tell_owner(listing: dict, kind: str, webhook_event: str, title: str, message: str,
                      background_tasks: Optional[BackgroundTasks]):
    owner_id = listing.get("owner_id")
    if not owner_id:
        return
    await create_notification(
        owner_id,
        f"{kind}_review",
        title,
        message,
        action_url=f"/{kind}s/{listing['_id']}",
        action_label=f"View {kind}",
        send_email=True,
    )
    await trigger_webhooks(owner_id, webhook_event, {
        f"{kind}_id": str(listing["_id"]),
        "name": listing["name"],
        "status": listing["status"],
        "rejection_reason": listing.get("rejection_reason"),
    }, background_tasks)
