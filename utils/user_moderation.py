"""
Suspension rules shared by the single-user and bulk moderation endpoints.
"""
from datetime import datetime

from bson import ObjectId

from constants import ROLE_ADMIN, ROLE_SUPERADMIN, USER_STATUS_ACTIVE, USER_STATUS_SUSPENDED
from database import users_collection
from utils.exceptions import ConflictException, ForbiddenException, NotFoundException
from utils.moderation_log import record_moderation_action


def _check_can_moderate(actor: dict, target: dict, verb: str):
    if target.get("role") == ROLE_SUPERADMIN:
        raise ForbiddenException(f"Cannot {verb} a superadmin")
    if target.get("role") == ROLE_ADMIN and actor.get("role") != ROLE_SUPERADMIN:
        raise ForbiddenException(f"Only superadmins can {verb} admins")


async def suspend_user(actor: dict, user_id: str, reason: str) -> dict:
    target = await users_collection.find_one({"_id": ObjectId(user_id)})
    if not target:
        raise NotFoundException("User", user_id)
    _check_can_moderate(actor, target, "suspend")
    if target["_id"] == actor["_id"]:
        raise ForbiddenException("Cannot suspend yourself")
    if target.get("status") == USER_STATUS_SUSPENDED:
        raise ConflictException("User is already suspended")

    now = datetime.utcnow()
    updated = await users_collection.find_one_and_update(
        {"_id": target["_id"]},
        {"$set": {
            "status": USER_STATUS_SUSPENDED,
            "suspended_at": now,
            "suspended_reason": reason,
            "suspended_by": str(actor["_id"]),
            "updated_at": now,
        }},
        return_document=True,
    )
    await record_moderation_action(actor, "user_suspended", "user", user_id, reason=reason)
    return updated


async def unsuspend_user(actor: dict, user_id: str, reason: str = None) -> dict:
    target = await users_collection.find_one({"_id": ObjectId(user_id)})
    if not target:
        raise NotFoundException("User", user_id)
    if target.get("status") != USER_STATUS_SUSPENDED:
        raise ConflictException("User is not suspended")
    _check_can_moderate(actor, target, "unsuspend")

    updated = await users_collection.find_one_and_update(
        {"_id": target["_id"]},
        {
            "$set": {"status": USER_STATUS_ACTIVE, "updated_at": datetime.utcnow()},
            "$unset": {"suspended_at": "", "suspended_reason": "", "suspended_by": ""},
        },
        return_document=True,
    )
    await record_moderation_action(
        actor, "user_unsuspended", "user", user_id,
        reason=reason or "Suspension lifted",
        metadata={"previous_reason": target.get("suspended_reason")},
    )
    return updated
