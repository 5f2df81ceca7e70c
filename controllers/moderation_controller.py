from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, Query, Request

from auth.auth_utils import get_current_user_allow_suspended
from auth.user_role_utils import verify_admin, verify_superadmin
from constants import ROLE_SUPERADMIN, ROLE_ORGANIZER, USER_STATUS_SUSPENDED, EVENT_STATUS_CANCELLED, EVENT_STATUS_DRAFT, \
    FLAG_SEVERITIES
from database import users_collection, events_collection, moderation_logs_collection
from middleware.global_rate_limit import rate_limit
from models.event import FlagEventRequest, RemoveEventRequest, FlaggedEventResponse, FlaggedCountResponse, EventResponse, to_event_response
from models.moderation import ModerationLogResponse, ModerationStatusResponse, to_moderation_log_response
from models.review import CountResponse
from models.user_model import UserResponse, SuspendUserRequest, ChangeRoleRequest, to_user_response
from utils.audit_logger import log_audit_event
from utils.exceptions import ConflictException, ForbiddenException, NotFoundException, ValidationException
from utils.moderation_log import record_moderation_action, MODERATION_ACTIONS, MODERATION_TARGET_TYPES
from utils.notifier import notify_admins
from utils.user_moderation import suspend_user, unsuspend_user

router = APIRouter(prefix="/admin/moderation", tags=["moderation"], dependencies=[Depends(rate_limit("admin"))])
self_router = APIRouter(prefix="/moderation", tags=["moderation"])


async def _users_by_id(user_ids) -> dict:
    ids = [ObjectId(uid) for uid in set(user_ids) if uid and ObjectId.is_valid(uid)]
    if not ids:
        return {}
    users = await users_collection.find({"_id": {"$in": ids}}).to_list(length=None)
    return {str(u["_id"]): u for u in users}


# -------------------
# MODERATION LOG
# -------------------
@router.get("/logs", response_model=List[ModerationLogResponse])
async def get_moderation_logs(
    action: Optional[str] = Query(None),
    target_type: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    admin: dict = Depends(verify_admin),
):
    if action and action not in MODERATION_ACTIONS:
        raise ValidationException(f"Unknown moderation action: {action}")
    if target_type and target_type not in MODERATION_TARGET_TYPES:
        raise ValidationException(f"Unknown target type: {target_type}")

    query = {}
    if action:
        query["action"] = action
    if target_type:
        query["target_type"] = target_type

    logs = await moderation_logs_collection.find(query).sort("created_at", -1).to_list(length=limit)
    admins = await _users_by_id(log["admin_id"] for log in logs)
    return [to_moderation_log_response(log, admins.get(log["admin_id"])) for log in logs]


@router.get("/logs/{target_type}/{target_id}", response_model=List[ModerationLogResponse])
async def get_target_moderation_logs(target_type: str, target_id: str, admin: dict = Depends(verify_admin)):
    logs = await moderation_logs_collection.find(
        {"target_type": target_type, "target_id": target_id}
    ).sort("created_at", -1).to_list(length=None)
    admins = await _users_by_id(log["admin_id"] for log in logs)
    return [to_moderation_log_response(log, admins.get(log["admin_id"])) for log in logs]


# -------------------
# USERS
# -------------------
@router.post("/users/{user_id}/suspend", response_model=UserResponse)
async def suspend(user_id: str, data: SuspendUserRequest, admin: dict = Depends(verify_admin)):
    return to_user_response(await suspend_user(admin, user_id, data.reason))


@router.post("/users/{user_id}/unsuspend", response_model=UserResponse)
async def unsuspend(user_id: str, admin: dict = Depends(verify_admin)):
    return to_user_response(await unsuspend_user(admin, user_id))


@router.post("/users/{user_id}/role", response_model=UserResponse)
async def change_user_role(
    user_id: str,
    data: ChangeRoleRequest,
    request: Request,
    superadmin: dict = Depends(verify_superadmin),
):
    target = await users_collection.find_one({"_id": ObjectId(user_id)})
    if not target:
        raise NotFoundException("User", user_id)
    if target.get("role") == ROLE_SUPERADMIN:
        raise ForbiddenException("Cannot change a superadmin's role")
    if target["_id"] == superadmin["_id"]:
        raise ForbiddenException("Cannot change your own role")

    previous_role = target.get("role") or ROLE_ORGANIZER
    if previous_role == data.new_role:
        raise ConflictException(f"User already has role {data.new_role}")

    updated = await users_collection.find_one_and_update(
        {"_id": target["_id"]},
        {"$set": {"role": data.new_role, "updated_at": datetime.utcnow()}},
        return_document=True,
    )
    metadata = {"previous_role": previous_role, "new_role": data.new_role}
    await record_moderation_action(superadmin, "user_role_changed", "user", user_id, reason=data.reason, metadata=metadata)
    await log_audit_event("role_changed", "user", user=superadmin, resource_id=user_id, request=request, details=metadata)
    return to_user_response(updated)


@router.get("/users/suspended/count", response_model=CountResponse)
async def get_suspended_users_count(admin: dict = Depends(verify_admin)):
    count = await users_collection.count_documents({"status": USER_STATUS_SUSPENDED})
    return CountResponse(count=count)


@self_router.get("/status", response_model=ModerationStatusResponse)
async def get_my_moderation_status(current_user: dict = Depends(get_current_user_allow_suspended)):
    status = current_user.get("status") or "active"
    return ModerationStatusResponse(
        status=status,
        is_suspended=status == USER_STATUS_SUSPENDED,
        suspended_at=current_user.get("suspended_at"),
        suspended_reason=current_user.get("suspended_reason"),
    )


# -------------------
# EVENTS
# -------------------
@router.post("/events/{event_id}/flag", response_model=EventResponse)
async def flag_event(event_id: str, data: FlagEventRequest, admin: dict = Depends(verify_admin)):
    event = await events_collection.find_one({"_id": ObjectId(event_id)})
    if not event:
        raise NotFoundException("Event", event_id)
    if event.get("is_flagged"):
        raise ConflictException("Event is already flagged")

    now = datetime.utcnow()
    updated = await events_collection.find_one_and_update(
        {"_id": event["_id"]},
        {"$set": {
            "is_flagged": True,
            "flag_reason": data.reason,
            "flag_severity": data.severity,
            "flagged_at": now,
            "flagged_by": str(admin["_id"]),
            "updated_at": now,
        }},
        return_document=True,
    )
    await record_moderation_action(
        admin, "event_flagged", "event", event_id, reason=data.reason, metadata={"severity": data.severity}
    )
    await notify_admins(
        "flagged_content",
        f"Event flagged ({data.severity})",
        f'"{event["title"]}" was flagged: {data.reason}',
        event_id=event_id,
        action_url="/admin/moderation",
        action_label="Review",
    )
    return to_event_response(updated)


@router.post("/events/{event_id}/unflag", response_model=EventResponse)
async def unflag_event(event_id: str, admin: dict = Depends(verify_admin)):
    event = await events_collection.find_one({"_id": ObjectId(event_id)})
    if not event:
        raise NotFoundException("Event", event_id)
    if not event.get("is_flagged"):
        raise ConflictException("Event is not flagged")

    updated = await events_collection.find_one_and_update(
        {"_id": event["_id"]},
        {
            "$set": {"is_flagged": False, "updated_at": datetime.utcnow()},
            "$unset": {"flag_reason": "", "flag_severity": "", "flagged_at": "", "flagged_by": ""},
        },
        return_document=True,
    )
    await record_moderation_action(
        admin, "event_unflagged", "event", event_id, metadata={"previous_reason": event.get("flag_reason")}
    )
    return to_event_response(updated)


@router.post("/events/{event_id}/remove", response_model=EventResponse)
async def remove_event(event_id: str, data: RemoveEventRequest, admin: dict = Depends(verify_admin)):
    event = await events_collection.find_one({"_id": ObjectId(event_id)})
    if not event:
        raise NotFoundException("Event", event_id)

    updated = await events_collection.find_one_and_update(
        {"_id": event["_id"]},
        {
            "$set": {"status": EVENT_STATUS_CANCELLED, "is_flagged": False, "updated_at": datetime.utcnow()},
            "$unset": {"flag_reason": "", "flag_severity": "", "flagged_at": "", "flagged_by": ""},
        },
        return_document=True,
    )
    await record_moderation_action(
        admin, "event_removed", "event", event_id, reason=data.reason,
        metadata={"previous_status": event.get("status")},
    )
    return to_event_response(updated)


@router.get("/events/flagged", response_model=List[FlaggedEventResponse])
async def get_flagged_events(
    severity: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    admin: dict = Depends(verify_admin),
):
    if severity and severity not in FLAG_SEVERITIES:
        raise ValidationException(f"Unknown severity: {severity}")
    events = await events_collection.find({"is_flagged": True}).to_list(length=None)
    if severity:
        events = [e for e in events if e.get("flag_severity") == severity]
    events.sort(key=lambda e: e.get("flagged_at") or datetime.min, reverse=True)
    events = events[:limit]

    organizers = await _users_by_id(e["organizer_id"] for e in events)
    return [
        FlaggedEventResponse(
            event_id=str(e["_id"]),
            title=e["title"],
            status=e.get("status", EVENT_STATUS_DRAFT),
            organizer_id=e["organizer_id"],
            organizer_name=organizers.get(e["organizer_id"], {}).get("name"),
            flag_reason=e.get("flag_reason"),
            flag_severity=e.get("flag_severity"),
            flagged_at=e.get("flagged_at"),
            flagged_by=e.get("flagged_by"),
        )
        for e in events
    ]


@router.get("/events/flagged/count", response_model=FlaggedCountResponse)
async def get_flagged_events_count(admin: dict = Depends(verify_admin)):
    events = await events_collection.find({"is_flagged": True}, {"flag_severity": 1}).to_list(length=None)
    counts = {severity: 0 for severity in FLAG_SEVERITIES}
    for e in events:
        if e.get("flag_severity") in counts:
            counts[e["flag_severity"]] += 1
    return FlaggedCountResponse(total=len(events), **counts)
