from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import APIRouter, Depends, Query

from auth.user_role_utils import verify_admin, verify_superadmin
from constants import ROLE_ADMIN, ROLE_SUPERADMIN, ROLE_ORGANIZER, USER_STATUS_PENDING
from database import users_collection
from middleware.global_rate_limit import rate_limit
from models.user_model import (
    UserResponse,
    UserCountsResponse,
    CreateAdminRequest,
    BulkSuspendRequest,
    BulkUserIdsRequest,
    BulkActionResult,
    BulkFailure,
    to_user_response,
)
from utils.exceptions import APIException, ConflictException, ForbiddenException, NotFoundException
from utils.moderation_log import record_moderation_action
from utils.pagination import PaginatedResponse, paginate_list, sort_documents, matches_search
from utils.user_moderation import suspend_user, unsuspend_user

router = APIRouter(prefix="/admin/users", tags=["user_management"], dependencies=[Depends(rate_limit("admin"))])


@router.get("", response_model=PaginatedResponse[UserResponse])
async def list_users(
    role: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Matches name or email"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    admin: dict = Depends(verify_admin),
):
    users = await users_collection.find({}).to_list(length=None)

    if role:
        users = [u for u in users if (u.get("role") or ROLE_ORGANIZER) == role]
    if status:
        users = [u for u in users if (u.get("status") or "active") == status]
    users = [u for u in users if matches_search(u, search, ("name", "email"))]

    users = sort_documents(users, "created_at", descending=True)
    return paginate_list(users, page, page_size, transform=to_user_response)


@router.get("/counts", response_model=UserCountsResponse)
async def get_user_counts(admin: dict = Depends(verify_admin)):
    users = await users_collection.find({}, {"role": 1, "status": 1}).to_list(length=None)
    by_role = {}
    by_status = {}
    for user in users:
        role = user.get("role") or ROLE_ORGANIZER
        status = user.get("status") or "active"
        by_role[role] = by_role.get(role, 0) + 1
        by_status[status] = by_status.get(status, 0) + 1
    return UserCountsResponse(total=len(users), by_role=by_role, by_status=by_status)


# -------------------
# ADMIN ACCOUNTS (superadmin)
# -------------------
@router.get("/admins", response_model=List[UserResponse])
async def list_admins(superadmin: dict = Depends(verify_superadmin)):
    admins = await users_collection.find(
        {"role": {"$in": [ROLE_ADMIN, ROLE_SUPERADMIN]}}
    ).sort("created_at", -1).to_list(length=None)
    return [to_user_response(a) for a in admins]


@router.post("/admins", response_model=UserResponse, status_code=201)
async def create_admin(data: CreateAdminRequest, superadmin: dict = Depends(verify_superadmin)):
    email = data.email.lower()
    existing = await users_collection.find_one({"email": email})
    now = datetime.utcnow()

    if existing:
        if existing.get("role") in (ROLE_ADMIN, ROLE_SUPERADMIN):
            raise ConflictException("User is already an admin or superadmin")
        updated = await users_collection.find_one_and_update(
            {"_id": existing["_id"]},
            {"$set": {"role": ROLE_ADMIN, "updated_at": now}},
            return_document=True,
        )
        await record_moderation_action(
            superadmin, "admin_created", "user", str(existing["_id"]),
            reason="Upgraded existing user to admin",
            metadata={"previous_role": existing.get("role") or ROLE_ORGANIZER},
        )
        return to_user_response(updated)

    # placeholder account until the admin completes a password reset
    admin_doc = {
        "name": data.name,
        "email": email,
        "role": ROLE_ADMIN,
        "status": USER_STATUS_PENDING,
        "created_at": now,
        "updated_at": now,
    }
    result = await users_collection.insert_one(admin_doc)
    admin_doc["_id"] = result.inserted_id
    await record_moderation_action(
        superadmin, "admin_created", "user", str(result.inserted_id), reason="Created new admin account"
    )
    return to_user_response(admin_doc)


@router.delete("/admins/{user_id}", response_model=UserResponse)
async def remove_admin(
    user_id: str,
    reason: Optional[str] = Query(None),
    superadmin: dict = Depends(verify_superadmin),
):
    admin_user = await users_collection.find_one({"_id": ObjectId(user_id)})
    if not admin_user:
        raise NotFoundException("User", user_id)
    if admin_user["_id"] == superadmin["_id"]:
        raise ForbiddenException("Cannot remove yourself as admin")
    if admin_user.get("role") != ROLE_ADMIN:
        raise ConflictException("User is not an admin")

    updated = await users_collection.find_one_and_update(
        {"_id": admin_user["_id"]},
        {"$set": {"role": ROLE_ORGANIZER, "updated_at": datetime.utcnow()}},
        return_document=True,
    )
    await record_moderation_action(
        superadmin, "admin_removed", "user", user_id,
        reason=reason or "Admin role removed",
        metadata={"previous_role": ROLE_ADMIN},
    )
    return to_user_response(updated)


# -------------------
# BULK OPERATIONS
# -------------------
@router.post("/bulk/suspend", response_model=BulkActionResult)
async def bulk_suspend(data: BulkSuspendRequest, admin: dict = Depends(verify_admin)):
    succeeded, failed = [], []
    for user_id in data.user_ids:
        try:
            await suspend_user(admin, user_id, data.reason)
            succeeded.append(user_id)
        except APIException as e:
            failed.append(BulkFailure(user_id=user_id, error=e.message))
        except InvalidId:
            failed.append(BulkFailure(user_id=user_id, error="Invalid ID format"))
    return BulkActionResult(succeeded=succeeded, failed=failed)


@router.post("/bulk/unsuspend", response_model=BulkActionResult)
async def bulk_unsuspend(data: BulkUserIdsRequest, admin: dict = Depends(verify_admin)):
    succeeded, failed = [], []
    for user_id in data.user_ids:
        try:
            await unsuspend_user(admin, user_id)
            succeeded.append(user_id)
        except APIException as e:
            failed.append(BulkFailure(user_id=user_id, error=e.message))
        except InvalidId:
            failed.append(BulkFailure(user_id=user_id, error="Invalid ID format"))
    return BulkActionResult(succeeded=succeeded, failed=failed)
