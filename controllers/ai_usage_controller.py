from datetime import datetime
from typing import List

from bson import ObjectId
from fastapi import APIRouter, Depends

from auth.auth_utils import get_current_user
from auth.user_role_utils import verify_admin
from database import ai_usage_collection, users_collection
from middleware.global_rate_limit import enforce_rate_limit
from models.ai_usage import AIUsageResponse, QuotaCheckResponse, UserUsageRow, SetUserLimitRequest
from utils.ai_quota import get_usage, check_quota, increment_usage, prompts_used_today, daily_limit_for, today_string
from utils.exceptions import NotFoundException

router = APIRouter(prefix="/ai-usage", tags=["ai_usage"])


@router.get("/me", response_model=AIUsageResponse)
async def get_my_usage(current_user: dict = Depends(get_current_user)):
    return AIUsageResponse(**await get_usage(str(current_user["_id"])))


@router.get("/check", response_model=QuotaCheckResponse)
async def check_my_quota(current_user: dict = Depends(get_current_user)):
    return QuotaCheckResponse(**await check_quota(current_user))


@router.post("/increment")
async def increment_my_usage(current_user: dict = Depends(get_current_user)):
    await enforce_rate_limit(f"user:{current_user['_id']}", "ai")
    return await increment_usage(current_user)


# -------------------
# ADMIN
# -------------------
@router.get("/users", response_model=List[UserUsageRow])
async def list_usage(admin: dict = Depends(verify_admin)):
    records = await ai_usage_collection.find({}).to_list(length=None)
    user_ids = [ObjectId(r["user_id"]) for r in records if ObjectId.is_valid(r["user_id"])]
    users = await users_collection.find({"_id": {"$in": user_ids}}, {"name": 1, "email": 1}).to_list(length=None)
    users_by_id = {str(u["_id"]): u for u in users}

    rows = [
        UserUsageRow(
            user_id=r["user_id"],
            user_name=users_by_id.get(r["user_id"], {}).get("name"),
            user_email=users_by_id.get(r["user_id"], {}).get("email"),
            prompts_used=prompts_used_today(r),
            daily_limit=daily_limit_for(r),
            total_prompts=r.get("total_prompts", 0),
            last_reset_date=r.get("last_reset_date"),
        )
        for r in records
    ]
    return sorted(rows, key=lambda row: row.total_prompts, reverse=True)


@router.put("/users/{user_id}/limit")
async def set_user_limit(user_id: str, data: SetUserLimitRequest, admin: dict = Depends(verify_admin)):
    if not await users_collection.find_one({"_id": ObjectId(user_id)}):
        raise NotFoundException("User", user_id)

    now = datetime.utcnow()
    await ai_usage_collection.update_one(
        {"user_id": user_id},
        {
            "$set": {"daily_limit": data.daily_limit, "updated_at": now},
            "$setOnInsert": {
                "prompts_used": 0,
                "total_prompts": 0,
                "last_reset_date": today_string(now),
                "created_at": now,
            },
        },
        upsert=True,
    )
    return {"user_id": user_id, "daily_limit": data.daily_limit}


@router.post("/users/{user_id}/reset")
async def reset_user_usage(user_id: str, admin: dict = Depends(verify_admin)):
    result = await ai_usage_collection.update_one(
        {"user_id": user_id},
        {"$set": {"prompts_used": 0, "last_reset_date": today_string(), "updated_at": datetime.utcnow()}},
    )
    if result.matched_count == 0:
        raise NotFoundException("AI usage record", user_id)
    return {"user_id": user_id, "prompts_used": 0}
