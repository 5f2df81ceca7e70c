"""
Daily AI prompt quota per user.

Counts reset lazily: a record whose last_reset_date is not today is treated as
zero usage and rewritten on the next increment.
"""
from datetime import datetime, timedelta
from typing import Optional

from auth.user_role_utils import is_admin
from constants import AI_DEFAULT_DAILY_LIMIT, AI_UNLIMITED_REMAINING
from database import ai_usage_collection
from utils.exceptions import RateLimitedException


def today_string(now: Optional[datetime] = None) -> str:
    return (now or datetime.utcnow()).strftime("%Y-%m-%d")


def next_reset_time(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.utcnow()
    return datetime(now.year, now.month, now.day) + timedelta(days=1)


def prompts_used_today(usage: Optional[dict], now: Optional[datetime] = None) -> int:
    if not usage or usage.get("last_reset_date") != today_string(now):
        return 0
    return usage.get("prompts_used", 0)


def daily_limit_for(usage: Optional[dict]) -> int:
    if usage and usage.get("daily_limit") is not None:
        return usage["daily_limit"]
    return AI_DEFAULT_DAILY_LIMIT


async def get_usage(user_id: str, now: Optional[datetime] = None) -> dict:
    usage = await ai_usage_collection.find_one({"user_id": user_id})
    used = prompts_used_today(usage, now)
    limit = daily_limit_for(usage)
    return {
        "prompts_used": used,
        "prompts_remaining": max(0, limit - used),
        "daily_limit": limit,
        "total_prompts": usage.get("total_prompts", 0) if usage else 0,
        "resets_at": next_reset_time(now),
    }


async def check_quota(user: dict, now: Optional[datetime] = None) -> dict:
    if is_admin(user):
        return {"allowed": True, "remaining": AI_UNLIMITED_REMAINING, "limit": AI_UNLIMITED_REMAINING,
                "reason": "Admin access"}
    usage = await ai_usage_collection.find_one({"user_id": str(user["_id"])})
    limit = daily_limit_for(usage)
    remaining = limit - prompts_used_today(usage, now)
    return {
        "allowed": remaining > 0,
        "remaining": max(0, remaining),
        "limit": limit,
        "reason": "Daily limit reached" if remaining <= 0 else None,
    }


async def increment_usage(user: dict, now: Optional[datetime] = None) -> dict:
    """Count one prompt. Admins are never counted; everyone else is capped at their daily limit."""
    if is_admin(user):
        return {"counted": False}

    now = now or datetime.utcnow()
    user_id = str(user["_id"])
    today = today_string(now)
    usage = await ai_usage_collection.find_one({"user_id": user_id})

    used = prompts_used_today(usage, now) + 1
    if used > daily_limit_for(usage):
        retry_after = int((next_reset_time(now) - now).total_seconds())
        raise RateLimitedException("Daily AI prompt limit reached", retry_after=max(1, retry_after))

    if not usage:
        await ai_usage_collection.insert_one({
            "user_id": user_id,
            "prompts_used": used,
            "total_prompts": 1,
            "last_reset_date": today,
            "created_at": now,
            "updated_at": now,
        })
        return {"counted": True, "prompts_used": used}

    await ai_usage_collection.update_one(
        {"_id": usage["_id"]},
        {
            "$set": {"prompts_used": used, "last_reset_date": today, "updated_at": now},
            "$inc": {"total_prompts": 1},
        },
    )
    return {"counted": True, "prompts_used": used}
