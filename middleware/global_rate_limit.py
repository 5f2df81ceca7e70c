"""
Database-backed fixed-window rate limiting.

Each (identifier, limit_type) pair owns one counter record. Windows are aligned
to multiples of the window length, so every client shares the same boundaries.
"""
import logging
import math
import time
from typing import Optional

from fastapi import Request, Response

from database import rate_limits_collection
from utils.audit_logger import log_audit_event
from utils.exceptions import RateLimitedException
from utils.request_info import get_client_ip

logger = logging.getLogger(__name__)

RATE_LIMITS = {
    "auth": {"window_ms": 15 * 60 * 1000, "max_requests": 20},
    "api": {"window_ms": 60 * 1000, "max_requests": 60},
    "ai": {"window_ms": 60 * 1000, "max_requests": 10},
    "admin": {"window_ms": 60 * 1000, "max_requests": 30},
    "default": {"window_ms": 60 * 1000, "max_requests": 100},
}

RECORD_MAX_AGE_MS = 60 * 60 * 1000
CLEANUP_BATCH_SIZE = 500


def now_ms() -> int:
    return int(time.time() * 1000)


def get_limit_config(limit_type: str) -> dict:
    return RATE_LIMITS.get(limit_type, RATE_LIMITS["default"])


def window_start_for(now: int, window_ms: int) -> int:
    return (now // window_ms) * window_ms


def _result(allowed: bool, count: int, config: dict, window_start: int, now: int) -> dict:
    reset_at = window_start + config["window_ms"]
    return {
        "allowed": allowed,
        "remaining": max(0, config["max_requests"] - count),
        "limit": config["max_requests"],
        "reset_at": reset_at,
        "retry_after": None if allowed else max(1, math.ceil((reset_at - now) / 1000)),
    }


async def check_and_increment(identifier: str, limit_type: str = "default", now: Optional[int] = None) -> dict:
    """Count one request against the caller's current window and report whether it is allowed."""
    now = now if now is not None else now_ms()
    config = get_limit_config(limit_type)
    current_window = window_start_for(now, config["window_ms"])
    key = {"identifier": identifier, "limit_type": limit_type}

    record = await rate_limits_collection.find_one(key)

    if not record or record["window_start"] < current_window:
        await rate_limits_collection.update_one(
            key,
            {"$set": {"count": 1, "window_start": current_window, "updated_at": now}},
            upsert=True,
        )
        return _result(True, 1, config, current_window, now)

    if record["count"] >= config["max_requests"]:
        return _result(False, record["count"], config, record["window_start"], now)

    new_count = record["count"] + 1
    await rate_limits_collection.update_one(
        {"_id": record["_id"]},
        {"$set": {"count": new_count, "updated_at": now}},
    )
    return _result(True, new_count, config, record["window_start"], now)


async def check_rate_limit(identifier: str, limit_type: str = "default", now: Optional[int] = None) -> dict:
    """Report the caller's standing without counting a request."""
    now = now if now is not None else now_ms()
    config = get_limit_config(limit_type)
    current_window = window_start_for(now, config["window_ms"])

    record = await rate_limits_collection.find_one({"identifier": identifier, "limit_type": limit_type})
    if not record or record["window_start"] < current_window:
        return _result(True, 0, config, current_window, now)
    allowed = record["count"] < config["max_requests"]
    return _result(allowed, record["count"], config, record["window_start"], now)


async def reset_identifier(identifier: str, limit_type: Optional[str] = None) -> int:
    query = {"identifier": identifier}
    if limit_type:
        query["limit_type"] = limit_type
    result = await rate_limits_collection.delete_many(query)
    return result.deleted_count


async def cleanup_old_records(now: Optional[int] = None) -> int:
    """Delete counters whose window started more than an hour ago, in batches."""
    now = now if now is not None else now_ms()
    cutoff = now - RECORD_MAX_AGE_MS
    deleted = 0
    while True:
        batch = await rate_limits_collection.find(
            {"window_start": {"$lt": cutoff}}, {"_id": 1}
        ).to_list(length=CLEANUP_BATCH_SIZE)
        if not batch:
            break
        result = await rate_limits_collection.delete_many({"_id": {"$in": [doc["_id"] for doc in batch]}})
        deleted += result.deleted_count
        if len(batch) < CLEANUP_BATCH_SIZE:
            break
    if deleted:
        logger.info(f"Removed {deleted} expired rate limit records")
    return deleted


def rate_limit_headers(result: dict) -> dict:
    headers = {
        "X-RateLimit-Limit": str(result["limit"]),
        "X-RateLimit-Remaining": str(result["remaining"]),
        "X-RateLimit-Reset": str(result["reset_at"] // 1000),
    }
    if result.get("retry_after"):
        headers["Retry-After"] = str(result["retry_after"])
    return headers


def rate_limit(limit_type: str = "default"):
    """Dependency enforcing a global window for the calling IP and exposing X-RateLimit headers."""
    async def dependency(request: Request, response: Response) -> dict:
        identifier = get_client_ip(request)
        result = await check_and_increment(identifier, limit_type)
        headers = rate_limit_headers(result)
        if not result["allowed"]:
            logger.warning(f"Global rate limit '{limit_type}' exceeded for {identifier}")
            await log_audit_event(
                action="rate_limited",
                resource="auth",
                status="blocked",
                request=request,
                details={"limit_type": limit_type},
            )
            raise RateLimitedException(
                "Too many requests. Please try again later.",
                retry_after=result["retry_after"],
                headers=headers,
            )
        for name, value in headers.items():
            response.headers[name] = value
        return result
    return dependency


async def enforce_rate_limit(identifier: str, limit_type: str) -> dict:
    """Same as the dependency, for callers that identify by user instead of IP."""
    result = await check_and_increment(identifier, limit_type)
    if not result["allowed"]:
        raise RateLimitedException(
            "Too many requests. Please try again later.",
            retry_after=result["retry_after"],
            headers=rate_limit_headers(result),
        )
    return result
