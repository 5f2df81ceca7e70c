"""
Admin views over the global rate limiter and the login lockout table.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from auth.user_role_utils import verify_admin, verify_superadmin
from database import rate_limits_collection, login_attempts_collection
from middleware.global_rate_limit import RATE_LIMITS, get_limit_config, now_ms, rate_limit, reset_identifier
from utils.account_lockout import clear_failed_attempts
from utils.exceptions import NotFoundException, ValidationException

router = APIRouter(prefix="/admin/security", tags=["security"], dependencies=[Depends(rate_limit("admin"))])


# -------------------
# RATE LIMITS
# -------------------
@router.get("/rate-limits/stats")
async def get_rate_limit_stats(
    hours_back: int = Query(24, ge=1, le=24 * 30),
    admin: dict = Depends(verify_admin),
):
    since = now_ms() - hours_back * 60 * 60 * 1000
    records = await rate_limits_collection.find({"updated_at": {"$gte": since}}).to_list(length=None)

    by_type = {}
    by_identifier = {}
    for record in records:
        totals = by_type.setdefault(record["limit_type"], {"records": 0, "requests": 0})
        totals["records"] += 1
        totals["requests"] += record.get("count", 0)
        by_identifier[record["identifier"]] = by_identifier.get(record["identifier"], 0) + record.get("count", 0)

    top = sorted(by_identifier.items(), key=lambda item: item[1], reverse=True)[:10]
    return {
        "hours_back": hours_back,
        "total_records": len(records),
        "total_requests": sum(r.get("count", 0) for r in records),
        "by_type": by_type,
        "top_identifiers": [{"identifier": identifier, "requests": count} for identifier, count in top],
    }


@router.get("/rate-limits/active")
async def list_active_records(
    limit_type: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    admin: dict = Depends(verify_admin),
):
    if limit_type and limit_type not in RATE_LIMITS:
        raise ValidationException(f"Unknown limit type: {limit_type}")
    now = now_ms()
    query = {"limit_type": limit_type} if limit_type else {}
    records = await rate_limits_collection.find(query).to_list(length=None)

    active = []
    for record in records:
        config = get_limit_config(record["limit_type"])
        if record["window_start"] + config["window_ms"] <= now:
            continue
        active.append({
            "identifier": record["identifier"],
            "limit_type": record["limit_type"],
            "count": record["count"],
            "max_requests": config["max_requests"],
            "percent_used": round(record["count"] / config["max_requests"] * 100),
            "window_start": record["window_start"],
            "reset_at": record["window_start"] + config["window_ms"],
        })
    active.sort(key=lambda row: row["percent_used"], reverse=True)
    return active[:limit]


@router.get("/rate-limits/config")
async def get_rate_limit_config(admin: dict = Depends(verify_admin)):
    return {
        limit_type: {"window_seconds": config["window_ms"] // 1000, "max_requests": config["max_requests"]}
        for limit_type, config in RATE_LIMITS.items()
    }


@router.delete("/rate-limits/{identifier}")
async def reset_rate_limit(
    identifier: str,
    limit_type: Optional[str] = Query(None),
    superadmin: dict = Depends(verify_superadmin),
):
    deleted = await reset_identifier(identifier, limit_type)
    return {"identifier": identifier, "deleted": deleted}


# -------------------
# LOCKOUTS
# -------------------
@router.get("/lockouts")
async def list_lockouts(admin: dict = Depends(verify_admin)):
    now = now_ms()
    records = await login_attempts_collection.find({"locked_until": {"$gt": now}}).to_list(length=None)
    return [
        {
            "identifier": r["identifier"],
            "attempts": len(r.get("attempts", [])),
            "locked_until": r["locked_until"],
            "last_ip": r.get("last_ip"),
        }
        for r in sorted(records, key=lambda r: r["locked_until"], reverse=True)
    ]


@router.delete("/lockouts/{identifier}")
async def unlock_account(identifier: str, admin: dict = Depends(verify_admin)):
    if not await login_attempts_collection.find_one({"identifier": identifier.lower()}):
        raise NotFoundException("Lockout record", identifier)
    await clear_failed_attempts(identifier)
    return {"identifier": identifier.lower(), "unlocked": True}
