"""
Progressive account lockout after repeated failed logins.

Failed attempts are kept as timestamps (epoch ms) inside a sliding window. Once the
window holds MAX_ATTEMPTS failures, each further failure locks the account, for a
duration that grows with the number of failures.
"""
import logging
import math
import time
from typing import Optional

from constants import (
    LOCKOUT_MAX_ATTEMPTS,
    LOCKOUT_WINDOW_SECONDS,
    LOCKOUT_DURATIONS_SECONDS,
    LOCKOUT_RECORD_TTL_SECONDS,
)
from database import login_attempts_collection

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def lockout_duration_seconds(failure_count: int) -> int:
    index = failure_count // LOCKOUT_MAX_ATTEMPTS - 1
    index = max(0, min(index, len(LOCKOUT_DURATIONS_SECONDS) - 1))
    return LOCKOUT_DURATIONS_SECONDS[index]


def format_lockout_duration(seconds: int) -> str:
    minutes = math.ceil(seconds / 60)
    if minutes < 60:
        return f"{minutes} minute{'' if minutes == 1 else 's'}"
    hours = math.ceil(minutes / 60)
    return f"{hours} hour{'' if hours == 1 else 's'}"


async def check_lockout(identifier: str, now: Optional[int] = None) -> dict:
    now = now if now is not None else _now_ms()
    record = await login_attempts_collection.find_one({"identifier": identifier.lower()})
    if not record:
        return {"locked": False, "remaining_attempts": LOCKOUT_MAX_ATTEMPTS, "unlock_at": None, "retry_after_seconds": None}

    locked_until = record.get("locked_until")
    if locked_until and locked_until > now:
        return {
            "locked": True,
            "remaining_attempts": 0,
            "unlock_at": locked_until,
            "retry_after_seconds": math.ceil((locked_until - now) / 1000),
        }

    window_start = now - LOCKOUT_WINDOW_SECONDS * 1000
    recent = [t for t in record.get("attempts", []) if t > window_start]
    return {
        "locked": False,
        "remaining_attempts": max(0, LOCKOUT_MAX_ATTEMPTS - len(recent)),
        "unlock_at": None,
        "retry_after_seconds": None,
    }


async def record_failed_attempt(identifier: str, ip_address: Optional[str] = None, now: Optional[int] = None) -> dict:
    now = now if now is not None else _now_ms()
    identifier = identifier.lower()
    window_start = now - LOCKOUT_WINDOW_SECONDS * 1000

    record = await login_attempts_collection.find_one({"identifier": identifier})
    attempts = [t for t in (record or {}).get("attempts", []) if t > window_start]
    attempts.append(now)

    locked_until = None
    duration = None
    if len(attempts) >= LOCKOUT_MAX_ATTEMPTS:
        duration = lockout_duration_seconds(len(attempts))
        locked_until = now + duration * 1000
        logger.warning(f"Locking '{identifier}' for {format_lockout_duration(duration)} after {len(attempts)} failures")

    await login_attempts_collection.update_one(
        {"identifier": identifier},
        {
            "$set": {"attempts": attempts, "locked_until": locked_until, "last_ip": ip_address, "updated_at": now},
            "$setOnInsert": {"created_at": now},
        },
        upsert=True,
    )
    return {
        "locked": locked_until is not None,
        "attempts": len(attempts),
        "remaining_attempts": max(0, LOCKOUT_MAX_ATTEMPTS - len(attempts)),
        "lock_duration_seconds": duration,
    }


async def clear_failed_attempts(identifier: str) -> None:
    await login_attempts_collection.delete_one({"identifier": identifier.lower()})


async def cleanup_lockout_records(now: Optional[int] = None) -> int:
    """Drop records untouched for a day, keeping any that are still locked."""
    now = now if now is not None else _now_ms()
    cutoff = now - LOCKOUT_RECORD_TTL_SECONDS * 1000
    result = await login_attempts_collection.delete_many({
        "updated_at": {"$lt": cutoff},
        "$or": [{"locked_until": None}, {"locked_until": {"$lt": now}}],
    })
    return result.deleted_count
