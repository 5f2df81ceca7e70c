"""
Email address verification.

A verification link carries a random one-time token stored in verification_tokens.
Tokens expire after EMAIL_VERIFICATION_EXPIRE_HOURS; at most
MAX_VERIFICATION_EMAILS_PER_HOUR links are issued per user per hour.
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from bson import ObjectId

from config.settings import SITE_URL
from constants import EMAIL_VERIFICATION_EXPIRE_HOURS, MAX_VERIFICATION_EMAILS_PER_HOUR
from database import users_collection, verification_tokens_collection
from email_helper import send_verification_email
from utils.exceptions import NotFoundException, RateLimitedException, ValidationException

logger = logging.getLogger(__name__)

TOKEN_TYPE = "email_verification"


async def issue_verification(user: dict, now: Optional[datetime] = None) -> dict:
    """Store a fresh token for the user and email the link."""
    if user.get("email_verified"):
        return {"success": False, "message": "Email already verified"}

    now = now or datetime.utcnow()
    hour_ago = now - timedelta(hours=1)
    recent = await verification_tokens_collection.find(
        {"user_id": str(user["_id"]), "type": TOKEN_TYPE, "created_at": {"$gt": hour_ago}}
    ).sort("created_at", 1).to_list(length=None)
    if len(recent) >= MAX_VERIFICATION_EMAILS_PER_HOUR:
        retry_after = int((recent[0]["created_at"] + timedelta(hours=1) - now).total_seconds())
        raise RateLimitedException("Too many verification emails sent. Please try again later.",
                                   retry_after=max(1, retry_after))

    token = secrets.token_urlsafe(32)
    await verification_tokens_collection.insert_one({
        "user_id": str(user["_id"]),
        "token": token,
        "type": TOKEN_TYPE,
        "expires_at": now + timedelta(hours=EMAIL_VERIFICATION_EXPIRE_HOURS),
        "used": False,
        "created_at": now,
    })

    link = f"{SITE_URL}/verify-email?token={token}"
    sent = await send_verification_email(user["email"], link, user.get("name"),
                                         expires_hours=EMAIL_VERIFICATION_EXPIRE_HOURS)
    if not sent:
        logger.warning(f"Verification email to {user['email']} was not delivered")
    return {"success": True, "message": "Verification email sent successfully"}


async def verify_token(token: str, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    record = await verification_tokens_collection.find_one({"token": token})
    if not record or record.get("type") != TOKEN_TYPE:
        raise ValidationException("Invalid verification token")
    if record.get("used"):
        raise ValidationException("This verification link has already been used")
    if record["expires_at"] < now:
        raise ValidationException("This verification link has expired. Please request a new one.")

    user = await users_collection.find_one({"_id": ObjectId(record["user_id"])})
    if not user:
        raise NotFoundException("User", record["user_id"])
    if user.get("email_verified"):
        return {"success": True, "already_verified": True, "message": "Email already verified"}

    await verification_tokens_collection.update_one(
        {"_id": record["_id"]}, {"$set": {"used": True, "used_at": now}}
    )
    await users_collection.update_one(
        {"_id": user["_id"]},
        {"$set": {"email_verified": True, "email_verified_at": now, "updated_at": now}},
    )
    logger.info(f"Email verified for {user['email']}")
    return {"success": True, "already_verified": False, "message": "Email verified successfully"}


async def cleanup_verification_tokens(now: Optional[datetime] = None) -> int:
    result = await verification_tokens_collection.delete_many({"expires_at": {"$lt": now or datetime.utcnow()}})
    return result.deleted_count
