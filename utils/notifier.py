"""
In-app notifications with optional email delivery.
"""
import logging
from datetime import datetime
from typing import Optional

from bson import ObjectId

from constants import ROLE_ADMIN, ROLE_SUPERADMIN
from database import notifications_collection, users_collection
from email_helper import send_notification_email
from utils.notification_preferences import allows, get_preferences

logger = logging.getLogger(__name__)


async def create_notification(
    user_id: str,
    type: str,
    title: str,
    message: str,
    event_id: Optional[str] = None,
    action_url: Optional[str] = None,
    action_label: Optional[str] = None,
    send_email: bool = False,
    email_template: str = "notification.html",
    email_context: Optional[dict] = None,
) -> Optional[str]:
    """
    Store an in-app notification and optionally email it, each subject to the
    recipient's preferences. Returns the stored id, or None when the in-app
    channel is switched off for this type.
    """
    preferences = await get_preferences(user_id)
    notification_id = None
    if allows(preferences, type, "in_app"):
        doc = {
            "user_id": str(user_id),
            "type": type,
            "title": title,
            "message": message,
            "event_id": event_id,
            "action_url": action_url,
            "action_label": action_label,
            "read": False,
            "email_sent": False,
            "created_at": datetime.utcnow(),
        }
        result = await notifications_collection.insert_one(doc)
        notification_id = result.inserted_id

    if send_email and allows(preferences, type, "email"):
        user = await users_collection.find_one({"_id": ObjectId(user_id)})
        if not user or not user.get("email"):
            logger.warning(f"Notification for user {user_id} has no email address")
        else:
            sent = await send_notification_email(
                user["email"],
                title,
                message,
                action_url=action_url,
                action_label=action_label,
                template_name=email_template,
                **(email_context or {}),
            )
            if sent and notification_id is not None:
                await notifications_collection.update_one(
                    {"_id": notification_id}, {"$set": {"email_sent": True}}
                )

    return str(notification_id) if notification_id is not None else None


async def notify_admins(type: str, title: str, message: str, **kwargs) -> int:
    """Fan a notification out to every admin and superadmin."""
    admins = await users_collection.find(
        {"role": {"$in": [ROLE_ADMIN, ROLE_SUPERADMIN]}}, {"_id": 1}
    ).to_list(length=None)
    for admin in admins:
        await create_notification(str(admin["_id"]), type, title, message, **kwargs)
    return len(admins)
