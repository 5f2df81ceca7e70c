"""
Per-user notification preferences.

Users without a stored document get the defaults. Each channel has a master
switch; the per-topic switches only apply to the notification types listed in
TYPE_TOPICS, every other type follows the master switch alone.
"""
from datetime import datetime
from typing import Optional

from database import notification_preferences_collection
from models.notification import NotificationPreferences

DEFAULT_PREFERENCES = NotificationPreferences().model_dump()

TYPE_TOPICS = {
    "vendor_application": "vendor_applications",
    "sponsor_application": "sponsor_applications",
    "event_reminder": "event_reminders",
    "task_deadline": "task_deadlines",
    "budget_threshold": "budget_alerts",
}


async def get_preferences(user_id: str) -> dict:
    stored = await notification_preferences_collection.find_one({"user_id": str(user_id)})
    if not stored:
        return {**DEFAULT_PREFERENCES, "is_default": True}
    return {**DEFAULT_PREFERENCES, **{k: stored[k] for k in DEFAULT_PREFERENCES if k in stored}, "is_default": False}


async def save_preferences(user_id: str, changes: dict, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    await notification_preferences_collection.update_one(
        {"user_id": str(user_id)},
        {
            "$set": {**changes, "updated_at": now},
            "$setOnInsert": {
                **{k: v for k, v in DEFAULT_PREFERENCES.items() if k not in changes},
                "created_at": now,
            },
        },
        upsert=True,
    )
    return await get_preferences(user_id)


def allows(preferences: dict, notification_type: str, channel: str) -> bool:
    """channel is "email" or "in_app"."""
    if not preferences.get(f"{channel}_enabled", True):
        return False
    topic = TYPE_TOPICS.get(notification_type)
    if topic is None:
        return True
    return preferences.get(f"{channel}_{topic}", True)
