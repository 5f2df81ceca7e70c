from datetime import datetime
from typing import Optional

from database import moderation_logs_collection

MODERATION_ACTIONS = (
    "user_suspended", "user_unsuspended", "user_role_changed",
    "admin_created", "admin_removed",
    "vendor_approved", "vendor_rejected",
    "sponsor_approved", "sponsor_rejected",
    "event_flagged", "event_unflagged", "event_removed",
)
MODERATION_TARGET_TYPES = ("user", "vendor", "sponsor", "event")


async def record_moderation_action(
    admin: dict,
    action: str,
    target_type: str,
    target_id: str,
    reason: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> str:
    """Append an entry to the moderation log. Entries are never updated or deleted."""
    entry = {
        "admin_id": str(admin["_id"]),
        "action": action,
        "target_type": target_type,
        "target_id": str(target_id),
        "reason": reason,
        "metadata": metadata or {},
        "created_at": datetime.utcnow(),
    }
    result = await moderation_logs_collection.insert_one(entry)
    return str(result.inserted_id)
