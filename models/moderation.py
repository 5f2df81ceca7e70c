from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ModerationLogResponse(BaseModel):
    log_id: str
    admin_id: str
    admin_name: Optional[str] = None
    admin_email: Optional[str] = None
    action: str
    target_type: str
    target_id: str
    reason: Optional[str] = None
    metadata: dict = {}
    created_at: datetime


class ModerationStatusResponse(BaseModel):
    status: str
    is_suspended: bool
    suspended_at: Optional[datetime] = None
    suspended_reason: Optional[str] = None


def to_moderation_log_response(doc: dict, admin: Optional[dict] = None) -> ModerationLogResponse:
    return ModerationLogResponse(
        log_id=str(doc["_id"]),
        admin_id=doc["admin_id"],
        admin_name=admin.get("name") if admin else None,
        admin_email=admin.get("email") if admin else None,
        action=doc["action"],
        target_type=doc["target_type"],
        target_id=doc["target_id"],
        reason=doc.get("reason"),
        metadata=doc.get("metadata") or {},
        created_at=doc["created_at"],
    )
