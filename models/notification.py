from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class NotificationResponse(BaseModel):
    notification_id: str
    type: str
    title: str
    message: str
    event_id: Optional[str] = None
    action_url: Optional[str] = None
    action_label: Optional[str] = None
    read: bool
    email_sent: bool = False
    created_at: datetime


class UnreadCountResponse(BaseModel):
    count: int


def to_notification_response(doc: dict) -> NotificationResponse:
    return NotificationResponse(
        notification_id=str(doc["_id"]),
        type=doc["type"],
        title=doc["title"],
        message=doc["message"],
        event_id=doc.get("event_id"),
        action_url=doc.get("action_url"),
        action_label=doc.get("action_label"),
        read=doc.get("read", False),
        email_sent=doc.get("email_sent", False),
        created_at=doc["created_at"],
    )


class NotificationPreferences(BaseModel):
    email_enabled: bool = True
    email_vendor_applications: bool = True
    email_sponsor_applications: bool = True
    email_event_reminders: bool = True
    email_task_deadlines: bool = True
    email_budget_alerts: bool = True
    in_app_enabled: bool = True
    in_app_vendor_applications: bool = True
    in_app_sponsor_applications: bool = True
    in_app_event_reminders: bool = True
    in_app_task_deadlines: bool = True
    in_app_budget_alerts: bool = True
    daily_digest: bool = False
    digest_time: str = Field("09:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")


class NotificationPreferencesUpdate(BaseModel):
    email_enabled: Optional[bool] = None
    email_vendor_applications: Optional[bool] = None
    email_sponsor_applications: Optional[bool] = None
    email_event_reminders: Optional[bool] = None
    email_task_deadlines: Optional[bool] = None
    email_budget_alerts: Optional[bool] = None
    in_app_enabled: Optional[bool] = None
    in_app_vendor_applications: Optional[bool] = None
    in_app_sponsor_applications: Optional[bool] = None
    in_app_event_reminders: Optional[bool] = None
    in_app_task_deadlines: Optional[bool] = None
    in_app_budget_alerts: Optional[bool] = None
    daily_digest: Optional[bool] = None
    digest_time: Optional[str] = Field(None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")


class NotificationPreferencesResponse(NotificationPreferences):
    is_default: bool = False
