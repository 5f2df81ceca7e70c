from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel


class WebhookCreate(BaseModel):
    name: str
    url: str
    events: List[str]


class WebhookUpdate(BaseModel):
    name: Optional[str] = None
    url: Optional[str] = None
    events: Optional[List[str]] = None
    status: Optional[Literal["active", "paused", "disabled"]] = None


class WebhookResponse(BaseModel):
    webhook_id: str
    name: str
    url: str
    events: List[str]
    status: str
    failure_count: int = 0
    total_deliveries: int = 0
    last_delivery_at: Optional[datetime] = None
    last_delivery_status: Optional[str] = None
    last_failure_at: Optional[datetime] = None
    last_failure_reason: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class WebhookWithSecret(WebhookResponse):
    secret: str


class SecretResponse(BaseModel):
    webhook_id: str
    secret: str


class DeliveryResponse(BaseModel):
    delivery_id: str
    webhook_id: str
    event: str
    payload: Any
    status: str
    attempts: int
    response_status: Optional[int] = None
    response_body: Optional[str] = None
    error: Optional[str] = None
    next_retry_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    created_at: datetime


class AvailableEvent(BaseModel):
    event: str
    description: str


def to_webhook_response(doc: dict) -> WebhookResponse:
    return WebhookResponse(
        webhook_id=str(doc["_id"]),
        name=doc["name"],
        url=doc["url"],
        events=doc.get("events", []),
        status=doc.get("status", "active"),
        failure_count=doc.get("failure_count", 0),
        total_deliveries=doc.get("total_deliveries", 0),
        last_delivery_at=doc.get("last_delivery_at"),
        last_delivery_status=doc.get("last_delivery_status"),
        last_failure_at=doc.get("last_failure_at"),
        last_failure_reason=doc.get("last_failure_reason"),
        created_at=doc["created_at"],
        updated_at=doc.get("updated_at"),
    )


def to_delivery_response(doc: dict) -> DeliveryResponse:
    return DeliveryResponse(
        delivery_id=str(doc["_id"]),
        webhook_id=doc["webhook_id"],
        event=doc["event"],
        payload=doc.get("payload"),
        status=doc["status"],
        attempts=doc.get("attempts", 0),
        response_status=doc.get("response_status"),
        response_body=doc.get("response_body"),
        error=doc.get("error"),
        next_retry_at=doc.get("next_retry_at"),
        delivered_at=doc.get("delivered_at"),
        created_at=doc["created_at"],
    )
