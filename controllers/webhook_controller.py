from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, Query, Request

from auth.auth_utils import get_current_user
from database import webhooks_collection, webhook_deliveries_collection
from models.webhook import (
    WebhookCreate,
    WebhookUpdate,
    WebhookResponse,
    WebhookWithSecret,
    SecretResponse,
    DeliveryResponse,
    AvailableEvent,
    to_webhook_response,
    to_delivery_response,
)
from utils.audit_logger import log_audit_event
from utils.exceptions import AlreadyExistsException, ForbiddenException, NotFoundException, ValidationException
from utils.validators import is_valid_webhook_url
from utils.webhook_dispatcher import (
    WEBHOOK_EVENTS,
    MAX_WEBHOOKS_PER_USER,
    build_payload,
    deliver,
    generate_secret,
)
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["webhooks"])

MAX_NAME_LENGTH = 100


def _validate_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationException("Webhook name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationException(f"Webhook name must be at most {MAX_NAME_LENGTH} characters")
    return name


def _validate_url(url: str) -> str:
    url = (url or "").strip()
    if not is_valid_webhook_url(url):
        raise ValidationException("Webhook URL must use https (http is allowed only for localhost)")
    return url


def _validate_events(events: List[str]) -> List[str]:
    if not events:
        raise ValidationException("At least one event is required")
    unknown = [e for e in events if e not in WEBHOOK_EVENTS]
    if unknown:
        raise ValidationException(f"Unknown webhook events: {', '.join(unknown)}", errors={"events": unknown})
    return list(dict.fromkeys(events))


async def _get_own_webhook(webhook_id: str, user: dict) -> dict:
    webhook = await webhooks_collection.find_one({"_id": ObjectId(webhook_id)})
    if not webhook:
        raise NotFoundException("Webhook", webhook_id)
    if webhook["user_id"] != str(user["_id"]):
        raise ForbiddenException("Access denied")
    return webhook


@router.get("/events", response_model=List[AvailableEvent])
async def get_available_events():
    return [AvailableEvent(event=event, description=description) for event, description in WEBHOOK_EVENTS.items()]


@router.get("", response_model=List[WebhookResponse])
async def list_webhooks(current_user: dict = Depends(get_current_user)):
    webhooks = await webhooks_collection.find({"user_id": str(current_user["_id"])}).sort("created_at", -1).to_list(length=None)
    return [to_webhook_response(w) for w in webhooks]


@router.post("", response_model=WebhookWithSecret, status_code=201)
async def create_webhook(data: WebhookCreate, request: Request, current_user: dict = Depends(get_current_user)):
    """Register a webhook. The signing secret is returned here and never again."""
    user_id = str(current_user["_id"])
    name = _validate_name(data.name)
    url = _validate_url(data.url)
    events = _validate_events(data.events)

    if await webhooks_collection.count_documents({"user_id": user_id}) >= MAX_WEBHOOKS_PER_USER:
        raise ValidationException(f"Maximum of {MAX_WEBHOOKS_PER_USER} webhooks per user")
    if await webhooks_collection.find_one({"user_id": user_id, "url": url}):
        raise AlreadyExistsException("A webhook with this URL already exists")

    now = datetime.utcnow()
    webhook = {
        "user_id": user_id,
        "name": name,
        "url": url,
        "events": events,
        "secret": generate_secret(),
        "status": "active",
        "failure_count": 0,
        "total_deliveries": 0,
        "created_at": now,
        "updated_at": now,
    }
    result = await webhooks_collection.insert_one(webhook)
    webhook["_id"] = result.inserted_id

    await log_audit_event("webhook_created", "webhook", user=current_user, resource_id=str(result.inserted_id),
                          request=request, details={"url": url, "events": events})
    return WebhookWithSecret(**to_webhook_response(webhook).model_dump(), secret=webhook["secret"])


@router.get("/{webhook_id}", response_model=WebhookResponse)
async def get_webhook(webhook_id: str, current_user: dict = Depends(get_current_user)):
    return to_webhook_response(await _get_own_webhook(webhook_id, current_user))


@router.patch("/{webhook_id}", response_model=WebhookResponse)
async def update_webhook(webhook_id: str, data: WebhookUpdate, current_user: dict = Depends(get_current_user)):
    webhook = await _get_own_webhook(webhook_id, current_user)
    changes = {}
    if data.name is not None:
        changes["name"] = _validate_name(data.name)
    if data.url is not None:
        changes["url"] = _validate_url(data.url)
        if changes["url"] != webhook["url"] and await webhooks_collection.find_one(
            {"user_id": webhook["user_id"], "url": changes["url"]}
        ):
            raise AlreadyExistsException("A webhook with this URL already exists")
    if data.events is not None:
        changes["events"] = _validate_events(data.events)
    if data.status is not None:
        changes["status"] = data.status
        if data.status == "active" and webhook.get("status") == "disabled":
            changes["failure_count"] = 0

    changes["updated_at"] = datetime.utcnow()
    updated = await webhooks_collection.find_one_and_update(
        {"_id": webhook["_id"]}, {"$set": changes}, return_document=True
    )
    return to_webhook_response(updated)


@router.delete("/{webhook_id}")
async def delete_webhook(webhook_id: str, request: Request, current_user: dict = Depends(get_current_user)):
    webhook = await _get_own_webhook(webhook_id, current_user)
    await webhook_deliveries_collection.delete_many({"webhook_id": webhook_id})
    await webhooks_collection.delete_one({"_id": webhook["_id"]})
    await log_audit_event("webhook_deleted", "webhook", user=current_user, resource_id=webhook_id, request=request,
                          details={"url": webhook["url"]})
    return {"message": "Webhook deleted successfully"}


@router.post("/{webhook_id}/regenerate-secret", response_model=SecretResponse)
async def regenerate_secret(webhook_id: str, current_user: dict = Depends(get_current_user)):
    webhook = await _get_own_webhook(webhook_id, current_user)
    secret = generate_secret()
    await webhooks_collection.update_one(
        {"_id": webhook["_id"]}, {"$set": {"secret": secret, "updated_at": datetime.utcnow()}}
    )
    return SecretResponse(webhook_id=webhook_id, secret=secret)


@router.get("/{webhook_id}/deliveries", response_model=List[DeliveryResponse])
async def get_deliveries(
    webhook_id: str,
    limit: Optional[int] = Query(50, ge=1),
    current_user: dict = Depends(get_current_user),
):
    await _get_own_webhook(webhook_id, current_user)
    limit = min(limit or 50, 100)
    deliveries = await webhook_deliveries_collection.find(
        {"webhook_id": webhook_id}
    ).sort("created_at", -1).to_list(length=limit)
    return [to_delivery_response(d) for d in deliveries]


@router.post("/{webhook_id}/test", response_model=DeliveryResponse)
async def send_test(webhook_id: str, current_user: dict = Depends(get_current_user)):
    """Send a signed test event right away and report how the endpoint answered."""
    webhook = await _get_own_webhook(webhook_id, current_user)
    if webhook.get("status") != "active":
        raise ValidationException("Only active webhooks can be tested")

    delivery = {
        "webhook_id": webhook_id,
        "event": "test",
        "payload": build_payload("test", {"message": "This is a test webhook delivery", "webhook_name": webhook["name"]}),
        "status": "pending",
        "attempts": 0,
        "response_status": None,
        "response_body": None,
        "error": None,
        "next_retry_at": None,
        "delivered_at": None,
        "created_at": datetime.utcnow(),
    }
    result = await webhook_deliveries_collection.insert_one(delivery)
    outcome = await deliver(str(result.inserted_id))
    return to_delivery_response(outcome)
