"""
Outgoing webhook delivery.

Triggering only records pending deliveries; the HTTP POST happens afterwards,
either in a FastAPI background task or from the maintenance script for retries.
Every request is signed with HMAC-SHA256 over "<timestamp>.<body>".
"""
import hashlib
import hmac
import json
import logging
import secrets
import string
import time
from datetime import datetime, timedelta
from typing import List, Optional

import httpx
from bson import ObjectId
from fastapi import BackgroundTasks

from config.settings import WEBHOOK_TIMEOUT_SECONDS
from database import webhooks_collection, webhook_deliveries_collection

logger = logging.getLogger(__name__)

WEBHOOK_EVENTS = {
    "event.created": "A new event was created",
    "event.updated": "An event was updated",
    "event.deleted": "An event was deleted",
    "event.status_changed": "An event's status changed",
    "vendor.applied": "A vendor applied to an event",
    "vendor.confirmed": "A vendor was confirmed",
    "vendor.declined": "A vendor was declined",
    "sponsor.applied": "A sponsor applied to an event",
    "sponsor.confirmed": "A sponsor was confirmed",
    "sponsor.declined": "A sponsor was declined",
    "task.created": "A task was created",
    "task.completed": "A task was completed",
}

MAX_WEBHOOKS_PER_USER = 10
MAX_FAILURES_BEFORE_DISABLE = 5
RETRY_DELAYS_SECONDS = (60, 5 * 60, 30 * 60, 60 * 60)
MAX_ATTEMPTS = len(RETRY_DELAYS_SECONDS) + 1
RESPONSE_BODY_LIMIT = 1000
SECRET_PREFIX = "whsec_"

_SECRET_ALPHABET = string.ascii_letters + string.digits


def generate_secret() -> str:
    return SECRET_PREFIX + "".join(secrets.choice(_SECRET_ALPHABET) for _ in range(32))


def sign_payload(secret: str, timestamp: int, body: str) -> str:
    message = f"{timestamp}.{body}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def build_payload(event: str, data: dict) -> dict:
    return {
        "id": f"wh_{secrets.token_hex(12)}",
        "event": event,
        "timestamp": int(time.time() * 1000),
        "data": data,
    }


async def trigger_webhooks(
    user_id: str,
    event: str,
    data: dict,
    background_tasks: Optional[BackgroundTasks] = None,
) -> List[str]:
    """Queue a delivery for each of the user's active webhooks subscribed to event."""
    webhooks = await webhooks_collection.find(
        {"user_id": str(user_id), "status": "active", "events": event}
    ).to_list(length=None)

    delivery_ids = []
    for webhook in webhooks:
        delivery = {
            "webhook_id": str(webhook["_id"]),
            "event": event,
            "payload": build_payload(event, data),
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
        delivery_id = str(result.inserted_id)
        delivery_ids.append(delivery_id)
        if background_tasks is not None:
            background_tasks.add_task(deliver, delivery_id)

    if delivery_ids:
        logger.info(f"Queued {len(delivery_ids)} deliveries of '{event}' for user {user_id}")
    return delivery_ids


async def deliver(delivery_id: str, client: Optional[httpx.AsyncClient] = None) -> Optional[dict]:
    """Attempt one delivery and record the outcome. Returns the updated delivery."""
    delivery = await webhook_deliveries_collection.find_one({"_id": ObjectId(delivery_id)})
    if not delivery or delivery["status"] in ("success", "failed"):
        return delivery

    webhook = await webhooks_collection.find_one({"_id": ObjectId(delivery["webhook_id"])})
    if not webhook or webhook.get("status") != "active":
        return await webhook_deliveries_collection.find_one_and_update(
            {"_id": delivery["_id"]},
            {"$set": {"status": "failed", "error": "Webhook is not active", "next_retry_at": None}},
            return_document=True,
        )

    body = json.dumps(delivery["payload"], separators=(",", ":"), default=str)
    timestamp = int(time.time())
    headers = {
        "Content-Type": "application/json",
        "User-Agent": "OpenEvent-Webhooks/1.0",
        "X-Webhook-Id": delivery["payload"]["id"],
        "X-Webhook-Event": delivery["event"],
        "X-Webhook-Timestamp": str(timestamp),
        "X-Webhook-Signature": f"sha256={sign_payload(webhook['secret'], timestamp, body)}",
    }

    response_status = None
    response_body = None
    error = None
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT_SECONDS) as own_client:
                response = await own_client.post(webhook["url"], content=body, headers=headers)
        else:
            response = await client.post(webhook["url"], content=body, headers=headers)
        response_status = response.status_code
        response_body = response.text[:RESPONSE_BODY_LIMIT]
        if not response.is_success:
            error = f"HTTP {response_status}"
    except httpx.HTTPError as e:
        error = f"{type(e).__name__}: {e}"[:RESPONSE_BODY_LIMIT]

    if error is None:
        return await _record_success(delivery, webhook, response_status, response_body)
    return await _record_failure(delivery, webhook, response_status, response_body, error)


async def _record_success(delivery: dict, webhook: dict, response_status: int, response_body: str) -> dict:
    now = datetime.utcnow()
    await webhooks_collection.update_one(
        {"_id": webhook["_id"]},
        {
            "$set": {
                "last_delivery_at": now,
                "last_delivery_status": "success",
                "failure_count": 0,
            },
            "$inc": {"total_deliveries": 1},
        },
    )
    return await webhook_deliveries_collection.find_one_and_update(
        {"_id": delivery["_id"]},
        {
            "$set": {
                "status": "success",
                "response_status": response_status,
                "response_body": response_body,
                "error": None,
                "delivered_at": now,
                "next_retry_at": None,
            },
            "$inc": {"attempts": 1},
        },
        return_document=True,
    )


async def _record_failure(delivery: dict, webhook: dict, response_status, response_body, error: str) -> dict:
    now = datetime.utcnow()
    attempts = delivery.get("attempts", 0) + 1
    update = {
        "response_status": response_status,
        "response_body": response_body,
        "error": error,
    }

    if attempts < MAX_ATTEMPTS:
        update["status"] = "retrying"
        update["next_retry_at"] = now + timedelta(seconds=RETRY_DELAYS_SECONDS[attempts - 1])
        logger.warning(f"Webhook delivery {delivery['_id']} failed ({error}), retry {attempts} scheduled")
    else:
        update["status"] = "failed"
        update["next_retry_at"] = None
        updated_webhook = await webhooks_collection.find_one_and_update(
            {"_id": webhook["_id"]},
            {
                "$set": {
                    "last_failure_at": now,
                    "last_failure_reason": error,
                    "last_delivery_status": "failed",
                },
                "$inc": {"failure_count": 1},
            },
            return_document=True,
        )
        if updated_webhook and updated_webhook.get("failure_count", 0) >= MAX_FAILURES_BEFORE_DISABLE:
            await webhooks_collection.update_one(
                {"_id": webhook["_id"]}, {"$set": {"status": "disabled"}}
            )
            logger.warning(f"Webhook {webhook['_id']} disabled after {MAX_FAILURES_BEFORE_DISABLE} failed deliveries")
        else:
            logger.warning(f"Webhook delivery {delivery['_id']} failed permanently: {error}")

    return await webhook_deliveries_collection.find_one_and_update(
        {"_id": delivery["_id"]},
        {"$set": update, "$inc": {"attempts": 1}},
        return_document=True,
    )


async def process_due_retries(client: Optional[httpx.AsyncClient] = None, now: Optional[datetime] = None) -> int:
    """Deliver every retrying delivery whose backoff has elapsed."""
    now = now or datetime.utcnow()
    due = await webhook_deliveries_collection.find(
        {"status": "retrying", "next_retry_at": {"$lte": now}}, {"_id": 1}
    ).to_list(length=None)
    for delivery in due:
        await deliver(str(delivery["_id"]), client=client)
    return len(due)
