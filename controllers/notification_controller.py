from typing import List

from bson import ObjectId
from fastapi import APIRouter, Depends, Query

from auth.auth_utils import get_current_user
from database import notifications_collection
from models.notification import (
    NotificationPreferencesResponse,
    NotificationPreferencesUpdate,
    NotificationResponse,
    UnreadCountResponse,
    to_notification_response,
)
from utils.exceptions import ForbiddenException, NotFoundException
from utils.notification_preferences import DEFAULT_PREFERENCES, get_preferences, save_preferences

router = APIRouter(prefix="/notifications", tags=["notifications"])


async def _get_own_notification(notification_id: str, user: dict) -> dict:
    notification = await notifications_collection.find_one({"_id": ObjectId(notification_id)})
    if not notification:
        raise NotFoundException("Notification", notification_id)
    if notification["user_id"] != str(user["_id"]):
        raise ForbiddenException("Access denied")
    return notification


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    unread_only: bool = Query(False),
    current_user: dict = Depends(get_current_user),
):
    query = {"user_id": str(current_user["_id"])}
    if unread_only:
        query["read"] = False
    notifications = await notifications_collection.find(query).sort("created_at", -1).to_list(length=limit)
    return [to_notification_response(n) for n in notifications]


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(current_user: dict = Depends(get_current_user)):
    count = await notifications_collection.count_documents({"user_id": str(current_user["_id"]), "read": False})
    return UnreadCountResponse(count=count)


@router.post("/read-all")
async def mark_all_as_read(current_user: dict = Depends(get_current_user)):
    result = await notifications_collection.update_many(
        {"user_id": str(current_user["_id"]), "read": False}, {"$set": {"read": True}}
    )
    return {"updated": result.modified_count}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_as_read(notification_id: str, current_user: dict = Depends(get_current_user)):
    notification = await _get_own_notification(notification_id, current_user)
    updated = await notifications_collection.find_one_and_update(
        {"_id": notification["_id"]}, {"$set": {"read": True}}, return_document=True
    )
    return to_notification_response(updated)


@router.delete("/{notification_id}")
async def delete_notification(notification_id: str, current_user: dict = Depends(get_current_user)):
    notification = await _get_own_notification(notification_id, current_user)
    await notifications_collection.delete_one({"_id": notification["_id"]})
    return {"message": "Notification deleted"}


@router.delete("")
async def delete_all_notifications(current_user: dict = Depends(get_current_user)):
    result = await notifications_collection.delete_many({"user_id": str(current_user["_id"])})
    return {"deleted": result.deleted_count}


# -------------------
# PREFERENCES
# -------------------
@router.get("/preferences", response_model=NotificationPreferencesResponse)
async def get_my_preferences(current_user: dict = Depends(get_current_user)):
    return await get_preferences(str(current_user["_id"]))


@router.put("/preferences", response_model=NotificationPreferencesResponse)
async def update_my_preferences(data: NotificationPreferencesUpdate, current_user: dict = Depends(get_current_user)):
    changes = data.model_dump(exclude_none=True)
    return await save_preferences(str(current_user["_id"]), changes)


@router.post("/preferences/reset", response_model=NotificationPreferencesResponse)
async def reset_my_preferences(current_user: dict = Depends(get_current_user)):
    return await save_preferences(str(current_user["_id"]), dict(DEFAULT_PREFERENCES))
