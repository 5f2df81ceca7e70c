from datetime import datetime
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, BackgroundTasks, Depends, File, Query, Request, UploadFile

from auth.auth_utils import get_optional_user
from auth.user_role_utils import verify_organizer, verify_admin, get_managed_event, can_manage_event
from constants import EVENT_STATUS_CANCELLED, PUBLIC_EVENT_STATUSES
from database import (
    events_collection,
    users_collection,
    event_tasks_collection,
    budget_items_collection,
    attendees_collection,
    event_vendors_collection,
    event_sponsors_collection,
    event_applications_collection,
)
from models.event import (
    EventCreate,
    EventUpdate,
    EventResponse,
    PublicEventResponse,
    EVENT_SORT_FIELDS,
    to_event_response,
)
from utils.audit_logger import log_audit_event
from utils.cloudinary_config import LOGO_FOLDER, ImageUploadError, logo_problem, upload_image_to_cloudinary
from utils.dates import normalize_datetimes
from utils.exceptions import APIException, ForbiddenException, NotFoundException, ValidationException
from utils.pagination import PaginatedResponse, paginate_list, sort_documents, matches_search
from utils.webhook_dispatcher import trigger_webhooks
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/events", tags=["event"])


def _check_dates(start_date, end_date):
    if start_date and end_date and end_date < start_date:
        raise ValidationException("end_date must be on or after start_date")


def _filter_events(events, status: Optional[str], event_type: Optional[str], search: Optional[str]):
    if status:
        events = [e for e in events if e.get("status") == status]
    if event_type:
        events = [e for e in events if e.get("event_type") == event_type]
    return [e for e in events if matches_search(e, search, ("title", "description", "venue_name"))]


def _sort_events(events, sort_by: str, sort_order: str):
    if sort_by not in EVENT_SORT_FIELDS:
        raise ValidationException(f"sort_by must be one of: {', '.join(EVENT_SORT_FIELDS)}")
    return sort_documents(events, sort_by, descending=sort_order == "desc")


def _webhook_data(event: dict) -> dict:
    return to_event_response(event).model_dump(mode="json")


# -------------------
# CREATE EVENT
# -------------------
@router.post("", response_model=EventResponse, status_code=201)
async def create_event(
        data: EventCreate,
        request: Request,
        background_tasks: BackgroundTasks,
        current_user: dict = Depends(verify_organizer)
) -> EventResponse:
    event_doc = normalize_datetimes(data.model_dump())
    _check_dates(event_doc.get("start_date"), event_doc.get("end_date"))

    now = datetime.utcnow()
    event_doc.update({
        "title": data.title.strip(),
        "organizer_id": str(current_user["_id"]),
        "logo_url": None,
        "is_flagged": False,
        "created_at": now,
        "updated_at": now,
    })
    result = await events_collection.insert_one(event_doc)
    event_doc["_id"] = result.inserted_id

    await trigger_webhooks(event_doc["organizer_id"], "event.created", _webhook_data(event_doc), background_tasks)
    await log_audit_event("event_created", "event", user=current_user, resource_id=str(result.inserted_id),
                          request=request, details={"title": event_doc["title"]})
    return to_event_response(event_doc)


# -------------------
# LIST EVENTS
# -------------------
@router.get("/mine", response_model=PaginatedResponse[EventResponse])
async def list_my_events(
        status: Optional[str] = Query(None),
        event_type: Optional[str] = Query(None),
        search: Optional[str] = Query(None),
        sort_by: str = Query("start_date"),
        sort_order: str = Query("asc", pattern="^(asc|desc)$"),
        page: int = Query(1, ge=1),
        page_size: int = Query(20, ge=1, le=100),
        current_user: dict = Depends(verify_organizer)
):
    events = await events_collection.find({"organizer_id": str(current_user["_id"])}).to_list(length=None)
    events = _filter_events(events, status, event_type, search)
    events = _sort_events(events, sort_by, sort_order)
    return paginate_list(events, page, page_size, transform=to_event_response)


@router.get("/all", response_model=PaginatedResponse[EventResponse])
async def list_all_events(
        status: Optional[str] = Query(None),
        event_type: Optional[str] = Query(None),
        organizer_id: Optional[str] = Query(None),
        search: Optional[str] = Query(None),
        sort_by: str = Query("created_at"),
        sort_order: str = Query("desc", pattern="^(asc|desc)$"),
        page: int = Query(1, ge=1),
        page_size: int = Query(20, ge=1, le=100),
        admin: dict = Depends(verify_admin)
):
    query = {"organizer_id": organizer_id} if organizer_id else {}
    events = await events_collection.find(query).to_list(length=None)
    events = _filter_events(events, status, event_type, search)
    events = _sort_events(events, sort_by, sort_order)
    return paginate_list(events, page, page_size, transform=to_event_response)


@router.get("/public", response_model=PaginatedResponse[PublicEventResponse])
async def list_public_events(
        event_type: Optional[str] = Query(None),
        search: Optional[str] = Query(None),
        seeking: Optional[str] = Query(None, pattern="^(vendors|sponsors)$"),
        page: int = Query(1, ge=1),
        page_size: int = Query(20, ge=1, le=100),
):
    """Public event directory. No authentication required."""
    events = await events_collection.find(
        {"is_public": True, "status": {"$in": list(PUBLIC_EVENT_STATUSES)}}
    ).to_list(length=None)
    events = _filter_events(events, None, event_type, search)
    if seeking:
        events = [e for e in events if e.get(f"seeking_{seeking}")]
    events = sort_documents(events, "start_date")

    page_result = paginate_list(events, page, page_size)
    organizer_ids = {ObjectId(e["organizer_id"]) for e in page_result.items if ObjectId.is_valid(e["organizer_id"])}
    organizers = await users_collection.find({"_id": {"$in": list(organizer_ids)}}, {"name": 1}).to_list(length=None)
    names = {str(o["_id"]): o.get("name") for o in organizers}

    page_result.items = [
        PublicEventResponse(
            event_id=str(e["_id"]),
            title=e["title"],
            description=e.get("description"),
            event_type=e.get("event_type"),
            status=e["status"],
            start_date=e.get("start_date"),
            end_date=e.get("end_date"),
            location_type=e.get("location_type"),
            venue_name=e.get("venue_name"),
            expected_attendees=e.get("expected_attendees"),
            seeking_vendors=e.get("seeking_vendors", False),
            seeking_sponsors=e.get("seeking_sponsors", False),
            logo_url=e.get("logo_url"),
            organizer_name=names.get(e["organizer_id"]),
        )
        for e in page_result.items
    ]
    return page_result


# -------------------
# GET / UPDATE / DELETE
# -------------------
@router.get("/{event_id}", response_model=EventResponse)
async def get_event(event_id: str, current_user: Optional[dict] = Depends(get_optional_user)) -> EventResponse:
    event = await events_collection.find_one({"_id": ObjectId(event_id)})
    if not event:
        raise NotFoundException("Event", event_id)

    if event.get("is_public") and event.get("status") != EVENT_STATUS_CANCELLED:
        return to_event_response(event)
    if current_user is None or not can_manage_event(current_user, event):
        raise ForbiddenException("Access denied")
    return to_event_response(event)


@router.patch("/{event_id}", response_model=EventResponse)
async def update_event(
        event_id: str,
        data: EventUpdate,
        request: Request,
        background_tasks: BackgroundTasks,
        current_user: dict = Depends(verify_organizer)
) -> EventResponse:
    event = await get_managed_event(event_id, current_user)

    changes = normalize_datetimes(data.model_dump(exclude_unset=True, exclude_none=True))
    if "title" in changes:
        changes["title"] = changes["title"].strip()
    _check_dates(changes.get("start_date", event.get("start_date")), changes.get("end_date", event.get("end_date")))
    if not changes:
        return to_event_response(event)

    changes["updated_at"] = datetime.utcnow()
    updated = await events_collection.find_one_and_update(
        {"_id": event["_id"]}, {"$set": changes}, return_document=True
    )

    owner_id = event["organizer_id"]
    await trigger_webhooks(owner_id, "event.updated", _webhook_data(updated), background_tasks)
    previous_status = event.get("status")
    if "status" in changes and changes["status"] != previous_status:
        await trigger_webhooks(owner_id, "event.status_changed", {
            "event_id": event_id,
            "title": updated["title"],
            "previous_status": previous_status,
            "new_status": changes["status"],
        }, background_tasks)

    await log_audit_event("event_updated", "event", user=current_user, resource_id=event_id, request=request,
                          details={"fields": sorted(k for k in changes if k != "updated_at")})
    return to_event_response(updated)


@router.delete("/{event_id}")
async def delete_event(
        event_id: str,
        request: Request,
        background_tasks: BackgroundTasks,
        current_user: dict = Depends(verify_organizer)
):
    event = await get_managed_event(event_id, current_user)

    await events_collection.delete_one({"_id": event["_id"]})
    for collection in (
        event_tasks_collection,
        budget_items_collection,
        attendees_collection,
        event_vendors_collection,
        event_sponsors_collection,
        event_applications_collection,
    ):
        await collection.delete_many({"event_id": event_id})

    await trigger_webhooks(event["organizer_id"], "event.deleted",
                           {"event_id": event_id, "title": event["title"]}, background_tasks)
    await log_audit_event("event_deleted", "event", user=current_user, resource_id=event_id, request=request,
                          details={"title": event["title"]})
    logger.info(f"Event {event_id} deleted by {current_user['_id']}")
    return {"message": "Event deleted successfully"}


# -------------------
# LOGO
# -------------------
@router.post("/{event_id}/logo", response_model=EventResponse)
async def upload_event_logo(
        event_id: str,
        logo: UploadFile = File(...),
        current_user: dict = Depends(verify_organizer)
) -> EventResponse:
    event = await get_managed_event(event_id, current_user)

    image_data = await logo.read()
    problem = logo_problem(logo.content_type, image_data)
    if problem:
        raise ValidationException(problem)

    try:
        result = upload_image_to_cloudinary(image_data=image_data, folder=LOGO_FOLDER, public_id=event_id)
    except ImageUploadError as e:
        logger.warning(f"Logo upload failed for event {event_id}: {e}")
        raise APIException("Logo upload failed", status_code=502, error_code="UPLOAD_FAILED")

    updated = await events_collection.find_one_and_update(
        {"_id": event["_id"]},
        {"$set": {"logo_url": result["secure_url"], "updated_at": datetime.utcnow()}},
        return_document=True,
    )
    return to_event_response(updated)
