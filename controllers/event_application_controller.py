from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, BackgroundTasks, Depends, Query

from auth.auth_utils import get_current_user
from auth.user_role_utils import verify_admin, get_managed_event, is_admin
from constants import APPLICANT_TYPES, APPLICATION_STATUSES, DIRECTORY_STATUS_APPROVED
from database import (
    events_collection,
    vendors_collection,
    sponsors_collection,
    event_applications_collection,
    event_vendors_collection,
    event_sponsors_collection,
)
from models.event_application import (
    ApplicationSubmit,
    ApplicationStatusUpdate,
    ApplicationResponse,
    ApplicationCounts,
    to_application_response,
)
from models.review import CountResponse
from utils.exceptions import ConflictException, ForbiddenException, NotFoundException, ValidationException
from utils.notifier import create_notification
from utils.webhook_dispatcher import trigger_webhooks
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/applications", tags=["event_applications"])

OPEN_STATUSES = ("pending", "under_review")
DIRECTORIES = {"vendor": vendors_collection, "sponsor": sponsors_collection}
PARTNER_LINKS = {"vendor": event_vendors_collection, "sponsor": event_sponsors_collection}


async def _get_event(event_id: str) -> dict:
    event = await events_collection.find_one({"_id": ObjectId(event_id)})
    if not event:
        raise NotFoundException("Event", event_id)
    return event


async def _get_approved_applicant(applicant_type: str, applicant_id: str) -> dict:
    if not ObjectId.is_valid(applicant_id):
        raise ValidationException(f"Invalid {applicant_type} ID format")
    applicant = await DIRECTORIES[applicant_type].find_one({"_id": ObjectId(applicant_id)})
    if not applicant:
        raise NotFoundException(applicant_type.capitalize(), applicant_id)
    if applicant.get("status") != DIRECTORY_STATUS_APPROVED:
        raise ValidationException(f"Only approved {applicant_type}s can apply to events")
    return applicant


async def _get_application(application_id: str) -> dict:
    application = await event_applications_collection.find_one({"_id": ObjectId(application_id)})
    if not application:
        raise NotFoundException("Application", application_id)
    return application


async def _applicants_for(applications) -> dict:
    """Map (applicant_type, applicant_id) -> directory document."""
    found = {}
    for applicant_type, directory in DIRECTORIES.items():
        ids = [ObjectId(a["applicant_id"]) for a in applications
               if a["applicant_type"] == applicant_type and ObjectId.is_valid(a["applicant_id"])]
        if not ids:
            continue
        for doc in await directory.find({"_id": {"$in": ids}}).to_list(length=None):
            found[(applicant_type, str(doc["_id"]))] = doc
    return found


async def _insert_application(event: dict, applicant_type: str, applicant: dict, message, proposed_budget,
                              submitted_by: str, background_tasks: BackgroundTasks) -> dict:
    application = {
        "event_id": str(event["_id"]),
        "applicant_type": applicant_type,
        "applicant_id": str(applicant["_id"]),
        "status": "pending",
        "message": message,
        "proposed_budget": proposed_budget,
        "contact_email": applicant.get("contact_email"),
        "submitted_by": submitted_by,
        "created_at": datetime.utcnow(),
    }
    result = await event_applications_collection.insert_one(application)
    application["_id"] = result.inserted_id

    await trigger_webhooks(event["organizer_id"], f"{applicant_type}.applied", {
        "application_id": str(result.inserted_id),
        "event_id": str(event["_id"]),
        "event_title": event["title"],
        f"{applicant_type}_id": str(applicant["_id"]),
        f"{applicant_type}_name": applicant["name"],
    }, background_tasks)
    await create_notification(
        event["organizer_id"],
        f"{applicant_type}_application",
        f"New {applicant_type} application",
        f'{applicant["name"]} applied to "{event["title"]}".',
        event_id=str(event["_id"]),
        action_url=f"/events/{event['_id']}/applications",
        action_label="Review application",
        send_email=True,
        email_template="application_received.html",
        email_context={
            "applicant_name": applicant["name"],
            "applicant_type": applicant_type,
            "event_title": event["title"],
            "application_message": message,
        },
    )
    return application


# -------------------
# ORGANIZER VIEWS
# -------------------
@router.get("/event/{event_id}", response_model=List[ApplicationResponse])
async def list_applications_by_event(
        event_id: str,
        status: Optional[str] = Query(None),
        applicant_type: Optional[str] = Query(None),
        current_user: dict = Depends(get_current_user)
):
    await get_managed_event(event_id, current_user)
    if status and status not in APPLICATION_STATUSES:
        raise ValidationException(f"status must be one of: {', '.join(APPLICATION_STATUSES)}")
    if applicant_type and applicant_type not in APPLICANT_TYPES:
        raise ValidationException("applicant_type must be vendor or sponsor")

    query = {"event_id": event_id}
    if status:
        query["status"] = status
    if applicant_type:
        query["applicant_type"] = applicant_type
    applications = await event_applications_collection.find(query).sort("created_at", -1).to_list(length=None)
    applicants = await _applicants_for(applications)
    return [
        to_application_response(a, applicants.get((a["applicant_type"], a["applicant_id"])))
        for a in applications
    ]


@router.get("/event/{event_id}/count", response_model=ApplicationCounts)
async def get_application_count_by_event(event_id: str, current_user: dict = Depends(get_current_user)):
    await get_managed_event(event_id, current_user)
    applications = await event_applications_collection.find({"event_id": event_id}, {"status": 1}).to_list(length=None)
    return ApplicationCounts(
        total=len(applications),
        pending=sum(1 for a in applications if a["status"] in OPEN_STATUSES),
        accepted=sum(1 for a in applications if a["status"] == "accepted"),
    )


@router.get("/pending-count", response_model=CountResponse)
async def get_my_pending_count(current_user: dict = Depends(get_current_user)):
    """Pending applications across every event the caller organizes."""
    events = await events_collection.find({"organizer_id": str(current_user["_id"])}, {"_id": 1}).to_list(length=None)
    if not events:
        return CountResponse(count=0)
    count = await event_applications_collection.count_documents({
        "event_id": {"$in": [str(e["_id"]) for e in events]},
        "status": "pending",
    })
    return CountResponse(count=count)


# -------------------
# SUBMISSION
# -------------------
@router.post("", response_model=ApplicationResponse, status_code=201)
async def submit_application(
        data: ApplicationSubmit,
        background_tasks: BackgroundTasks,
        admin: dict = Depends(verify_admin)
):
    """Submit an application on behalf of an approved vendor or sponsor."""
    event = await _get_event(data.event_id)
    if not event.get("is_public"):
        raise ValidationException("This event is not accepting applications")
    applicant = await _get_approved_applicant(data.applicant_type, data.applicant_id)

    existing = await event_applications_collection.find_one({
        "event_id": data.event_id,
        "applicant_type": data.applicant_type,
        "applicant_id": data.applicant_id,
        "status": {"$nin": ["withdrawn", "rejected"]},
    })
    if existing:
        raise ConflictException(f"This {data.applicant_type} has already applied to this event")

    application = await _insert_application(event, data.applicant_type, applicant, data.message,
                                            data.proposed_budget, str(admin["_id"]), background_tasks)
    return to_application_response(application, applicant, event)


@router.post("/self", response_model=ApplicationResponse, status_code=201)
async def self_service_submit(
        data: ApplicationSubmit,
        background_tasks: BackgroundTasks,
        current_user: dict = Depends(get_current_user)
):
    """Apply to a public event as the owner of an approved vendor or sponsor listing."""
    event = await _get_event(data.event_id)
    if not event.get("is_public"):
        raise ValidationException("This event is not accepting public applications")
    if not event.get(f"seeking_{data.applicant_type}s"):
        raise ValidationException(f"This event is not seeking {data.applicant_type}s")

    applicant = await _get_approved_applicant(data.applicant_type, data.applicant_id)
    if applicant.get("owner_id") != str(current_user["_id"]):
        raise ForbiddenException(f"You do not manage this {data.applicant_type}")

    existing = await event_applications_collection.find({
        "event_id": data.event_id,
        "applicant_type": data.applicant_type,
        "applicant_id": data.applicant_id,
    }).to_list(length=None)
    if any(a["status"] in OPEN_STATUSES for a in existing):
        raise ConflictException("You already have a pending application for this event")
    if any(a["status"] == "accepted" for a in existing):
        raise ConflictException("You are already confirmed for this event")

    application = await _insert_application(event, data.applicant_type, applicant, data.message,
                                            data.proposed_budget, str(current_user["_id"]), background_tasks)
    return to_application_response(application, applicant, event)


# -------------------
# DECISIONS
# -------------------
@router.patch("/{application_id}/status", response_model=ApplicationResponse)
async def update_application_status(
        application_id: str,
        data: ApplicationStatusUpdate,
        current_user: dict = Depends(get_current_user)
):
    application = await _get_application(application_id)
    event = await get_managed_event(application["event_id"], current_user)
    if application["status"] == "withdrawn":
        raise ConflictException("Application has been withdrawn")

    changes = {
        "status": data.status,
        "responded_at": datetime.utcnow(),
        "responded_by": str(current_user["_id"]),
        "updated_at": datetime.utcnow(),
    }
    if data.status == "rejected":
        changes["rejection_reason"] = data.rejection_reason
    updated = await event_applications_collection.find_one_and_update(
        {"_id": application["_id"]}, {"$set": changes}, return_document=True
    )

    applicant_type = application["applicant_type"]
    if data.status == "accepted":
        await _confirm_partner(application)

    applicant = await DIRECTORIES[applicant_type].find_one({"_id": ObjectId(application["applicant_id"])})
    if applicant and applicant.get("owner_id") and data.status in ("accepted", "rejected"):
        await create_notification(
            applicant["owner_id"],
            "application_decision",
            f"Application {data.status}",
            f'Your application to "{event["title"]}" was {data.status}.',
            event_id=application["event_id"],
            action_url="/applications",
            action_label="View applications",
            send_email=True,
            email_template="application_decision.html",
            email_context={
                "accepted": data.status == "accepted",
                "applicant_type": applicant_type,
                "event_title": event["title"],
                "reason": data.rejection_reason,
            },
        )
    return to_application_response(updated, applicant, event)


async def _confirm_partner(application: dict):
    applicant_type = application["applicant_type"]
    links = PARTNER_LINKS[applicant_type]
    key = {"event_id": application["event_id"], f"{applicant_type}_id": application["applicant_id"]}
    if await links.find_one(key):
        return
    now = datetime.utcnow()
    await links.insert_one({
        **key,
        "status": "confirmed",
        "notes": application.get("message"),
        "proposed_budget": application.get("proposed_budget"),
        "final_budget": None,
        "created_at": now,
        "updated_at": now,
    })
    logger.info(f"Application {application['_id']} accepted; {applicant_type} linked to event {application['event_id']}")


@router.post("/{application_id}/withdraw", response_model=ApplicationResponse)
async def withdraw_application(application_id: str, current_user: dict = Depends(get_current_user)):
    application = await _get_application(application_id)
    if not is_admin(current_user):
        applicant = await DIRECTORIES[application["applicant_type"]].find_one(
            {"_id": ObjectId(application["applicant_id"])}
        )
        if not applicant or applicant.get("owner_id") != str(current_user["_id"]):
            raise ForbiddenException("Access denied")

    if application["status"] == "accepted":
        raise ConflictException("Cannot withdraw an accepted application")
    if application["status"] == "withdrawn":
        raise ConflictException("Application is already withdrawn")

    updated = await event_applications_collection.find_one_and_update(
        {"_id": application["_id"]},
        {"$set": {"status": "withdrawn", "updated_at": datetime.utcnow()}},
        return_document=True,
    )
    return to_application_response(updated)


# -------------------
# APPLICANT VIEWS
# -------------------
@router.get("/applicant/{applicant_type}/{applicant_id}", response_model=List[ApplicationResponse])
async def list_applications_by_applicant(applicant_type: str, applicant_id: str, admin: dict = Depends(verify_admin)):
    if applicant_type not in APPLICANT_TYPES:
        raise ValidationException("applicant_type must be vendor or sponsor")
    applications = await event_applications_collection.find(
        {"applicant_type": applicant_type, "applicant_id": applicant_id}
    ).sort("created_at", -1).to_list(length=None)
    return await _with_events(applications)


@router.get("/mine", response_model=List[ApplicationResponse])
async def list_my_applications(current_user: dict = Depends(get_current_user)):
    """Applications for every vendor and sponsor listing the caller owns."""
    owner_id = str(current_user["_id"])
    clauses = []
    for applicant_type, directory in DIRECTORIES.items():
        owned = await directory.find({"owner_id": owner_id}, {"_id": 1}).to_list(length=None)
        if owned:
            clauses.append({"applicant_type": applicant_type, "applicant_id": {"$in": [str(o["_id"]) for o in owned]}})
    if not clauses:
        return []
    applications = await event_applications_collection.find({"$or": clauses}).sort("created_at", -1).to_list(length=None)
    return await _with_events(applications)


async def _with_events(applications) -> List[ApplicationResponse]:
    event_ids = {ObjectId(a["event_id"]) for a in applications if ObjectId.is_valid(a["event_id"])}
    events = await events_collection.find({"_id": {"$in": list(event_ids)}}).to_list(length=None)
    events_by_id = {str(e["_id"]): e for e in events}
    applicants = await _applicants_for(applications)
    return [
        to_application_response(
            a,
            applicants.get((a["applicant_type"], a["applicant_id"])),
            events_by_id.get(a["event_id"]),
        )
        for a in applications
    ]
