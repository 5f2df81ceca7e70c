from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request

from auth.auth_utils import get_optional_user
from auth.user_role_utils import verify_admin, verify_superadmin, is_admin
from constants import DIRECTORY_STATUS_APPROVED, DIRECTORY_STATUS_PENDING, DIRECTORY_STATUSES
from database import sponsors_collection, event_sponsors_collection
from middleware.global_rate_limit import rate_limit
from middleware.rate_limiter import limiter, RATE_LIMIT_PUBLIC_APPLICATION
from models.event_partner import EventPartnerResponse, to_partner_response
from models.review import ApproveRequest, RejectRequest, CountResponse
from models.sponsor import SponsorCreate, SponsorAdminCreate, SponsorUpdate, SponsorResponse, to_sponsor_response
from utils.directory_review import approve_listing, reject_listing
from utils.exceptions import ForbiddenException, NotFoundException, ValidationException
from utils.moderation_log import record_moderation_action
from utils.notifier import notify_admins
from utils.pagination import matches_search, sort_documents
from utils.settings_store import get_setting_value
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/sponsors", tags=["sponsor"])
admin_rate_limit = [Depends(rate_limit("admin"))]


def _new_sponsor_doc(data: SponsorCreate, owner_id: Optional[str]) -> dict:
    now = datetime.utcnow()
    doc = data.model_dump(exclude={"auto_approve"})
    doc.update({
        "name": data.name.strip(),
        "verified": False,
        "status": DIRECTORY_STATUS_PENDING,
        "owner_id": owner_id,
        "created_at": now,
        "updated_at": now,
    })
    return doc


# -------------------
# PUBLIC DIRECTORY
# -------------------
@router.get("", response_model=List[SponsorResponse])
async def list_sponsors(
        industry: Optional[str] = Query(None),
        search: Optional[str] = Query(None)
) -> List[SponsorResponse]:
    query = {"status": DIRECTORY_STATUS_APPROVED}
    if industry and industry != "all":
        query["industry"] = industry
    sponsors = await sponsors_collection.find(query).to_list(length=None)
    sponsors = [s for s in sponsors if matches_search(s, search, ("name", "company_name", "description"))]
    return [to_sponsor_response(s) for s in sort_documents(sponsors, "name")]


@router.get("/industries", response_model=List[str])
async def get_industries() -> List[str]:
    sponsors = await sponsors_collection.find({"status": DIRECTORY_STATUS_APPROVED}, {"industry": 1}).to_list(length=None)
    return sorted({s["industry"] for s in sponsors if s.get("industry")})


@router.get("/by-event/{event_id}", response_model=List[EventPartnerResponse])
async def get_sponsors_by_event(event_id: str) -> List[EventPartnerResponse]:
    links = await event_sponsors_collection.find({"event_id": event_id}).to_list(length=None)
    sponsor_ids = [ObjectId(link["sponsor_id"]) for link in links if ObjectId.is_valid(link["sponsor_id"])]
    sponsors = await sponsors_collection.find({"_id": {"$in": sponsor_ids}}).to_list(length=None)
    by_id = {str(s["_id"]): s for s in sponsors}
    return [
        to_partner_response(
            link, "sponsor",
            partner=to_sponsor_response(by_id[link["sponsor_id"]]).model_dump() if link["sponsor_id"] in by_id else None,
        )
        for link in links
    ]


@router.post("/apply", response_model=SponsorResponse, status_code=201)
@limiter.limit(RATE_LIMIT_PUBLIC_APPLICATION)
async def apply_as_sponsor(
        request: Request,
        data: SponsorCreate,
        current_user: Optional[dict] = Depends(get_optional_user)
) -> SponsorResponse:
    if not await get_setting_value("features.sponsorApplications", True):
        raise ForbiddenException("Sponsor applications are currently disabled")

    sponsor_doc = _new_sponsor_doc(data, str(current_user["_id"]) if current_user else None)
    result = await sponsors_collection.insert_one(sponsor_doc)
    sponsor_doc["_id"] = result.inserted_id

    await notify_admins(
        "sponsor_application",
        "New sponsor application",
        f'"{sponsor_doc["name"]}" ({sponsor_doc["industry"]}) is waiting for review.',
        action_url="/admin/sponsors",
        action_label="Review sponsors",
    )
    logger.info(f"Sponsor application received: {sponsor_doc['name']}")
    return to_sponsor_response(sponsor_doc)


# -------------------
# ADMIN
# -------------------
@router.get("/admin/list", response_model=List[SponsorResponse], dependencies=admin_rate_limit)
async def list_sponsors_for_admin(
        status: Optional[str] = Query(None),
        industry: Optional[str] = Query(None),
        limit: int = Query(100, ge=1, le=500),
        admin: dict = Depends(verify_admin)
) -> List[SponsorResponse]:
    if status and status not in DIRECTORY_STATUSES:
        raise ValidationException(f"status must be one of: {', '.join(DIRECTORY_STATUSES)}")
    query = {}
    if status:
        query["status"] = status
    if industry and industry != "all":
        query["industry"] = industry
    sponsors = await sponsors_collection.find(query).sort("created_at", -1).to_list(length=limit)
    return [to_sponsor_response(s) for s in sponsors]


@router.get("/admin/pending-count", response_model=CountResponse, dependencies=admin_rate_limit)
async def get_pending_count(admin: dict = Depends(verify_admin)) -> CountResponse:
    return CountResponse(count=await sponsors_collection.count_documents({"status": DIRECTORY_STATUS_PENDING}))


@router.post("/admin/{sponsor_id}/approve", response_model=SponsorResponse, dependencies=admin_rate_limit)
async def approve_sponsor(
        sponsor_id: str,
        data: ApproveRequest,
        request: Request,
        background_tasks: BackgroundTasks,
        admin: dict = Depends(verify_admin)
) -> SponsorResponse:
    sponsor = await approve_listing("sponsor", sponsors_collection, sponsor_id, admin, notes=data.notes,
                                    request=request, background_tasks=background_tasks)
    return to_sponsor_response(sponsor)


@router.post("/admin/{sponsor_id}/reject", response_model=SponsorResponse, dependencies=admin_rate_limit)
async def reject_sponsor(
        sponsor_id: str,
        data: RejectRequest,
        request: Request,
        background_tasks: BackgroundTasks,
        admin: dict = Depends(verify_admin)
) -> SponsorResponse:
    sponsor = await reject_listing("sponsor", sponsors_collection, sponsor_id, admin, data.reason, notes=data.notes,
                                   request=request, background_tasks=background_tasks)
    return to_sponsor_response(sponsor)


@router.post("/admin", response_model=SponsorResponse, status_code=201, dependencies=admin_rate_limit)
async def admin_create_sponsor(data: SponsorAdminCreate, admin: dict = Depends(verify_admin)) -> SponsorResponse:
    sponsor_doc = _new_sponsor_doc(data, None)
    if data.auto_approve:
        now = datetime.utcnow()
        sponsor_doc.update({
            "status": DIRECTORY_STATUS_APPROVED,
            "verified": True,
            "reviewed_by": str(admin["_id"]),
            "reviewed_at": now,
            "review_notes": "Created and approved by admin",
        })
    result = await sponsors_collection.insert_one(sponsor_doc)
    sponsor_doc["_id"] = result.inserted_id

    if data.auto_approve:
        await record_moderation_action(admin, "sponsor_approved", "sponsor", str(result.inserted_id),
                                       reason="Created and approved by admin")
    return to_sponsor_response(sponsor_doc)


@router.patch("/admin/{sponsor_id}", response_model=SponsorResponse, dependencies=admin_rate_limit)
async def admin_update_sponsor(sponsor_id: str, data: SponsorUpdate, admin: dict = Depends(verify_admin)) -> SponsorResponse:
    sponsor = await sponsors_collection.find_one({"_id": ObjectId(sponsor_id)})
    if not sponsor:
        raise NotFoundException("Sponsor", sponsor_id)

    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    budget_min = changes.get("budget_min", sponsor.get("budget_min"))
    budget_max = changes.get("budget_max", sponsor.get("budget_max"))
    if budget_min is not None and budget_max is not None and budget_min > budget_max:
        raise ValidationException("budget_min cannot be greater than budget_max")

    changes["updated_at"] = datetime.utcnow()
    updated = await sponsors_collection.find_one_and_update(
        {"_id": sponsor["_id"]}, {"$set": changes}, return_document=True
    )
    return to_sponsor_response(updated)


@router.delete("/{sponsor_id}", dependencies=admin_rate_limit)
async def delete_sponsor(sponsor_id: str, superadmin: dict = Depends(verify_superadmin)):
    result = await sponsors_collection.delete_one({"_id": ObjectId(sponsor_id)})
    if result.deleted_count == 0:
        raise NotFoundException("Sponsor", sponsor_id)
    removed = await event_sponsors_collection.delete_many({"sponsor_id": sponsor_id})
    logger.info(f"Sponsor {sponsor_id} deleted with {removed.deleted_count} event links")
    return {"message": "Sponsor deleted successfully"}


@router.get("/{sponsor_id}", response_model=SponsorResponse)
async def get_sponsor(sponsor_id: str, current_user: Optional[dict] = Depends(get_optional_user)) -> SponsorResponse:
    """Approved sponsors are public; anything else is visible to admins only."""
    sponsor = await sponsors_collection.find_one({"_id": ObjectId(sponsor_id)})
    if not sponsor:
        raise NotFoundException("Sponsor", sponsor_id)
    if sponsor.get("status") != DIRECTORY_STATUS_APPROVED and not (current_user and is_admin(current_user)):
        raise NotFoundException("Sponsor", sponsor_id)
    return to_sponsor_response(sponsor)
