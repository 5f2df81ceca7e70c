from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request

from auth.auth_utils import get_optional_user
from auth.user_role_utils import verify_admin, verify_superadmin
from constants import DIRECTORY_STATUS_APPROVED, DIRECTORY_STATUS_PENDING, DIRECTORY_STATUSES
from database import vendors_collection, event_vendors_collection
from middleware.global_rate_limit import rate_limit
from middleware.rate_limiter import limiter, RATE_LIMIT_PUBLIC_APPLICATION
from models.event_partner import EventPartnerResponse, to_partner_response
from models.review import ApproveRequest, RejectRequest, CountResponse
from models.vendor import VendorCreate, VendorAdminCreate, VendorUpdate, VendorResponse, to_vendor_response
from utils.directory_review import approve_listing, reject_listing
from utils.exceptions import ForbiddenException, NotFoundException, ValidationException
from utils.moderation_log import record_moderation_action
from utils.notifier import notify_admins
from utils.pagination import matches_search, sort_documents
from utils.settings_store import get_setting_value
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/vendors", tags=["vendor"])
admin_rate_limit = [Depends(rate_limit("admin"))]


def _new_vendor_doc(data: VendorCreate, owner_id: Optional[str]) -> dict:
    now = datetime.utcnow()
    doc = data.model_dump(exclude={"auto_approve"})
    doc.update({
        "name": data.name.strip(),
        "rating": 0,
        "review_count": 0,
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
@router.get("", response_model=List[VendorResponse])
async def list_vendors(
        category: Optional[str] = Query(None),
        search: Optional[str] = Query(None)
) -> List[VendorResponse]:
    query = {"status": DIRECTORY_STATUS_APPROVED}
    if category and category != "all":
        query["category"] = category
    vendors = await vendors_collection.find(query).to_list(length=None)
    vendors = [v for v in vendors if matches_search(v, search, ("name", "description"))]
    return [to_vendor_response(v) for v in sort_documents(vendors, "name")]


@router.get("/categories", response_model=List[str])
async def get_categories() -> List[str]:
    vendors = await vendors_collection.find({"status": DIRECTORY_STATUS_APPROVED}, {"category": 1}).to_list(length=None)
    return sorted({v["category"] for v in vendors if v.get("category")})


@router.get("/by-event/{event_id}", response_model=List[EventPartnerResponse])
async def get_vendors_by_event(event_id: str) -> List[EventPartnerResponse]:
    links = await event_vendors_collection.find({"event_id": event_id}).to_list(length=None)
    vendor_ids = [ObjectId(link["vendor_id"]) for link in links if ObjectId.is_valid(link["vendor_id"])]
    vendors = await vendors_collection.find({"_id": {"$in": vendor_ids}}).to_list(length=None)
    by_id = {str(v["_id"]): v for v in vendors}
    return [
        to_partner_response(
            link, "vendor",
            partner=to_vendor_response(by_id[link["vendor_id"]]).model_dump() if link["vendor_id"] in by_id else None,
        )
        for link in links
    ]


@router.post("/apply", response_model=VendorResponse, status_code=201)
@limiter.limit(RATE_LIMIT_PUBLIC_APPLICATION)
async def apply_as_vendor(
        request: Request,
        data: VendorCreate,
        current_user: Optional[dict] = Depends(get_optional_user)
) -> VendorResponse:
    """Submit a vendor listing for review. Signing in is optional; signed-in applicants own the listing."""
    if not await get_setting_value("features.vendorApplications", True):
        raise ForbiddenException("Vendor applications are currently disabled")

    vendor_doc = _new_vendor_doc(data, str(current_user["_id"]) if current_user else None)
    result = await vendors_collection.insert_one(vendor_doc)
    vendor_doc["_id"] = result.inserted_id

    await notify_admins(
        "vendor_application",
        "New vendor application",
        f'"{vendor_doc["name"]}" ({vendor_doc["category"]}) is waiting for review.',
        action_url="/admin/vendors",
        action_label="Review vendors",
    )
    logger.info(f"Vendor application received: {vendor_doc['name']}")
    return to_vendor_response(vendor_doc)


# -------------------
# ADMIN
# -------------------
@router.get("/admin/list", response_model=List[VendorResponse], dependencies=admin_rate_limit)
async def list_vendors_for_admin(
        status: Optional[str] = Query(None),
        category: Optional[str] = Query(None),
        limit: int = Query(100, ge=1, le=500),
        admin: dict = Depends(verify_admin)
) -> List[VendorResponse]:
    if status and status not in DIRECTORY_STATUSES:
        raise ValidationException(f"status must be one of: {', '.join(DIRECTORY_STATUSES)}")
    query = {}
    if status:
        query["status"] = status
    if category and category != "all":
        query["category"] = category
    vendors = await vendors_collection.find(query).sort("created_at", -1).to_list(length=limit)
    return [to_vendor_response(v) for v in vendors]


@router.get("/admin/pending-count", response_model=CountResponse, dependencies=admin_rate_limit)
async def get_pending_count(admin: dict = Depends(verify_admin)) -> CountResponse:
    return CountResponse(count=await vendors_collection.count_documents({"status": DIRECTORY_STATUS_PENDING}))


@router.post("/admin/{vendor_id}/approve", response_model=VendorResponse, dependencies=admin_rate_limit)
async def approve_vendor(
        vendor_id: str,
        data: ApproveRequest,
        request: Request,
        background_tasks: BackgroundTasks,
        admin: dict = Depends(verify_admin)
) -> VendorResponse:
    vendor = await approve_listing("vendor", vendors_collection, vendor_id, admin, notes=data.notes,
                                   request=request, background_tasks=background_tasks)
    return to_vendor_response(vendor)


@router.post("/admin/{vendor_id}/reject", response_model=VendorResponse, dependencies=admin_rate_limit)
async def reject_vendor(
        vendor_id: str,
        data: RejectRequest,
        request: Request,
        background_tasks: BackgroundTasks,
        admin: dict = Depends(verify_admin)
) -> VendorResponse:
    vendor = await reject_listing("vendor", vendors_collection, vendor_id, admin, data.reason, notes=data.notes,
                                  request=request, background_tasks=background_tasks)
    return to_vendor_response(vendor)


@router.post("/admin", response_model=VendorResponse, status_code=201, dependencies=admin_rate_limit)
async def admin_create_vendor(data: VendorAdminCreate, admin: dict = Depends(verify_admin)) -> VendorResponse:
    vendor_doc = _new_vendor_doc(data, None)
    if data.auto_approve:
        now = datetime.utcnow()
        vendor_doc.update({
            "status": DIRECTORY_STATUS_APPROVED,
            "verified": True,
            "reviewed_by": str(admin["_id"]),
            "reviewed_at": now,
            "review_notes": "Created and approved by admin",
        })
    result = await vendors_collection.insert_one(vendor_doc)
    vendor_doc["_id"] = result.inserted_id

    if data.auto_approve:
        await record_moderation_action(admin, "vendor_approved", "vendor", str(result.inserted_id),
                                       reason="Created and approved by admin")
    return to_vendor_response(vendor_doc)


@router.patch("/admin/{vendor_id}", response_model=VendorResponse, dependencies=admin_rate_limit)
async def admin_update_vendor(vendor_id: str, data: VendorUpdate, admin: dict = Depends(verify_admin)) -> VendorResponse:
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    changes["updated_at"] = datetime.utcnow()
    updated = await vendors_collection.find_one_and_update(
        {"_id": ObjectId(vendor_id)}, {"$set": changes}, return_document=True
    )
    if not updated:
        raise NotFoundException("Vendor", vendor_id)
    return to_vendor_response(updated)


@router.delete("/{vendor_id}", dependencies=admin_rate_limit)
async def delete_vendor(vendor_id: str, superadmin: dict = Depends(verify_superadmin)):
    result = await vendors_collection.delete_one({"_id": ObjectId(vendor_id)})
    if result.deleted_count == 0:
        raise NotFoundException("Vendor", vendor_id)
    removed = await event_vendors_collection.delete_many({"vendor_id": vendor_id})
    logger.info(f"Vendor {vendor_id} deleted with {removed.deleted_count} event links")
    return {"message": "Vendor deleted successfully"}


@router.get("/{vendor_id}", response_model=VendorResponse)
async def get_vendor(vendor_id: str) -> VendorResponse:
    vendor = await vendors_collection.find_one({"_id": ObjectId(vendor_id)})
    if not vendor:
        raise NotFoundException("Vendor", vendor_id)
    return to_vendor_response(vendor)
