"""
Vendors and sponsors attached to a specific event, with their negotiation status.

Both relationships share one implementation; PARTNER_KINDS maps each kind to
its link collection and directory collection.
"""
from datetime import datetime
from typing import List

from bson import ObjectId
from fastapi import APIRouter, BackgroundTasks, Depends

from auth.user_role_utils import verify_organizer, get_managed_event
from database import event_vendors_collection, event_sponsors_collection, vendors_collection, sponsors_collection
from models.event_partner import (
    AddVendorToEvent,
    AddSponsorToEvent,
    PartnerStatusUpdate,
    EventPartnerResponse,
    to_partner_response,
)
from models.sponsor import to_sponsor_response
from models.vendor import to_vendor_response
from utils.exceptions import NotFoundException
from utils.webhook_dispatcher import trigger_webhooks

router = APIRouter(prefix="/events/{event_id}", tags=["event_partners"])

PARTNER_KINDS = {
    "vendor": (event_vendors_collection, vendors_collection, to_vendor_response),
    "sponsor": (event_sponsors_collection, sponsors_collection, to_sponsor_response),
}


async def _partner_details(kind: str, partner_id: str):
    _, directory, to_response = PARTNER_KINDS[kind]
    partner = await directory.find_one({"_id": ObjectId(partner_id)})
    return partner, (to_response(partner).model_dump() if partner else None)


async def add_partner(kind: str, event_id: str, partner_id: str, notes, proposed_budget, user: dict) -> EventPartnerResponse:
    await get_managed_event(event_id, user)
    links, _, _ = PARTNER_KINDS[kind]
    partner, details = await _partner_details(kind, partner_id)
    if not partner:
        raise NotFoundException(kind.capitalize(), partner_id)

    existing = await links.find_one({"event_id": event_id, f"{kind}_id": partner_id})
    if existing:
        return to_partner_response(existing, kind, partner=details, existed=True)

    now = datetime.utcnow()
    link = {
        "event_id": event_id,
        f"{kind}_id": partner_id,
        "status": "inquiry",
        "notes": notes,
        "proposed_budget": proposed_budget,
        "final_budget": None,
        "created_at": now,
        "updated_at": now,
    }
    result = await links.insert_one(link)
    link["_id"] = result.inserted_id
    return to_partner_response(link, kind, partner=details)


async def update_partner_status(kind: str, event_id: str, link_id: str, data: PartnerStatusUpdate, user: dict,
                                background_tasks: BackgroundTasks) -> EventPartnerResponse:
    event = await get_managed_event(event_id, user)
    links, _, _ = PARTNER_KINDS[kind]
    link = await links.find_one({"_id": ObjectId(link_id), "event_id": event_id})
    if not link:
        raise NotFoundException(f"Event {kind}", link_id)

    changes = {"status": data.status, "updated_at": datetime.utcnow()}
    if data.final_budget is not None:
        changes["final_budget"] = data.final_budget
    if data.notes is not None:
        changes["notes"] = data.notes
    updated = await links.find_one_and_update({"_id": link["_id"]}, {"$set": changes}, return_document=True)

    if data.status in ("confirmed", "declined") and link["status"] != data.status:
        partner, details = await _partner_details(kind, link[f"{kind}_id"])
        await trigger_webhooks(event["organizer_id"], f"{kind}.{data.status}", {
            "event_id": event_id,
            "event_title": event["title"],
            f"{kind}_id": link[f"{kind}_id"],
            f"{kind}_name": partner["name"] if partner else None,
            "final_budget": updated.get("final_budget"),
        }, background_tasks)
    else:
        details = (await _partner_details(kind, link[f"{kind}_id"]))[1]
    return to_partner_response(updated, kind, partner=details)


async def remove_partner(kind: str, event_id: str, link_id: str, user: dict):
    await get_managed_event(event_id, user)
    links, _, _ = PARTNER_KINDS[kind]
    result = await links.delete_one({"_id": ObjectId(link_id), "event_id": event_id})
    if result.deleted_count == 0:
        raise NotFoundException(f"Event {kind}", link_id)
    return {"message": f"{kind.capitalize()} removed from event"}


async def list_partners(kind: str, event_id: str, user: dict) -> List[EventPartnerResponse]:
    await get_managed_event(event_id, user)
    links, directory, to_response = PARTNER_KINDS[kind]
    rows = await links.find({"event_id": event_id}).sort("created_at", -1).to_list(length=None)
    ids = [ObjectId(row[f"{kind}_id"]) for row in rows if ObjectId.is_valid(row[f"{kind}_id"])]
    partners = await directory.find({"_id": {"$in": ids}}).to_list(length=None)
    by_id = {str(p["_id"]): to_response(p).model_dump() for p in partners}
    return [to_partner_response(row, kind, partner=by_id.get(row[f"{kind}_id"])) for row in rows]


# -------------------
# VENDORS
# -------------------
@router.get("/vendors", response_model=List[EventPartnerResponse])
async def list_event_vendors(event_id: str, current_user: dict = Depends(verify_organizer)):
    return await list_partners("vendor", event_id, current_user)


@router.post("/vendors", response_model=EventPartnerResponse)
async def add_vendor_to_event(event_id: str, data: AddVendorToEvent, current_user: dict = Depends(verify_organizer)):
    return await add_partner("vendor", event_id, data.vendor_id, data.notes, data.proposed_budget, current_user)


@router.patch("/vendors/{link_id}", response_model=EventPartnerResponse)
async def update_event_vendor_status(event_id: str, link_id: str, data: PartnerStatusUpdate,
                                     background_tasks: BackgroundTasks,
                                     current_user: dict = Depends(verify_organizer)):
    return await update_partner_status("vendor", event_id, link_id, data, current_user, background_tasks)


@router.delete("/vendors/{link_id}")
async def remove_vendor_from_event(event_id: str, link_id: str, current_user: dict = Depends(verify_organizer)):
    return await remove_partner("vendor", event_id, link_id, current_user)


# -------------------
# SPONSORS
# -------------------
@router.get("/sponsors", response_model=List[EventPartnerResponse])
async def list_event_sponsors(event_id: str, current_user: dict = Depends(verify_organizer)):
    return await list_partners("sponsor", event_id, current_user)


@router.post("/sponsors", response_model=EventPartnerResponse)
async def add_sponsor_to_event(event_id: str, data: AddSponsorToEvent, current_user: dict = Depends(verify_organizer)):
    return await add_partner("sponsor", event_id, data.sponsor_id, data.notes, data.proposed_budget, current_user)


@router.patch("/sponsors/{link_id}", response_model=EventPartnerResponse)
async def update_event_sponsor_status(event_id: str, link_id: str, data: PartnerStatusUpdate,
                                      background_tasks: BackgroundTasks,
                                      current_user: dict = Depends(verify_organizer)):
    return await update_partner_status("sponsor", event_id, link_id, data, current_user, background_tasks)


@router.delete("/sponsors/{link_id}")
async def remove_sponsor_from_event(event_id: str, link_id: str, current_user: dict = Depends(verify_organizer)):
    return await remove_partner("sponsor", event_id, link_id, current_user)
