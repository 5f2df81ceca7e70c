import secrets
import string
import time
from datetime import datetime
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, Query
from pymongo.errors import DuplicateKeyError

from auth.user_role_utils import verify_organizer, get_managed_event
from constants import ATTENDEE_STATUSES, DEFAULT_TICKET_TYPE, DEFAULT_ATTENDEE_SOURCE
from database import attendees_collection
from models.attendee import (
    AttendeeCreate,
    AttendeeUpdate,
    AttendeeResponse,
    AttendeeListResponse,
    AttendeeStats,
    BulkImportRequest,
    BulkImportResult,
    CheckInRequest,
    CheckInResult,
    to_attendee_response,
)
from utils.exceptions import AlreadyExistsException, ConflictException, NotFoundException, ValidationException
from utils.export_formatter import format_export
from utils.pagination import matches_search
from utils.validators import is_valid_email
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/events/{event_id}/attendees", tags=["attendees"])

EXPORT_HEADERS = (
    "name", "email", "phone", "ticket_number", "ticket_type",
    "status", "source", "registered_at", "checked_in_at", "notes",
)

_BASE36 = string.digits + string.ascii_uppercase
_TICKET_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_ticket_number() -> str:
    """TKT-<base36 epoch millis>-<6 random characters>, uppercase."""
    suffix = "".join(secrets.choice(_TICKET_SUFFIX_ALPHABET) for _ in range(6))
    return f"TKT-{_to_base36(int(time.time() * 1000))}-{suffix}"


def _clean_email(email: str) -> str:
    email = (email or "").strip().lower()
    if not is_valid_email(email):
        raise ValidationException(f"Invalid email address: {email}")
    return email


async def _get_attendee(event_id: str, attendee_id: str) -> dict:
    attendee = await attendees_collection.find_one({"_id": ObjectId(attendee_id), "event_id": event_id})
    if not attendee:
        raise NotFoundException("Attendee", attendee_id)
    return attendee


async def _insert_attendee(event_id: str, name: str, email: str, phone=None, ticket_type=None,
                           status: str = "registered", source=None, notes=None) -> dict:
    doc = {
        "event_id": event_id,
        "name": name.strip(),
        "email": email,
        "phone": phone,
        "ticket_number": generate_ticket_number(),
        "ticket_type": ticket_type or DEFAULT_TICKET_TYPE,
        "status": status,
        "source": source or DEFAULT_ATTENDEE_SOURCE,
        "notes": notes,
        "registered_at": datetime.utcnow(),
        "checked_in_at": None,
        "checked_in_by": None,
    }
    result = await attendees_collection.insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


async def _set_status(attendee: dict, changes: dict) -> dict:
    return await attendees_collection.find_one_and_update(
        {"_id": attendee["_id"]}, {"$set": changes}, return_document=True
    )


# -------------------
# READ
# -------------------
@router.get("", response_model=AttendeeListResponse)
async def list_attendees(
        event_id: str,
        status: Optional[str] = Query(None),
        search: Optional[str] = Query(None),
        offset: int = Query(0, ge=0),
        limit: int = Query(50, ge=1, le=500),
        current_user: dict = Depends(verify_organizer)
):
    await get_managed_event(event_id, current_user)
    query = {"event_id": event_id}
    if status:
        query["status"] = status
    attendees = await attendees_collection.find(query).sort("registered_at", -1).to_list(length=None)
    attendees = [a for a in attendees if matches_search(a, search, ("name", "email", "ticket_number"))]

    window = attendees[offset:offset + limit]
    return AttendeeListResponse(
        attendees=[to_attendee_response(a) for a in window],
        total=len(attendees),
        has_more=offset + limit < len(attendees),
    )


@router.get("/stats", response_model=AttendeeStats)
async def get_attendee_stats(event_id: str, current_user: dict = Depends(verify_organizer)):
    await get_managed_event(event_id, current_user)
    attendees = await attendees_collection.find({"event_id": event_id}).to_list(length=None)

    counts = {status: 0 for status in ATTENDEE_STATUSES}
    by_ticket_type = {}
    for attendee in attendees:
        counts[attendee["status"]] = counts.get(attendee["status"], 0) + 1
        ticket_type = attendee.get("ticket_type") or DEFAULT_TICKET_TYPE
        by_ticket_type[ticket_type] = by_ticket_type.get(ticket_type, 0) + 1

    expected = len(attendees) - counts["cancelled"]
    check_in_rate = round(counts["checked_in"] / expected * 100) if expected > 0 else 0
    return AttendeeStats(total=len(attendees), check_in_rate=check_in_rate, by_ticket_type=by_ticket_type, **counts)


@router.get("/export")
async def export_attendees(
        event_id: str,
        format: str = Query("csv", pattern="^(csv|json)$"),
        current_user: dict = Depends(verify_organizer)
):
    await get_managed_event(event_id, current_user)
    attendees = await attendees_collection.find({"event_id": event_id}).sort("registered_at", 1).to_list(length=None)
    rows = [{header: a.get(header) for header in EXPORT_HEADERS} for a in attendees]
    return format_export(rows, EXPORT_HEADERS, format)


@router.get("/ticket/{ticket_number}", response_model=AttendeeResponse)
async def get_attendee_by_ticket(event_id: str, ticket_number: str, current_user: dict = Depends(verify_organizer)):
    await get_managed_event(event_id, current_user)
    attendee = await attendees_collection.find_one({"event_id": event_id, "ticket_number": ticket_number.upper()})
    if not attendee:
        raise NotFoundException("Ticket", ticket_number)
    return to_attendee_response(attendee)


# -------------------
# REGISTRATION
# -------------------
@router.post("", response_model=AttendeeResponse, status_code=201)
async def create_attendee(event_id: str, data: AttendeeCreate, current_user: dict = Depends(verify_organizer)):
    await get_managed_event(event_id, current_user)
    email = _clean_email(data.email)
    if await attendees_collection.find_one({"event_id": event_id, "email": email}):
        raise AlreadyExistsException("An attendee with this email is already registered for this event")

    try:
        attendee = await _insert_attendee(event_id, data.name, email, data.phone, data.ticket_type,
                                          data.status, data.source, data.notes)
    except DuplicateKeyError:
        raise ConflictException("Ticket number collision, please retry")
    return to_attendee_response(attendee)


@router.post("/bulk", response_model=BulkImportResult)
async def bulk_import_attendees(event_id: str, data: BulkImportRequest, current_user: dict = Depends(verify_organizer)):
    """Import many attendees at once. Rows with invalid or duplicate emails are skipped, not fatal."""
    await get_managed_event(event_id, current_user)
    existing = await attendees_collection.find({"event_id": event_id}, {"email": 1}).to_list(length=None)
    seen = {a["email"] for a in existing}

    imported, skipped, errors = 0, 0, []
    for row_number, row in enumerate(data.attendees, start=1):
        email = (row.email or "").strip().lower()
        if not is_valid_email(email):
            skipped += 1
            errors.append(f"Row {row_number}: invalid email '{row.email}'")
            continue
        if email in seen:
            skipped += 1
            errors.append(f"Row {row_number}: {email} is already registered")
            continue
        if not row.name.strip():
            skipped += 1
            errors.append(f"Row {row_number}: name is required")
            continue
        await _insert_attendee(event_id, row.name, email, row.phone, row.ticket_type, source="import")
        seen.add(email)
        imported += 1

    logger.info(f"Imported {imported} attendees into event {event_id} ({skipped} skipped)")
    return BulkImportResult(imported=imported, skipped=skipped, errors=errors)


@router.patch("/{attendee_id}", response_model=AttendeeResponse)
async def update_attendee(
        event_id: str,
        attendee_id: str,
        data: AttendeeUpdate,
        current_user: dict = Depends(verify_organizer)
):
    await get_managed_event(event_id, current_user)
    attendee = await _get_attendee(event_id, attendee_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)

    if "email" in changes:
        changes["email"] = _clean_email(changes["email"])
        if changes["email"] != attendee["email"] and await attendees_collection.find_one(
            {"event_id": event_id, "email": changes["email"]}
        ):
            raise AlreadyExistsException("An attendee with this email is already registered for this event")
    if "name" in changes:
        changes["name"] = changes["name"].strip()
    if not changes:
        return to_attendee_response(attendee)
    return to_attendee_response(await _set_status(attendee, changes))


@router.delete("/{attendee_id}")
async def delete_attendee(event_id: str, attendee_id: str, current_user: dict = Depends(verify_organizer)):
    await get_managed_event(event_id, current_user)
    result = await attendees_collection.delete_one({"_id": ObjectId(attendee_id), "event_id": event_id})
    if result.deleted_count == 0:
        raise NotFoundException("Attendee", attendee_id)
    return {"message": "Attendee deleted successfully"}


# -------------------
# CHECK-IN
# -------------------
@router.post("/check-in", response_model=CheckInResult)
async def check_in_attendee(event_id: str, data: CheckInRequest, current_user: dict = Depends(verify_organizer)):
    await get_managed_event(event_id, current_user)
    if data.attendee_id:
        attendee = await _get_attendee(event_id, data.attendee_id)
    else:
        attendee = await attendees_collection.find_one(
            {"event_id": event_id, "ticket_number": data.ticket_number.strip().upper()}
        )
        if not attendee:
            raise NotFoundException("Ticket", data.ticket_number)

    if attendee["status"] == "checked_in":
        return CheckInResult(
            attendee=to_attendee_response(attendee),
            already_checked_in=True,
            checked_in_at=attendee.get("checked_in_at"),
        )
    if attendee["status"] == "cancelled":
        raise ValidationException("Cannot check in a cancelled attendee")

    now = datetime.utcnow()
    updated = await _set_status(attendee, {
        "status": "checked_in",
        "checked_in_at": now,
        "checked_in_by": str(current_user["_id"]),
    })
    return CheckInResult(attendee=to_attendee_response(updated), checked_in_at=now)


@router.post("/{attendee_id}/undo-check-in", response_model=AttendeeResponse)
async def undo_check_in(event_id: str, attendee_id: str, current_user: dict = Depends(verify_organizer)):
    await get_managed_event(event_id, current_user)
    attendee = await _get_attendee(event_id, attendee_id)
    if attendee["status"] != "checked_in":
        raise ValidationException("Attendee is not checked in")
    updated = await _set_status(attendee, {"status": "confirmed", "checked_in_at": None, "checked_in_by": None})
    return to_attendee_response(updated)


@router.post("/{attendee_id}/cancel", response_model=AttendeeResponse)
async def cancel_attendee(event_id: str, attendee_id: str, current_user: dict = Depends(verify_organizer)):
    await get_managed_event(event_id, current_user)
    attendee = await _get_attendee(event_id, attendee_id)
    if attendee["status"] == "cancelled":
        raise ConflictException("Attendee registration is already cancelled")
    updated = await _set_status(attendee, {"status": "cancelled", "cancelled_at": datetime.utcnow()})
    return to_attendee_response(updated)


@router.post("/{attendee_id}/no-show", response_model=AttendeeResponse)
async def mark_no_show(event_id: str, attendee_id: str, current_user: dict = Depends(verify_organizer)):
    await get_managed_event(event_id, current_user)
    attendee = await _get_attendee(event_id, attendee_id)
    if attendee["status"] == "checked_in":
        raise ValidationException("Cannot mark a checked-in attendee as no-show")
    updated = await _set_status(attendee, {"status": "no_show"})
    return to_attendee_response(updated)
