"""Event <-> vendor and event <-> sponsor relationships."""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

PartnerStatus = Literal["inquiry", "negotiating", "confirmed", "declined", "completed"]


class AddVendorToEvent(BaseModel):
    vendor_id: str
    notes: Optional[str] = None
    proposed_budget: Optional[float] = Field(None, ge=0)


class AddSponsorToEvent(BaseModel):
    sponsor_id: str
    notes: Optional[str] = None
    proposed_budget: Optional[float] = Field(None, ge=0)


class PartnerStatusUpdate(BaseModel):
    status: PartnerStatus
    final_budget: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class EventPartnerResponse(BaseModel):
    id: str
    event_id: str
    partner_id: str
    partner_type: Literal["vendor", "sponsor"]
    status: str
    notes: Optional[str] = None
    proposed_budget: Optional[float] = None
    final_budget: Optional[float] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    existed: bool = False
    partner: Optional[dict] = None


def to_partner_response(doc: dict, partner_type: str, partner: Optional[dict] = None, existed: bool = False) -> EventPartnerResponse:
    return EventPartnerResponse(
        id=str(doc["_id"]),
        event_id=doc["event_id"],
        partner_id=doc[f"{partner_type}_id"],
        partner_type=partner_type,
        status=doc["status"],
        notes=doc.get("notes"),
        proposed_budget=doc.get("proposed_budget"),
        final_budget=doc.get("final_budget"),
        created_at=doc["created_at"],
        updated_at=doc.get("updated_at"),
        existed=existed,
        partner=partner,
    )
