from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

AttendeeStatus = Literal["registered", "confirmed", "checked_in", "cancelled", "no_show"]


class AttendeeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: str
    phone: Optional[str] = None
    ticket_type: Optional[str] = None
    status: Literal["registered", "confirmed"] = "registered"
    source: Optional[str] = None
    notes: Optional[str] = None


class AttendeeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[str] = None
    phone: Optional[str] = None
    ticket_type: Optional[str] = None
    status: Optional[AttendeeStatus] = None
    notes: Optional[str] = None


class CheckInRequest(BaseModel):
    attendee_id: Optional[str] = None
    ticket_number: Optional[str] = None

    @model_validator(mode="after")
    def require_identifier(self):
        if not self.attendee_id and not self.ticket_number:
            raise ValueError("Either attendee_id or ticket_number is required")
        return self


class BulkImportRow(BaseModel):
    name: str
    email: str
    phone: Optional[str] = None
    ticket_type: Optional[str] = None


class BulkImportRequest(BaseModel):
    attendees: List[BulkImportRow] = Field(..., min_length=1)


class BulkImportResult(BaseModel):
    imported: int
    skipped: int
    errors: List[str]


class AttendeeResponse(BaseModel):
    attendee_id: str
    event_id: str
    name: str
    email: str
    phone: Optional[str] = None
    ticket_number: str
    ticket_type: str
    status: str
    source: str
    notes: Optional[str] = None
    registered_at: datetime
    checked_in_at: Optional[datetime] = None
    checked_in_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None


class AttendeeListResponse(BaseModel):
    attendees: List[AttendeeResponse]
    total: int
    has_more: bool


class CheckInResult(BaseModel):
    attendee: AttendeeResponse
    already_checked_in: bool = False
    checked_in_at: Optional[datetime] = None


class AttendeeStats(BaseModel):
    total: int
    registered: int
    confirmed: int
    checked_in: int
    cancelled: int
    no_show: int
    check_in_rate: int
    by_ticket_type: dict


def to_attendee_response(doc: dict) -> AttendeeResponse:
    return AttendeeResponse(
        attendee_id=str(doc["_id"]),
        event_id=doc["event_id"],
        name=doc["name"],
        email=doc["email"],
        phone=doc.get("phone"),
        ticket_number=doc["ticket_number"],
        ticket_type=doc.get("ticket_type", "General"),
        status=doc["status"],
        source=doc.get("source", "manual"),
        notes=doc.get("notes"),
        registered_at=doc["registered_at"],
        checked_in_at=doc.get("checked_in_at"),
        checked_in_by=doc.get("checked_in_by"),
        cancelled_at=doc.get("cancelled_at"),
    )
