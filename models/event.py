from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from constants import EVENT_STATUS_DRAFT

EventStatus = Literal["draft", "planning", "active", "completed", "cancelled"]
LocationType = Literal["in_person", "virtual", "hybrid"]


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    event_type: Optional[str] = None
    status: EventStatus = EVENT_STATUS_DRAFT
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    location_type: Optional[LocationType] = None
    venue_name: Optional[str] = None
    venue_address: Optional[str] = None
    expected_attendees: Optional[int] = Field(None, ge=0)
    budget: Optional[float] = Field(None, ge=0)
    is_public: bool = False
    seeking_vendors: bool = False
    seeking_sponsors: bool = False


class EventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    event_type: Optional[str] = None
    status: Optional[EventStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    location_type: Optional[LocationType] = None
    venue_name: Optional[str] = None
    venue_address: Optional[str] = None
    expected_attendees: Optional[int] = Field(None, ge=0)
    budget: Optional[float] = Field(None, ge=0)
    is_public: Optional[bool] = None
    seeking_vendors: Optional[bool] = None
    seeking_sponsors: Optional[bool] = None


class EventResponse(BaseModel):
    event_id: str
    organizer_id: str
    title: str
    description: Optional[str] = None
    event_type: Optional[str] = None
    status: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    location_type: Optional[str] = None
    venue_name: Optional[str] = None
    venue_address: Optional[str] = None
    expected_attendees: Optional[int] = None
    budget: Optional[float] = None
    is_public: bool = False
    seeking_vendors: bool = False
    seeking_sponsors: bool = False
    logo_url: Optional[str] = None
    is_flagged: bool = False
    flag_reason: Optional[str] = None
    flag_severity: Optional[str] = None
    flagged_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class PublicEventResponse(BaseModel):
    event_id: str
    title: str
    description: Optional[str] = None
    event_type: Optional[str] = None
    status: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    location_type: Optional[str] = None
    venue_name: Optional[str] = None
    expected_attendees: Optional[int] = None
    seeking_vendors: bool = False
    seeking_sponsors: bool = False
    logo_url: Optional[str] = None
    organizer_name: Optional[str] = None


class FlagEventRequest(BaseModel):
    reason: str = Field(..., min_length=1)
    severity: Literal["low", "medium", "high"]


class RemoveEventRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class FlaggedEventResponse(BaseModel):
    event_id: str
    title: str
    status: str
    organizer_id: str
    organizer_name: Optional[str] = None
    flag_reason: Optional[str] = None
    flag_severity: Optional[str] = None
    flagged_at: Optional[datetime] = None
    flagged_by: Optional[str] = None


class FlaggedCountResponse(BaseModel):
    total: int
    low: int
    medium: int
    high: int


def to_event_response(event: dict) -> EventResponse:
    return EventResponse(
        event_id=str(event["_id"]),
        organizer_id=event["organizer_id"],
        title=event["title"],
        description=event.get("description"),
        event_type=event.get("event_type"),
        status=event.get("status", EVENT_STATUS_DRAFT),
        start_date=event.get("start_date"),
        end_date=event.get("end_date"),
        location_type=event.get("location_type"),
        venue_name=event.get("venue_name"),
        venue_address=event.get("venue_address"),
        expected_attendees=event.get("expected_attendees"),
        budget=event.get("budget"),
        is_public=event.get("is_public", False),
        seeking_vendors=event.get("seeking_vendors", False),
        seeking_sponsors=event.get("seeking_sponsors", False),
        logo_url=event.get("logo_url"),
        is_flagged=event.get("is_flagged", False),
        flag_reason=event.get("flag_reason"),
        flag_severity=event.get("flag_severity"),
        flagged_at=event.get("flagged_at"),
        created_at=event["created_at"],
        updated_at=event.get("updated_at"),
    )


EVENT_SORT_FIELDS: List[str] = ["start_date", "created_at", "title"]
