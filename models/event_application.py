from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

ApplicantType = Literal["vendor", "sponsor"]


class ApplicationSubmit(BaseModel):
    event_id: str
    applicant_type: ApplicantType
    applicant_id: str
    message: Optional[str] = Field(None, max_length=2000)
    proposed_budget: Optional[float] = Field(None, ge=0)


class ApplicationStatusUpdate(BaseModel):
    status: Literal["under_review", "accepted", "rejected"]
    rejection_reason: Optional[str] = None


class ApplicationResponse(BaseModel):
    application_id: str
    event_id: str
    applicant_type: str
    applicant_id: str
    status: str
    message: Optional[str] = None
    proposed_budget: Optional[float] = None
    submitted_by: Optional[str] = None
    responded_at: Optional[datetime] = None
    responded_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
    applicant_name: Optional[str] = None
    applicant_category: Optional[str] = None
    applicant_email: Optional[str] = None
    event_title: Optional[str] = None


class ApplicationCounts(BaseModel):
    total: int
    pending: int
    accepted: int


def to_application_response(doc: dict, applicant: Optional[dict] = None, event: Optional[dict] = None) -> ApplicationResponse:
    category = None
    if applicant:
        category = applicant.get("category") if doc["applicant_type"] == "vendor" else applicant.get("industry")
    return ApplicationResponse(
        application_id=str(doc["_id"]),
        event_id=doc["event_id"],
        applicant_type=doc["applicant_type"],
        applicant_id=doc["applicant_id"],
        status=doc["status"],
        message=doc.get("message"),
        proposed_budget=doc.get("proposed_budget"),
        submitted_by=doc.get("submitted_by"),
        responded_at=doc.get("responded_at"),
        responded_by=doc.get("responded_by"),
        rejection_reason=doc.get("rejection_reason"),
        created_at=doc["created_at"],
        applicant_name=applicant.get("name") if applicant else None,
        applicant_category=category,
        applicant_email=applicant.get("contact_email") if applicant else None,
        event_title=event.get("title") if event else None,
    )
