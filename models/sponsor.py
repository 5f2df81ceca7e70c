from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator


class SponsorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    company_name: Optional[str] = None
    description: Optional[str] = None
    industry: str = Field(..., min_length=1)
    sponsorship_tiers: List[str] = []
    budget_min: Optional[float] = Field(None, ge=0)
    budget_max: Optional[float] = Field(None, ge=0)
    logo_url: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    website: Optional[str] = None

    @model_validator(mode="after")
    def check_budget_range(self):
        if self.budget_min is not None and self.budget_max is not None and self.budget_min > self.budget_max:
            raise ValueError("budget_min cannot be greater than budget_max")
        return self


class SponsorAdminCreate(SponsorCreate):
    auto_approve: bool = False


class SponsorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    company_name: Optional[str] = None
    description: Optional[str] = None
    industry: Optional[str] = None
    sponsorship_tiers: Optional[List[str]] = None
    budget_min: Optional[float] = Field(None, ge=0)
    budget_max: Optional[float] = Field(None, ge=0)
    logo_url: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    website: Optional[str] = None
    verified: Optional[bool] = None


class SponsorResponse(BaseModel):
    sponsor_id: str
    name: str
    company_name: Optional[str] = None
    description: Optional[str] = None
    industry: str
    sponsorship_tiers: List[str] = []
    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    logo_url: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    website: Optional[str] = None
    verified: bool = False
    status: str
    owner_id: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: datetime


def to_sponsor_response(sponsor: dict) -> SponsorResponse:
    return SponsorResponse(
        sponsor_id=str(sponsor["_id"]),
        name=sponsor["name"],
        company_name=sponsor.get("company_name"),
        description=sponsor.get("description"),
        industry=sponsor.get("industry", ""),
        sponsorship_tiers=sponsor.get("sponsorship_tiers") or [],
        budget_min=sponsor.get("budget_min"),
        budget_max=sponsor.get("budget_max"),
        logo_url=sponsor.get("logo_url"),
        contact_email=sponsor.get("contact_email"),
        contact_phone=sponsor.get("contact_phone"),
        website=sponsor.get("website"),
        verified=sponsor.get("verified", False),
        status=sponsor.get("status", "pending"),
        owner_id=sponsor.get("owner_id"),
        reviewed_by=sponsor.get("reviewed_by"),
        reviewed_at=sponsor.get("reviewed_at"),
        review_notes=sponsor.get("review_notes"),
        rejection_reason=sponsor.get("rejection_reason"),
        created_at=sponsor["created_at"],
    )
