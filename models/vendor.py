from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class VendorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: str = Field(..., min_length=1)
    location: Optional[str] = None
    price_range: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    website: Optional[str] = None


class VendorAdminCreate(VendorCreate):
    auto_approve: bool = False


class VendorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    price_range: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    website: Optional[str] = None
    verified: Optional[bool] = None


class VendorResponse(BaseModel):
    vendor_id: str
    name: str
    description: Optional[str] = None
    category: str
    location: Optional[str] = None
    price_range: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    website: Optional[str] = None
    rating: float = 0
    review_count: int = 0
    verified: bool = False
    status: str
    owner_id: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: datetime


def to_vendor_response(vendor: dict) -> VendorResponse:
    return VendorResponse(
        vendor_id=str(vendor["_id"]),
        name=vendor["name"],
        description=vendor.get("description"),
        category=vendor.get("category", ""),
        location=vendor.get("location"),
        price_range=vendor.get("price_range"),
        contact_email=vendor.get("contact_email"),
        contact_phone=vendor.get("contact_phone"),
        website=vendor.get("website"),
        rating=vendor.get("rating", 0),
        review_count=vendor.get("review_count", 0),
        verified=vendor.get("verified", False),
        status=vendor.get("status", "pending"),
        owner_id=vendor.get("owner_id"),
        reviewed_by=vendor.get("reviewed_by"),
        reviewed_at=vendor.get("reviewed_at"),
        review_notes=vendor.get("review_notes"),
        rejection_reason=vendor.get("rejection_reason"),
        created_at=vendor["created_at"],
    )
