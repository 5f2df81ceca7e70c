from typing import Optional

from pydantic import BaseModel, Field


class ApproveRequest(BaseModel):
    notes: Optional[str] = None


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=1)
    notes: Optional[str] = None


class CountResponse(BaseModel):
    count: int
