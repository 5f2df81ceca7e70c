from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AIUsageResponse(BaseModel):
    prompts_used: int
    prompts_remaining: int
    daily_limit: int
    total_prompts: int
    resets_at: datetime


class QuotaCheckResponse(BaseModel):
    allowed: bool
    remaining: int
    limit: int
    reason: Optional[str] = None


class UserUsageRow(BaseModel):
    user_id: str
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    prompts_used: int
    daily_limit: int
    total_prompts: int
    last_reset_date: Optional[str] = None


class SetUserLimitRequest(BaseModel):
    daily_limit: int = Field(..., ge=0)
