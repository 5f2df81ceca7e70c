from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

SettingType = Literal["string", "number", "boolean", "json"]


class SettingResponse(BaseModel):
    key: str
    value: Any
    type: str
    category: str
    description: Optional[str] = None
    is_default: bool = False
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None


class SettingUpdate(BaseModel):
    value: Any


class SettingCreate(BaseModel):
    key: str = Field(..., min_length=1, max_length=100)
    value: Any
    type: SettingType
    category: str = Field(..., min_length=1)
    description: Optional[str] = None


class BulkSettingUpdate(BaseModel):
    updates: Dict[str, Any] = Field(..., min_length=1)


class BulkSettingResult(BaseModel):
    key: str
    success: bool
    error: Optional[str] = None


class SettingsByKeysRequest(BaseModel):
    keys: List[str]


class InitializeResult(BaseModel):
    created: int
    skipped: int
    total: int
