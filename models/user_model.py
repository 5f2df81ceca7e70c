# models/user_model.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field


class UserRegister(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordUpdateRequest(BaseModel):
    token: str
    new_password: str


class VerifyEmailRequest(BaseModel):
    token: str = Field(..., min_length=1)


class ResendVerificationRequest(BaseModel):
    email: EmailStr


class VerificationStatusResponse(BaseModel):
    verified: bool
    email: Optional[str] = None


class UserResponse(BaseModel):
    user_id: str
    name: str
    email: str
    role: str = "organizer"
    status: str = "active"
    email_verified: bool = False
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    suspended_at: Optional[datetime] = None
    suspended_reason: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class CreateAdminRequest(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=100)


class UserCountsResponse(BaseModel):
    total: int
    by_role: dict
    by_status: dict


class BulkSuspendRequest(BaseModel):
    user_ids: List[str] = Field(..., min_length=1)
    reason: str = Field(..., min_length=1)


class BulkUserIdsRequest(BaseModel):
    user_ids: List[str] = Field(..., min_length=1)


class BulkFailure(BaseModel):
    user_id: str
    error: str


class BulkActionResult(BaseModel):
    succeeded: List[str]
    failed: List[BulkFailure]


class SuspendUserRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class ChangeRoleRequest(BaseModel):
    new_role: Literal["admin", "organizer"]
    reason: Optional[str] = None


def to_user_response(user: dict) -> UserResponse:
    return UserResponse(
        user_id=str(user["_id"]),
        name=user.get("name", ""),
        email=user.get("email", ""),
        role=user.get("role") or "organizer",
        status=user.get("status") or "active",
        email_verified=user.get("email_verified", False),
        created_at=user.get("created_at"),
        last_login_at=user.get("last_login_at"),
        suspended_at=user.get("suspended_at"),
        suspended_reason=user.get("suspended_reason"),
    )
