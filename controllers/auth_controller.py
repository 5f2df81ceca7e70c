# controllers/auth_controller.py
import logging
import secrets
from datetime import datetime, timedelta

from bson import ObjectId
from fastapi import APIRouter, Depends, Request
from jose import jwt, JWTError
from pymongo.errors import DuplicateKeyError

from auth.auth_utils import hash_password, verify_password, create_access_token, get_current_user
from config.settings import SECRET_KEY, ALGORITHM, SITE_URL, PASSWORD_RESET_EXPIRE_MINUTES
from constants import ROLE_ORGANIZER, USER_STATUS_ACTIVE, USER_STATUS_SUSPENDED
from database import users_collection
from email_helper import send_reset_email
from middleware.global_rate_limit import rate_limit
from middleware.rate_limiter import limiter, RATE_LIMIT_LOGIN, RATE_LIMIT_REGISTER, RATE_LIMIT_PASSWORD_RESET
from models.user_model import (
    UserRegister,
    UserLogin,
    UserResponse,
    TokenResponse,
    PasswordResetRequest,
    PasswordUpdateRequest,
    VerifyEmailRequest,
    ResendVerificationRequest,
    VerificationStatusResponse,
    to_user_response,
)
from utils.account_lockout import check_lockout, record_failed_attempt, clear_failed_attempts, format_lockout_duration
from utils.audit_logger import log_audit_event
from utils.email_verification import issue_verification, verify_token
from utils.exceptions import (
    AlreadyExistsException,
    ForbiddenException,
    RateLimitedException,
    UnauthorizedException,
    ValidationException,
)
from utils.request_info import get_client_ip
from utils.settings_store import get_setting_value
from utils.validators import is_valid_email, validate_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])
auth_rate_limit = [Depends(rate_limit("auth"))]

RESET_PURPOSE = "password_reset"
GENERIC_RESET_MESSAGE = "If an account exists for this email, a password reset link has been sent"
GENERIC_VERIFICATION_MESSAGE = "If an account exists with this email, a verification link has been sent"


def _require_strong_password(password: str):
    problems = validate_password(password)
    if problems:
        raise ValidationException(
            "Password does not meet requirements",
            errors={"password": problems},
        )


# --------------------------------------------------------------------
# Registration
# --------------------------------------------------------------------
@router.post("/register", response_model=UserResponse, status_code=201, dependencies=auth_rate_limit)
@limiter.limit(RATE_LIMIT_REGISTER)
async def register(request: Request, user: UserRegister) -> UserResponse:
    email = user.email.lower()
    if not is_valid_email(email):
        raise ValidationException("Invalid email address")

    if await get_setting_value("registration.mode") == "closed":
        raise ForbiddenException("Registration is currently closed")

    _require_strong_password(user.password)

    if await users_collection.find_one({"email": email}):
        raise AlreadyExistsException("Email already registered")

    now = datetime.utcnow()
    user_doc = {
        "name": user.name.strip(),
        "email": email,
        "password_hash": hash_password(user.password),
        "role": ROLE_ORGANIZER,
        "status": USER_STATUS_ACTIVE,
        "email_verified": False,
        "created_at": now,
        "updated_at": now,
    }
    try:
        result = await users_collection.insert_one(user_doc)
    except DuplicateKeyError:
        raise AlreadyExistsException("Email already registered")
    user_doc["_id"] = result.inserted_id

    await log_audit_event("signup", "user", user=user_doc, resource_id=str(result.inserted_id), request=request)
    if await get_setting_value("registration.requireEmailVerification", True):
        await issue_verification(user_doc)
    logger.info(f"New organizer registered: {email}")
    return to_user_response(user_doc)


# --------------------------------------------------------------------
# Login
# --------------------------------------------------------------------
@router.post("/login", response_model=TokenResponse, dependencies=auth_rate_limit)
@limiter.limit(RATE_LIMIT_LOGIN)
async def login(request: Request, credentials: UserLogin) -> TokenResponse:
    email = credentials.email.lower()

    lockout = await check_lockout(email)
    if lockout["locked"]:
        await log_audit_event("login_failed", "auth", status="blocked", user_email=email, request=request,
                              details={"reason": "account_locked"})
        raise RateLimitedException(
            f"Too many failed attempts. Try again in {format_lockout_duration(lockout['retry_after_seconds'])}.",
            retry_after=lockout["retry_after_seconds"],
        )

    db_user = await users_collection.find_one({"email": email})
    if not db_user or not verify_password(credentials.password, db_user.get("password_hash")):
        attempt = await record_failed_attempt(email, get_client_ip(request))
        await log_audit_event("login_failed", "auth", status="failure", user=db_user, user_email=email,
                              request=request, details={"attempts": attempt["attempts"]})
        if attempt["locked"]:
            await log_audit_event("account_locked", "auth", status="blocked", user=db_user, user_email=email,
                                  request=request, details={"duration_seconds": attempt["lock_duration_seconds"]})
        raise UnauthorizedException("Invalid email or password")

    if db_user.get("status") == USER_STATUS_SUSPENDED:
        await log_audit_event("login_failed", "auth", status="blocked", user=db_user, request=request,
                              details={"reason": "suspended"})
        raise ForbiddenException("Your account has been suspended")

    await clear_failed_attempts(email)
    now = datetime.utcnow()
    await users_collection.update_one({"_id": db_user["_id"]}, {"$set": {"last_login_at": now}})
    db_user["last_login_at"] = now

    access_token = create_access_token(
        {"sub": str(db_user["_id"]), "email": db_user["email"], "role": db_user.get("role") or ROLE_ORGANIZER}
    )
    await log_audit_event("login", "auth", user=db_user, request=request)

    return TokenResponse(access_token=access_token, token_type="bearer", user=to_user_response(db_user))


@router.get("/me", response_model=UserResponse)
async def me(current_user: dict = Depends(get_current_user)) -> UserResponse:
    return to_user_response(current_user)


# --------------------------------------------------------------------
# Password reset
# --------------------------------------------------------------------
@router.post("/reset_password", dependencies=auth_rate_limit)
@limiter.limit(RATE_LIMIT_PASSWORD_RESET)
async def reset_password(request: Request, data: PasswordResetRequest):
    email = data.email.lower()
    user = await users_collection.find_one({"email": email})
    if not user:
        # unknown emails get the same response
        return {"message": GENERIC_RESET_MESSAGE}

    # a new request replaces the nonce, so older links stop working
    nonce = secrets.token_urlsafe(16)
    await users_collection.update_one({"_id": user["_id"]}, {"$set": {"password_reset_nonce": nonce}})
    reset_token = create_access_token(
        {"sub": str(user["_id"]), "purpose": RESET_PURPOSE, "nonce": nonce},
        expires_delta=timedelta(minutes=PASSWORD_RESET_EXPIRE_MINUTES),
    )
    reset_link = f"{SITE_URL}/reset-password?token={reset_token}"
    await send_reset_email(email, reset_link, user.get("name"))
    await log_audit_event("password_reset_requested", "auth", user=user, request=request)
    return {"message": GENERIC_RESET_MESSAGE}


@router.post("/update_password", dependencies=auth_rate_limit)
async def update_password(request: Request, data: PasswordUpdateRequest):
    try:
        payload = jwt.decode(data.token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise ValidationException("Invalid or expired token")
    if payload.get("purpose") != RESET_PURPOSE or not payload.get("sub") or not payload.get("nonce"):
        raise ValidationException("Invalid token")

    _require_strong_password(data.new_password)

    user = await users_collection.find_one_and_update(
        {"_id": ObjectId(payload["sub"]), "password_reset_nonce": payload["nonce"]},
        {
            "$set": {"password_hash": hash_password(data.new_password), "updated_at": datetime.utcnow()},
            "$unset": {"password_reset_nonce": ""},
        },
        return_document=True,
    )
    if not user:
        raise ValidationException("Invalid token")

    await clear_failed_attempts(user["email"])
    await log_audit_event("password_reset_completed", "auth", user=user, request=request)
    return {"message": "Password updated successfully"}


# --------------------------------------------------------------------
# Email verification
# --------------------------------------------------------------------
@router.post("/verify-email")
async def verify_email(data: VerifyEmailRequest):
    return await verify_token(data.token)


@router.post("/verify-email/send", dependencies=auth_rate_limit)
async def send_verification(current_user: dict = Depends(get_current_user)):
    return await issue_verification(current_user)


@router.post("/verify-email/resend", dependencies=auth_rate_limit)
async def resend_verification(data: ResendVerificationRequest):
    user = await users_collection.find_one({"email": data.email.lower()})
    # unknown and already verified addresses get the same response
    if user and not user.get("email_verified"):
        await issue_verification(user)
    return {"success": True, "message": GENERIC_VERIFICATION_MESSAGE}


@router.get("/verify-email/status", response_model=VerificationStatusResponse)
async def verification_status(current_user: dict = Depends(get_current_user)):
    return VerificationStatusResponse(
        verified=current_user.get("email_verified", False),
        email=current_user.get("email"),
    )
