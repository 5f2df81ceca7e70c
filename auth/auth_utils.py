from datetime import datetime, timedelta
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from passlib.context import CryptContext

from config.settings import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from constants import USER_STATUS_SUSPENDED
from database import users_collection
from utils.exceptions import UnauthorizedException, ForbiddenException

# Define OAuth2 schemes once
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


# --------------------------------------------------------------------
# Password utilities
# --------------------------------------------------------------------
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    try:
        return pwd_context.verify(plain, hashed)
    except (ValueError, TypeError):
        return False


# --------------------------------------------------------------------
# JWT tokens
# --------------------------------------------------------------------
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT carrying data plus an exp claim."""
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise UnauthorizedException("Invalid or expired token")


async def _load_user(token: str, allow_suspended: bool = False) -> dict:
    payload = decode_token(token)
    if payload.get("purpose"):
        # reset links and similar single-purpose tokens never authenticate
        raise UnauthorizedException("Invalid authentication token")
    user_id = payload.get("sub")
    if user_id is None:
        raise UnauthorizedException("Invalid authentication token")
    try:
        user = await users_collection.find_one({"_id": ObjectId(user_id)})
    except InvalidId:
        raise UnauthorizedException("Invalid authentication token")
    if not user:
        raise UnauthorizedException("User not found")
    if user.get("status") == USER_STATUS_SUSPENDED and not allow_suspended:
        raise ForbiddenException("Your account has been suspended")
    return user


# Dependency to get current user document
async def get_current_user(token: str = Depends(oauth2_scheme)) -> dict:
    return await _load_user(token)


async def get_current_user_allow_suspended(token: str = Depends(oauth2_scheme)) -> dict:
    """Authenticate without the suspension check, for routes a suspended user may still read."""
    return await _load_user(token, allow_suspended=True)


async def get_optional_user(token: Optional[str] = Depends(optional_oauth2_scheme)) -> Optional[dict]:
    """Like get_current_user, but anonymous callers get None instead of a 401."""
    if not token:
        return None
    return await _load_user(token)
