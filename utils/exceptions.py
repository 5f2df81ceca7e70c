"""
Custom exceptions and error handlers for the application.
Every error leaves the API as {"detail", "error_code", "status_code"}.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from bson.errors import InvalidId
import logging

logger = logging.getLogger(__name__)


class APIException(Exception):
    """Base API exception class."""
    def __init__(self, message: str, status_code: int = 500, error_code: str = None, headers: dict = None):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or f"ERR_{status_code}"
        self.headers = headers
        super().__init__(self.message)


class NotFoundException(APIException):
    def __init__(self, resource: str, resource_id: str = None):
        message = f"{resource} not found"
        if resource_id:
            message += f": {resource_id}"
        super().__init__(message, status_code=404, error_code="NOT_FOUND")


class ValidationException(APIException):
    def __init__(self, message: str, errors: dict = None):
        super().__init__(message, status_code=400, error_code="INVALID_INPUT")
        self.errors = errors or {}


class UnauthorizedException(APIException):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            message,
            status_code=401,
            error_code="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenException(APIException):
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, status_code=403, error_code="FORBIDDEN")


class AlreadyExistsException(APIException):
    def __init__(self, message: str):
        super().__init__(message, status_code=409, error_code="ALREADY_EXISTS")


class ConflictException(APIException):
    """Raised when the requested transition conflicts with the current state."""
    def __init__(self, message: str):
        super().__init__(message, status_code=409, error_code="CONFLICT")


class RateLimitedException(APIException):
    def __init__(self, message: str, retry_after: int, headers: dict = None):
        headers = dict(headers or {})
        headers["Retry-After"] = str(retry_after)
        super().__init__(message, status_code=429, error_code="RATE_LIMITED", headers=headers)
        self.retry_after = retry_after


async def api_exception_handler(request: Request, exc: APIException):
    """Handle API exceptions."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(f"API Exception: {exc.message} (Code: {exc.error_code}, Status: {exc.status_code})")
    content = {
        "detail": exc.message,
        "error_code": exc.error_code,
        "status_code": exc.status_code
    }
    if isinstance(exc, ValidationException) and exc.errors:
        content["errors"] = exc.errors
    if isinstance(exc, RateLimitedException):
        content["retry_after_seconds"] = exc.retry_after
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    error_details = {}
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        error_details[field] = error["msg"]

    logger.warning(f"Validation error: {error_details}")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Validation error",
            "error_code": "VALIDATION_ERROR",
            "status_code": status.HTTP_422_UNPROCESSABLE_ENTITY,
            "errors": error_details
        }
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    logger.warning(f"HTTP Exception: {exc.detail} (Status: {exc.status_code})")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "error_code": f"HTTP_{exc.status_code}",
            "status_code": exc.status_code
        },
        headers=getattr(exc, "headers", None)
    )


async def invalid_id_handler(request: Request, exc: InvalidId):
    """Handle invalid MongoDB ObjectId errors."""
    logger.warning(f"Invalid ObjectId: {exc}")
    return JSONResponse(
        status_code=400,
        content={
            "detail": "Invalid ID format",
            "error_code": "INVALID_ID",
            "status_code": 400
        }
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unhandled exception: {type(exc).__name__}: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_code": "INTERNAL_ERROR",
            "status_code": 500
        }
    )
