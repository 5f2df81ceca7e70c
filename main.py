from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from controllers import auth_controller, user_management_controller, moderation_controller, \
    event_controller, vendor_controller, sponsor_controller, event_partner_controller, \
    event_application_controller, event_task_controller, budget_controller, attendee_controller, \
    notification_controller, webhook_controller, ai_usage_controller, security_controller, \
    audit_controller, platform_settings_controller, analytics_controller, export_controller, \
    health_controller
from fastapi.middleware.cors import CORSMiddleware
from config.settings import CORS_ORIGINS, LOG_LEVEL, LOG_FILE
from database import create_indexes
from middleware.rate_limiter import limiter
from slowapi.errors import RateLimitExceeded as SlowAPIRateLimitExceeded
from utils.logger import setup_logging
from utils.exceptions import (
    APIException,
    api_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    general_exception_handler
)
from bson.errors import InvalidId
from utils.exceptions import invalid_id_handler

logger = setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database indexes on application startup"""
    logger.info("Starting application...")
    await create_indexes()
    logger.info("Application started successfully")
    yield
    logger.info("Shutting down application...")


app = FastAPI(
    lifespan=lifespan,
    title="Open Event API",
    description="API for event planning with vendors, sponsors and attendees",
    version="1.0.0"
)

app.state.limiter = limiter

# Register exception handlers
app.add_exception_handler(APIException, api_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(InvalidId, invalid_id_handler)
app.add_exception_handler(Exception, general_exception_handler)


@app.exception_handler(SlowAPIRateLimitExceeded)
async def rate_limit_handler(request: Request, exc: SlowAPIRateLimitExceeded):
    """
    Per-route limits on login, signup, password reset and public applications.
    Returns a JSON response with 429 status code.
    """
    logger.warning(f"Rate limit exceeded for IP: {request.client.host}")
    response = JSONResponse(
        status_code=429,
        content={
            "detail": f"Rate limit exceeded: {exc.detail}. Please try again later.",
            "error_code": "RATE_LIMIT_EXCEEDED",
            "status_code": 429
        }
    )
    response = request.app.state.limiter._inject_headers(
        response, request.state.view_rate_limit
    )
    return response

prefix = "/api"

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_controller.router, prefix=prefix)
app.include_router(auth_controller.router, prefix=prefix)
app.include_router(user_management_controller.router, prefix=prefix)
app.include_router(moderation_controller.router, prefix=prefix)
app.include_router(moderation_controller.self_router, prefix=prefix)
app.include_router(event_controller.router, prefix=prefix)
app.include_router(event_partner_controller.router, prefix=prefix)
app.include_router(event_application_controller.router, prefix=prefix)
app.include_router(event_task_controller.router, prefix=prefix)
app.include_router(budget_controller.router, prefix=prefix)
app.include_router(attendee_controller.router, prefix=prefix)
app.include_router(vendor_controller.router, prefix=prefix)
app.include_router(sponsor_controller.router, prefix=prefix)
app.include_router(notification_controller.router, prefix=prefix)
app.include_router(webhook_controller.router, prefix=prefix)
app.include_router(ai_usage_controller.router, prefix=prefix)
app.include_router(security_controller.router, prefix=prefix)
app.include_router(audit_controller.router, prefix=prefix)
app.include_router(platform_settings_controller.router, prefix=prefix)
app.include_router(analytics_controller.router, prefix=prefix)
app.include_router(export_controller.router, prefix=prefix)
