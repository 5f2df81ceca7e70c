# database.py
import logging
from motor.motor_asyncio import AsyncIOMotorClient

from config.settings import MONGO_URI, MONGO_DB_NAME

logger = logging.getLogger(__name__)

client = AsyncIOMotorClient(MONGO_URI)
db = client[MONGO_DB_NAME]

# core
users_collection = db["users"]
events_collection = db["events"]
vendors_collection = db["vendors"]
sponsors_collection = db["sponsors"]

# event workspace
event_vendors_collection = db["event_vendors"]
event_sponsors_collection = db["event_sponsors"]
event_applications_collection = db["event_applications"]
event_tasks_collection = db["event_tasks"]
budget_items_collection = db["budget_items"]
attendees_collection = db["attendees"]

# platform
notifications_collection = db["notifications"]
moderation_logs_collection = db["moderation_logs"]
audit_logs_collection = db["audit_logs"]
platform_settings_collection = db["platform_settings"]
rate_limits_collection = db["rate_limits"]
login_attempts_collection = db["login_attempts"]
ai_usage_collection = db["ai_usage"]
webhooks_collection = db["webhooks"]
webhook_deliveries_collection = db["webhook_deliveries"]
verification_tokens_collection = db["verification_tokens"]
notification_preferences_collection = db["notification_preferences"]

ALL_COLLECTIONS = (
    users_collection, events_collection, vendors_collection, sponsors_collection,
    event_vendors_collection, event_sponsors_collection, event_applications_collection,
    event_tasks_collection, budget_items_collection, attendees_collection,
    notifications_collection, moderation_logs_collection, audit_logs_collection,
    platform_settings_collection, rate_limits_collection, login_attempts_collection,
    ai_usage_collection, webhooks_collection, webhook_deliveries_collection,
    verification_tokens_collection, notification_preferences_collection,
)


async def create_indexes():
    """
    Create database indexes for the query patterns used by the controllers.
    Called once at application startup.
    """
    try:
        await users_collection.create_index("email", unique=True)
        await users_collection.create_index("role")
        await users_collection.create_index("status")

        await events_collection.create_index("organizer_id")
        await events_collection.create_index("status")
        await events_collection.create_index([("is_public", 1), ("status", 1)])
        await events_collection.create_index("is_flagged")

        await vendors_collection.create_index("status")
        await vendors_collection.create_index("category")
        await vendors_collection.create_index("owner_id")
        await sponsors_collection.create_index("status")
        await sponsors_collection.create_index("industry")
        await sponsors_collection.create_index("owner_id")

        await event_vendors_collection.create_index([("event_id", 1), ("vendor_id", 1)])
        await event_sponsors_collection.create_index([("event_id", 1), ("sponsor_id", 1)])
        await event_applications_collection.create_index("event_id")
        await event_applications_collection.create_index([("applicant_type", 1), ("applicant_id", 1)])
        await event_tasks_collection.create_index("event_id")
        await budget_items_collection.create_index("event_id")
        await attendees_collection.create_index("event_id")
        await attendees_collection.create_index("ticket_number", unique=True)

        await notifications_collection.create_index([("user_id", 1), ("created_at", -1)])
        await moderation_logs_collection.create_index([("target_type", 1), ("target_id", 1)])
        await moderation_logs_collection.create_index("created_at")
        await audit_logs_collection.create_index("created_at")
        await audit_logs_collection.create_index("action")
        await platform_settings_collection.create_index("key", unique=True)

        await rate_limits_collection.create_index([("identifier", 1), ("limit_type", 1)], unique=True)
        await rate_limits_collection.create_index("window_start")
        await login_attempts_collection.create_index("identifier", unique=True)
        await ai_usage_collection.create_index("user_id", unique=True)

        await webhooks_collection.create_index("user_id")
        await webhook_deliveries_collection.create_index([("webhook_id", 1), ("created_at", -1)])
        await webhook_deliveries_collection.create_index([("status", 1), ("next_retry_at", 1)])
        await verification_tokens_collection.create_index("token", unique=True)
        await verification_tokens_collection.create_index([("user_id", 1), ("created_at", -1)])
        await notification_preferences_collection.create_index("user_id", unique=True)

        logger.info("Database indexes created successfully")
    except Exception as e:
        # indexes may already exist with different options
        logger.warning(f"Error creating indexes: {e}")
