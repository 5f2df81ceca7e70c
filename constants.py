"""
Application-wide constants.
Centralizes status values, limits and enumerations used across controllers.
"""

# Roles (higher number = more privileges)
ROLE_ORGANIZER = "organizer"
ROLE_ADMIN = "admin"
ROLE_SUPERADMIN = "superadmin"
ROLE_HIERARCHY = {
    ROLE_ORGANIZER: 1,
    ROLE_ADMIN: 2,
    ROLE_SUPERADMIN: 3,
}

# User status
USER_STATUS_ACTIVE = "active"
USER_STATUS_SUSPENDED = "suspended"
USER_STATUS_PENDING = "pending"

# Event status
EVENT_STATUS_DRAFT = "draft"
EVENT_STATUS_CANCELLED = "cancelled"
PUBLIC_EVENT_STATUSES = ("planning", "active")
FLAG_SEVERITIES = ("low", "medium", "high")

# Vendor / sponsor directory status
DIRECTORY_STATUS_PENDING = "pending"
DIRECTORY_STATUS_APPROVED = "approved"
DIRECTORY_STATUS_REJECTED = "rejected"
DIRECTORY_STATUSES = (DIRECTORY_STATUS_PENDING, DIRECTORY_STATUS_APPROVED, DIRECTORY_STATUS_REJECTED)

# Event applications
APPLICANT_TYPES = ("vendor", "sponsor")
APPLICATION_STATUSES = ("pending", "under_review", "accepted", "rejected", "withdrawn")

# Tasks
TASK_PRIORITY_ORDER = {"urgent": 0, "high": 1, "medium": 2, "low": 3}
TASK_STATUSES = ("todo", "in_progress", "blocked", "completed")

# Attendees
ATTENDEE_STATUSES = ("registered", "confirmed", "checked_in", "cancelled", "no_show")
DEFAULT_TICKET_TYPE = "General"
DEFAULT_ATTENDEE_SOURCE = "manual"

# Default pagination
DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Image upload limits
MAX_LOGO_BYTES = 5 * 1024 * 1024

# AI usage
AI_DEFAULT_DAILY_LIMIT = 5
AI_UNLIMITED_REMAINING = 999

# Account lockout
LOCKOUT_MAX_ATTEMPTS = 5
LOCKOUT_WINDOW_SECONDS = 15 * 60
LOCKOUT_DURATIONS_SECONDS = (60, 5 * 60, 15 * 60, 60 * 60)
LOCKOUT_RECORD_TTL_SECONDS = 24 * 60 * 60

# Audit log retention
AUDIT_LOG_RETENTION_DAYS = 90

# Email verification
EMAIL_VERIFICATION_EXPIRE_HOURS = 24
MAX_VERIFICATION_EMAILS_PER_HOUR = 3
