"""
Built-in platform settings.
A stored setting overrides its default; keys listed here can never be deleted.
"""

DEFAULT_SETTINGS = {
    # AI
    "ai.dailyRequestLimit": {
        "value": 100,
        "type": "number",
        "category": "ai",
        "description": "Maximum AI requests per user per day",
    },
    "ai.maxTokensPerRequest": {
        "value": 4000,
        "type": "number",
        "category": "ai",
        "description": "Maximum tokens allowed per AI request",
    },
    "ai.enabled": {
        "value": True,
        "type": "boolean",
        "category": "ai",
        "description": "Enable or disable AI features platform-wide",
    },
    # Registration
    "registration.mode": {
        "value": "open",
        "type": "string",
        "category": "registration",
        "description": "Registration mode: open, invite, or closed",
    },
    "registration.requireEmailVerification": {
        "value": True,
        "type": "boolean",
        "category": "registration",
        "description": "Require email verification for new accounts",
    },
    "registration.allowSocialAuth": {
        "value": True,
        "type": "boolean",
        "category": "registration",
        "description": "Allow sign in with social providers",
    },
    # Features
    "features.publicEvents": {
        "value": True,
        "type": "boolean",
        "category": "features",
        "description": "Show public events in the event directory",
    },
    "features.vendorApplications": {
        "value": True,
        "type": "boolean",
        "category": "features",
        "description": "Accept new vendor applications",
    },
    "features.sponsorApplications": {
        "value": True,
        "type": "boolean",
        "category": "features",
        "description": "Accept new sponsor applications",
    },
    "features.twoFactorAuth": {
        "value": True,
        "type": "boolean",
        "category": "features",
        "description": "Allow users to enable two-factor authentication",
    },
    # Rate limiting
    "rateLimit.loginAttempts": {
        "value": 5,
        "type": "number",
        "category": "rateLimit",
        "description": "Failed login attempts before lockout",
    },
    "rateLimit.lockoutDuration": {
        "value": 15,
        "type": "number",
        "category": "rateLimit",
        "description": "Base lockout duration in minutes",
    },
    # Moderation
    "moderation.autoFlagKeywords": {
        "value": [],
        "type": "json",
        "category": "moderation",
        "description": "Keywords that automatically flag content for review",
    },
    "moderation.requireEventApproval": {
        "value": False,
        "type": "boolean",
        "category": "moderation",
        "description": "Require admin approval before events are public",
    },
}

SETTING_TYPES = ("string", "number", "boolean", "json")

REGISTRATION_MODES = ("open", "invite", "closed")
