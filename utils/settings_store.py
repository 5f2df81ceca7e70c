import json
from typing import Any

from config.platform_defaults import DEFAULT_SETTINGS, SETTING_TYPES, REGISTRATION_MODES
from database import platform_settings_collection


async def get_setting_value(key: str, fallback: Any = None) -> Any:
    """Stored value for key, else its built-in default, else fallback."""
    stored = await platform_settings_collection.find_one({"key": key})
    if stored is not None:
        return stored["value"]
    if key in DEFAULT_SETTINGS:
        return DEFAULT_SETTINGS[key]["value"]
    return fallback


def validate_setting_value(key: str, setting_type: str, value: Any) -> None:
    """Raise ValueError when value does not fit the declared setting type."""
    if setting_type not in SETTING_TYPES:
        raise ValueError(f"Unknown setting type: {setting_type}")
    if setting_type == "string" and not isinstance(value, str):
        raise ValueError(f"Setting {key} must be a string")
    if setting_type == "number" and (isinstance(value, bool) or not isinstance(value, (int, float))):
        raise ValueError(f"Setting {key} must be a number")
    if setting_type == "boolean" and not isinstance(value, bool):
        raise ValueError(f"Setting {key} must be a boolean")
    if setting_type == "json":
        try:
            json.dumps(value)
        except (TypeError, ValueError):
            raise ValueError(f"Setting {key} must be JSON serializable")
    if key == "registration.mode" and value not in REGISTRATION_MODES:
        raise ValueError(f"registration.mode must be one of: {', '.join(REGISTRATION_MODES)}")
