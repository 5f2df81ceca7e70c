"""
Input validation shared by the auth, attendee and webhook controllers.
"""
import re
from typing import List
from urllib.parse import urlparse

EMAIL_REGEX = re.compile(
    r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]*[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]*[a-zA-Z0-9])?)*\.[a-zA-Z]{2,}$"
)

PASSWORD_MIN_LENGTH = 12
SPECIAL_CHARS = "!@#$%^&*(),.?\":{}|<>[]\\;'`~_+=-"

LOCAL_HOSTS = ("localhost", "127.0.0.1")


def is_valid_email(email: str) -> bool:
    return bool(email) and EMAIL_REGEX.match(email) is not None


def validate_password(password: str) -> List[str]:
    """Return the unmet password requirements; an empty list means the password is strong."""
    errors = []
    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(f"At least {PASSWORD_MIN_LENGTH} characters")
    if not re.search(r"[A-Z]", password):
        errors.append("At least 1 uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("At least 1 lowercase letter")
    if not re.search(r"[0-9]", password):
        errors.append("At least 1 number")
    if not any(ch in SPECIAL_CHARS for ch in password):
        errors.append("At least 1 special character (!@#$%^&* etc.)")
    return errors


def password_strength(password: str) -> str:
    failed = len(validate_password(password))
    if failed == 0:
        return "strong"
    if failed <= 2:
        return "medium"
    return "weak"


def is_valid_webhook_url(url: str) -> bool:
    """HTTPS only, except for local development hosts."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if not parsed.netloc or not parsed.hostname:
        return False
    if parsed.scheme == "https":
        return True
    return parsed.scheme == "http" and parsed.hostname in LOCAL_HOSTS
