"""
Per-IP rate limiting for unauthenticated forms, using slowapi.
Authenticated traffic goes through the database-backed windows in middleware/global_rate_limit.py.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

# Shared limiter (attached to app.state in main.py)
limiter = Limiter(key_func=get_remote_address)

RATE_LIMIT_LOGIN = "10/minute"
RATE_LIMIT_REGISTER = "5/hour"
RATE_LIMIT_PASSWORD_RESET = "5/hour"
RATE_LIMIT_PUBLIC_APPLICATION = "10/hour"
