from typing import Optional

from fastapi import Request


def get_client_ip(request: Optional[Request]) -> str:
    """Resolve the caller's IP, preferring proxy headers over the socket peer."""
    if request is None:
        return "unknown"
    for header in ("cf-connecting-ip", "x-real-ip"):
        value = request.headers.get(header)
        if value:
            return value.strip()
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def get_user_agent(request: Optional[Request]) -> Optional[str]:
    if request is None:
        return None
    return request.headers.get("user-agent")
