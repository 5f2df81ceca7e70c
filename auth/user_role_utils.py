from bson import ObjectId
from fastapi import Depends

from auth.auth_utils import get_current_user
from constants import ROLE_HIERARCHY, ROLE_ORGANIZER, ROLE_ADMIN, ROLE_SUPERADMIN
from database import events_collection
from utils.exceptions import ForbiddenException, NotFoundException


def get_role_level(role) -> int:
    # accounts without a role behave as organizers
    return ROLE_HIERARCHY.get(role or ROLE_ORGANIZER, 0)


def has_role(user: dict, minimum_role: str) -> bool:
    if user.get("role") == ROLE_SUPERADMIN:
        return True
    return get_role_level(user.get("role")) >= ROLE_HIERARCHY[minimum_role]


def is_admin(user: dict) -> bool:
    return has_role(user, ROLE_ADMIN)


def require_role(minimum_role: str):
    """Build a dependency that returns the current user if they hold at least minimum_role."""
    async def dependency(user: dict = Depends(get_current_user)) -> dict:
        if not has_role(user, minimum_role):
            raise ForbiddenException(f"Requires {minimum_role} role or higher")
        return user
    return dependency


verify_organizer = require_role(ROLE_ORGANIZER)
verify_admin = require_role(ROLE_ADMIN)
verify_superadmin = require_role(ROLE_SUPERADMIN)


def can_manage_event(user: dict, event: dict) -> bool:
    return event.get("organizer_id") == str(user["_id"]) or is_admin(user)


async def get_managed_event(event_id: str, user: dict) -> dict:
    """Load an event the user owns, or any event when the user is an admin."""
    event = await events_collection.find_one({"_id": ObjectId(event_id)})
    if not event:
        raise NotFoundException("Event", event_id)
    if not can_manage_event(user, event):
        raise ForbiddenException("Access denied")
    return event
