from datetime import datetime
from typing import Dict, List

from fastapi import APIRouter, Depends, Request
from pymongo.errors import DuplicateKeyError

from auth.user_role_utils import verify_admin, verify_superadmin
from config.platform_defaults import DEFAULT_SETTINGS
from database import platform_settings_collection
from models.platform_setting import (
    SettingResponse,
    SettingUpdate,
    SettingCreate,
    BulkSettingUpdate,
    BulkSettingResult,
    SettingsByKeysRequest,
    InitializeResult,
)
from utils.audit_logger import log_audit_event
from utils.exceptions import AlreadyExistsException, ForbiddenException, NotFoundException, ValidationException
from utils.settings_store import validate_setting_value
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/settings", tags=["platform_settings"])


def _from_stored(doc: dict) -> SettingResponse:
    return SettingResponse(
        key=doc["key"],
        value=doc["value"],
        type=doc["type"],
        category=doc["category"],
        description=doc.get("description"),
        is_default=False,
        updated_at=doc.get("updated_at"),
        updated_by=doc.get("updated_by"),
    )


def _from_default(key: str) -> SettingResponse:
    default = DEFAULT_SETTINGS[key]
    return SettingResponse(
        key=key,
        value=default["value"],
        type=default["type"],
        category=default["category"],
        description=default["description"],
        is_default=True,
    )


async def _merged_settings() -> Dict[str, SettingResponse]:
    """Every default key plus any custom key, stored values winning."""
    merged = {key: _from_default(key) for key in DEFAULT_SETTINGS}
    for doc in await platform_settings_collection.find({}).to_list(length=None):
        merged[doc["key"]] = _from_stored(doc)
    return merged


async def _setting_type(key: str) -> str:
    if key in DEFAULT_SETTINGS:
        return DEFAULT_SETTINGS[key]["type"]
    stored = await platform_settings_collection.find_one({"key": key})
    if not stored:
        raise NotFoundException("Setting", key)
    return stored["type"]


async def _write_value(key: str, value, user: dict) -> dict:
    setting_type = await _setting_type(key)
    try:
        validate_setting_value(key, setting_type, value)
    except ValueError as e:
        raise ValidationException(str(e))

    default = DEFAULT_SETTINGS.get(key, {})
    now = datetime.utcnow()
    return await platform_settings_collection.find_one_and_update(
        {"key": key},
        {
            "$set": {"value": value, "updated_at": now, "updated_by": str(user["_id"])},
            "$setOnInsert": {
                "type": setting_type,
                "category": default.get("category", "custom"),
                "description": default.get("description"),
                "created_at": now,
            },
        },
        upsert=True,
        return_document=True,
    )


# -------------------
# READ
# -------------------
@router.get("", response_model=Dict[str, List[SettingResponse]])
async def get_all_settings(admin: dict = Depends(verify_admin)):
    grouped = {}
    for setting in (await _merged_settings()).values():
        grouped.setdefault(setting.category, []).append(setting)
    for settings in grouped.values():
        settings.sort(key=lambda s: s.key)
    return grouped


@router.get("/category/{category}", response_model=List[SettingResponse])
async def get_settings_by_category(category: str, admin: dict = Depends(verify_admin)):
    settings = [s for s in (await _merged_settings()).values() if s.category == category]
    return sorted(settings, key=lambda s: s.key)


@router.post("/by-keys", response_model=Dict[str, SettingResponse])
async def get_settings_by_keys(data: SettingsByKeysRequest):
    merged = await _merged_settings()
    return {key: merged[key] for key in data.keys if key in merged}


@router.get("/key/{key}", response_model=SettingResponse)
async def get_setting_by_key(key: str):
    """Public lookup; unset keys report their built-in default."""
    stored = await platform_settings_collection.find_one({"key": key})
    if stored:
        return _from_stored(stored)
    if key in DEFAULT_SETTINGS:
        return _from_default(key)
    raise NotFoundException("Setting", key)


# -------------------
# WRITE (superadmin)
# -------------------
@router.post("/initialize", response_model=InitializeResult)
async def initialize_defaults(superadmin: dict = Depends(verify_superadmin)):
    created = skipped = 0
    now = datetime.utcnow()
    for key, default in DEFAULT_SETTINGS.items():
        if await platform_settings_collection.find_one({"key": key}):
            skipped += 1
            continue
        await platform_settings_collection.insert_one({
            "key": key,
            "value": default["value"],
            "type": default["type"],
            "category": default["category"],
            "description": default["description"],
            "created_at": now,
            "updated_at": now,
            "updated_by": str(superadmin["_id"]),
        })
        created += 1
    return InitializeResult(created=created, skipped=skipped, total=len(DEFAULT_SETTINGS))


@router.put("/key/{key}", response_model=SettingResponse)
async def update_setting(key: str, data: SettingUpdate, request: Request,
                         superadmin: dict = Depends(verify_superadmin)):
    previous = await platform_settings_collection.find_one({"key": key})
    updated = await _write_value(key, data.value, superadmin)
    await log_audit_event("settings_changed", "settings", user=superadmin, resource_id=key, request=request,
                          details={
                              "previous_value": previous["value"] if previous else DEFAULT_SETTINGS.get(key, {}).get("value"),
                              "new_value": data.value,
                          })
    return _from_stored(updated)


@router.put("/bulk", response_model=List[BulkSettingResult])
async def bulk_update_settings(data: BulkSettingUpdate, request: Request,
                               superadmin: dict = Depends(verify_superadmin)):
    results = []
    for key, value in data.updates.items():
        try:
            await _write_value(key, value, superadmin)
            results.append(BulkSettingResult(key=key, success=True))
        except (NotFoundException, ValidationException) as e:
            results.append(BulkSettingResult(key=key, success=False, error=e.message))

    changed = [r.key for r in results if r.success]
    if changed:
        await log_audit_event("settings_changed", "settings", user=superadmin, request=request,
                              details={"keys": changed})
    return results


@router.post("/key/{key}/reset", response_model=SettingResponse)
async def reset_setting_to_default(key: str, request: Request, superadmin: dict = Depends(verify_superadmin)):
    if key not in DEFAULT_SETTINGS:
        raise NotFoundException("Default setting", key)
    updated = await _write_value(key, DEFAULT_SETTINGS[key]["value"], superadmin)
    await log_audit_event("settings_changed", "settings", user=superadmin, resource_id=key, request=request,
                          details={"reset_to_default": True})
    return _from_stored(updated)


@router.delete("/key/{key}")
async def delete_setting(key: str, superadmin: dict = Depends(verify_superadmin)):
    if key in DEFAULT_SETTINGS:
        raise ForbiddenException("Default settings cannot be deleted; reset them instead")
    result = await platform_settings_collection.delete_one({"key": key})
    if result.deleted_count == 0:
        raise NotFoundException("Setting", key)
    return {"message": "Setting deleted"}


@router.post("", response_model=SettingResponse, status_code=201)
async def create_setting(data: SettingCreate, request: Request, superadmin: dict = Depends(verify_superadmin)):
    if data.key in DEFAULT_SETTINGS or await platform_settings_collection.find_one({"key": data.key}):
        raise AlreadyExistsException(f"Setting {data.key} already exists")
    try:
        validate_setting_value(data.key, data.type, data.value)
    except ValueError as e:
        raise ValidationException(str(e))

    now = datetime.utcnow()
    doc = {
        **data.model_dump(),
        "created_at": now,
        "updated_at": now,
        "updated_by": str(superadmin["_id"]),
    }
    try:
        await platform_settings_collection.insert_one(doc)
    except DuplicateKeyError:
        raise AlreadyExistsException(f"Setting {data.key} already exists")
    await log_audit_event("settings_changed", "settings", user=superadmin, resource_id=data.key, request=request,
                          details={"created": True})
    return _from_stored(doc)
