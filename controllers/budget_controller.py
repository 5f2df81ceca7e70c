from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, Query

from auth.user_role_utils import verify_organizer, get_managed_event
from database import budget_items_collection
from models.budget_item import (
    BudgetItemCreate,
    BudgetItemUpdate,
    BudgetItemResponse,
    BudgetSummary,
    CategoryTotals,
    to_budget_item_response,
)
from utils.dates import normalize_datetimes
from utils.exceptions import NotFoundException

router = APIRouter(prefix="/events/{event_id}/budget", tags=["budget"])


def _committed_amount(item: dict) -> float:
    actual = item.get("actual_amount")
    return actual if actual is not None else item.get("estimated_amount", 0)


def summarize_budget(items: List[dict], event_budget: Optional[float]) -> BudgetSummary:
    """Roll up budget items; cancelled items are ignored."""
    active = [i for i in items if i.get("status") != "cancelled"]

    total_estimated = sum(i.get("estimated_amount", 0) for i in active)
    total_actual = sum(i.get("actual_amount") or 0 for i in active)
    total_paid = sum(_committed_amount(i) for i in active if i.get("status") == "paid")
    total_committed = sum(_committed_amount(i) for i in active if i.get("status") == "committed")
    total_planned = sum(_committed_amount(i) for i in active if i.get("status") == "planned")

    by_category = {}
    for item in active:
        totals = by_category.setdefault(item["category"], {"estimated": 0.0, "actual": 0.0, "count": 0})
        totals["estimated"] += item.get("estimated_amount", 0)
        totals["actual"] += item.get("actual_amount") or 0
        totals["count"] += 1

    variance = total_actual - total_estimated
    variance_percent = round(variance / total_estimated * 100, 2) if total_estimated > 0 else 0.0
    remaining = None
    if event_budget is not None:
        remaining = event_budget - max(total_actual, total_committed + total_paid)

    return BudgetSummary(
        total_estimated=total_estimated,
        total_actual=total_actual,
        total_paid=total_paid,
        total_committed=total_committed,
        total_planned=total_planned,
        variance=variance,
        variance_percent=variance_percent,
        item_count=len(active),
        by_category={category: CategoryTotals(**totals) for category, totals in by_category.items()},
        event_budget=event_budget,
        remaining=remaining,
    )


@router.get("", response_model=List[BudgetItemResponse])
async def list_budget_items(
        event_id: str,
        category: Optional[str] = Query(None),
        status: Optional[str] = Query(None),
        current_user: dict = Depends(verify_organizer)
):
    await get_managed_event(event_id, current_user)
    query = {"event_id": event_id}
    if category:
        query["category"] = category
    if status:
        query["status"] = status
    items = await budget_items_collection.find(query).sort("created_at", 1).to_list(length=None)
    return [to_budget_item_response(i) for i in items]


@router.get("/summary", response_model=BudgetSummary)
async def get_budget_summary(event_id: str, current_user: dict = Depends(verify_organizer)):
    event = await get_managed_event(event_id, current_user)
    items = await budget_items_collection.find({"event_id": event_id}).to_list(length=None)
    return summarize_budget(items, event.get("budget"))


@router.post("", response_model=BudgetItemResponse, status_code=201)
async def create_budget_item(event_id: str, data: BudgetItemCreate, current_user: dict = Depends(verify_organizer)):
    await get_managed_event(event_id, current_user)
    now = datetime.utcnow()
    item = normalize_datetimes(data.model_dump())
    item.update({
        "event_id": event_id,
        "name": data.name.strip(),
        "paid_at": now if data.status == "paid" else None,
        "created_at": now,
        "updated_at": now,
    })
    result = await budget_items_collection.insert_one(item)
    item["_id"] = result.inserted_id
    return to_budget_item_response(item)


@router.patch("/{item_id}", response_model=BudgetItemResponse)
async def update_budget_item(
        event_id: str,
        item_id: str,
        data: BudgetItemUpdate,
        current_user: dict = Depends(verify_organizer)
):
    await get_managed_event(event_id, current_user)
    item = await budget_items_collection.find_one({"_id": ObjectId(item_id), "event_id": event_id})
    if not item:
        raise NotFoundException("Budget item", item_id)

    changes = normalize_datetimes(data.model_dump(exclude_unset=True))
    for field in ("name", "category", "estimated_amount", "status"):
        if field in changes and changes[field] is None:
            del changes[field]
    if changes.get("status") == "paid" and item.get("status") != "paid":
        changes["paid_at"] = datetime.utcnow()
    changes["updated_at"] = datetime.utcnow()

    updated = await budget_items_collection.find_one_and_update(
        {"_id": item["_id"]}, {"$set": changes}, return_document=True
    )
    return to_budget_item_response(updated)


@router.delete("/{item_id}")
async def delete_budget_item(event_id: str, item_id: str, current_user: dict = Depends(verify_organizer)):
    await get_managed_event(event_id, current_user)
    result = await budget_items_collection.delete_one({"_id": ObjectId(item_id), "event_id": event_id})
    if result.deleted_count == 0:
        raise NotFoundException("Budget item", item_id)
    return {"message": "Budget item deleted successfully"}
