from datetime import datetime
from typing import Dict, Literal, Optional

from pydantic import BaseModel, Field

BudgetCategory = Literal[
    "venue", "catering", "av", "marketing", "staffing", "permits",
    "transportation", "decoration", "entertainment", "misc",
]
BudgetStatus = Literal["planned", "committed", "paid", "cancelled"]


class BudgetItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    category: BudgetCategory
    estimated_amount: float = Field(..., ge=0)
    actual_amount: Optional[float] = Field(None, ge=0)
    status: BudgetStatus = "planned"
    vendor_id: Optional[str] = None
    notes: Optional[str] = None
    due_date: Optional[datetime] = None


class BudgetItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[BudgetCategory] = None
    estimated_amount: Optional[float] = Field(None, ge=0)
    actual_amount: Optional[float] = Field(None, ge=0)
    status: Optional[BudgetStatus] = None
    vendor_id: Optional[str] = None
    notes: Optional[str] = None
    due_date: Optional[datetime] = None


class BudgetItemResponse(BaseModel):
    item_id: str
    event_id: str
    name: str
    category: str
    estimated_amount: float
    actual_amount: Optional[float] = None
    status: str
    vendor_id: Optional[str] = None
    notes: Optional[str] = None
    due_date: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class CategoryTotals(BaseModel):
    estimated: float
    actual: float
    count: int


class BudgetSummary(BaseModel):
    total_estimated: float
    total_actual: float
    total_paid: float
    total_committed: float
    total_planned: float
    variance: float
    variance_percent: float
    item_count: int
    by_category: Dict[str, CategoryTotals]
    event_budget: Optional[float] = None
    remaining: Optional[float] = None


def to_budget_item_response(item: dict) -> BudgetItemResponse:
    return BudgetItemResponse(
        item_id=str(item["_id"]),
        event_id=item["event_id"],
        name=item["name"],
        category=item["category"],
        estimated_amount=item.get("estimated_amount", 0),
        actual_amount=item.get("actual_amount"),
        status=item.get("status", "planned"),
        vendor_id=item.get("vendor_id"),
        notes=item.get("notes"),
        due_date=item.get("due_date"),
        paid_at=item.get("paid_at"),
        created_at=item["created_at"],
        updated_at=item.get("updated_at"),
    )
