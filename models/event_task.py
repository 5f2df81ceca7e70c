from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

TaskCategory = Literal[
    "venue", "vendors", "sponsors", "marketing", "logistics",
    "registration", "content", "legal", "budget", "other",
]
TaskPriority = Literal["low", "medium", "high", "urgent"]
TaskStatus = Literal["todo", "in_progress", "blocked", "completed"]


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: TaskCategory = "other"
    priority: TaskPriority = "medium"
    status: TaskStatus = "todo"
    due_date: Optional[datetime] = None
    assignee_name: Optional[str] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[TaskCategory] = None
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None
    due_date: Optional[datetime] = None
    assignee_name: Optional[str] = None


class TaskTemplateRequest(BaseModel):
    template: str = "conference"


class TaskReorderRequest(BaseModel):
    task_ids: List[str] = Field(..., min_length=1)


class TaskResponse(BaseModel):
    task_id: str
    event_id: str
    title: str
    description: Optional[str] = None
    category: str
    priority: str
    status: str
    due_date: Optional[datetime] = None
    assignee_name: Optional[str] = None
    sort_order: int
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class TaskSummary(BaseModel):
    total: int
    by_status: dict
    overdue: int
    due_this_week: int
    urgent: int
    completion_rate: int


def to_task_response(task: dict) -> TaskResponse:
    return TaskResponse(
        task_id=str(task["_id"]),
        event_id=task["event_id"],
        title=task["title"],
        description=task.get("description"),
        category=task.get("category", "other"),
        priority=task.get("priority", "medium"),
        status=task.get("status", "todo"),
        due_date=task.get("due_date"),
        assignee_name=task.get("assignee_name"),
        sort_order=task.get("sort_order", 0),
        completed_at=task.get("completed_at"),
        created_at=task["created_at"],
        updated_at=task.get("updated_at"),
    )
