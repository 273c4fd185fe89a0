from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from enum import Enum


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class TaskStatus(str, Enum):
    pending = "pending"
    completed = "completed"


class TaskPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class ReminderOffset(str, Enum):
    none = "none"
    five_minutes = "5min"
    fifteen_minutes = "15min"
    thirty_minutes = "30min"
    one_hour = "1hour"
    two_hours = "2hours"
    one_day = "1day"


class StatusFilter(str, Enum):
    all = "all"
    pending = "pending"
    completed = "completed"


class PermissionState(str, Enum):
    default = "default"
    granted = "granted"
    denied = "denied"


class MessageLevel(str, Enum):
    info = "info"
    success = "success"
    warning = "warning"
    error = "error"


def _clean_title(v: str) -> str:
    if not v.strip():
        raise ValueError("Task title is required")
    return v.strip()


def _clean_tags(tags: List[str]) -> List[str]:
    """Strip, drop blanks and de-duplicate, keeping first-seen order."""
    seen: List[str] = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


# ---------------------------------------------------------------------------
# Task Schemas
# ---------------------------------------------------------------------------
class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255, description="Short title of the task")
    description: Optional[str] = Field(None, description="Optional longer description")
    priority: TaskPriority = Field(TaskPriority.medium, description="Task priority")
    category: str = Field("personal", description="Category name the task belongs to")
    due_date: Optional[datetime] = Field(None, description="When the task is due")
    reminder: ReminderOffset = Field(ReminderOffset.none, description="How long before the due date to remind")
    tags: List[str] = Field(default_factory=list, description="Free-form labels")

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, v: str) -> str:
        return _clean_title(v)

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, v: List[str]) -> List[str]:
        return _clean_tags(v)


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255, description="Updated title")
    description: Optional[str] = Field(None, description="Updated description")
    priority: Optional[TaskPriority] = Field(None, description="Updated priority")
    category: Optional[str] = Field(None, description="Updated category")
    status: Optional[TaskStatus] = Field(None, description="New status of the task")
    due_date: Optional[datetime] = Field(None, description="Updated due date")
    reminder: Optional[ReminderOffset] = Field(None, description="Updated reminder offset")
    tags: Optional[List[str]] = Field(None, description="Replacement list of labels")

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _clean_title(v)

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return None if v is None else _clean_tags(v)


class TaskOut(BaseModel):
    id: int = Field(..., description="Unique identifier for the task")
    title: str = Field(..., description="Short title of the task")
    description: Optional[str] = Field(None, description="Longer description")
    priority: TaskPriority = Field(..., description="Task priority")
    category: str = Field(..., description="Category name")
    status: TaskStatus = Field(..., description="The current status of the task")
    reminder: ReminderOffset = Field(..., description="Reminder offset")
    tags: List[str] = Field(default_factory=list, description="Free-form labels")
    due_date: Optional[datetime] = Field(None, description="The due date of the task")
    created_at: datetime = Field(..., description="Timestamp when the task was created")
    completed_at: Optional[datetime] = Field(None, description="Timestamp when the task was completed")
    reminder_scheduled: bool = Field(False, description="Whether a reminder timer is currently armed")

    model_config = {"from_attributes": True}

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_default(cls, v):
        return v or []


class TaskList(BaseModel):
    count: int = Field(..., description="Total number of tasks returned")
    tasks: List[TaskOut] = Field(..., description="List of tasks")


# ---------------------------------------------------------------------------
# Category Schemas
# ---------------------------------------------------------------------------
class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Unique category name")
    color: str = Field("#6366f1", description="Display color")
    icon: Optional[str] = Field(None, description="Icon name")


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    color: Optional[str] = None
    icon: Optional[str] = None


class CategoryOut(BaseModel):
    id: int
    name: str
    color: str
    icon: Optional[str] = None

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Daily Stats Schemas
# ---------------------------------------------------------------------------
class DailyStatsCreate(BaseModel):
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$", description="Day in YYYY-MM-DD form")
    total: int = Field(0, ge=0)
    completed: int = Field(0, ge=0)
    pending: int = Field(0, ge=0)
    focus_minutes: int = Field(0, ge=0)


class DailyStatsUpdate(BaseModel):
    total: Optional[int] = Field(None, ge=0)
    completed: Optional[int] = Field(None, ge=0)
    pending: Optional[int] = Field(None, ge=0)
    focus_minutes: Optional[int] = Field(None, ge=0)


class DailyStatsOut(BaseModel):
    id: int
    date: str
    total: int
    completed: int
    pending: int
    focus_minutes: int

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Calendar & Analytics Schemas
# ---------------------------------------------------------------------------
class CalendarDay(BaseModel):
    date: str = Field(..., description="Day in YYYY-MM-DD form")
    in_month: bool = Field(..., description="False for leading/trailing days of adjacent months")
    is_today: bool = False
    tasks: List[TaskOut] = Field(default_factory=list)


class CalendarMonth(BaseModel):
    year: int
    month: int
    weeks: List[List[CalendarDay]]


class CompletionBucket(BaseModel):
    label: str = Field(..., description="Display label for the bucket")
    start: str = Field(..., description="First day of the bucket (YYYY-MM-DD)")
    end: str = Field(..., description="Last day of the bucket (YYYY-MM-DD)")
    total: int
    completed: int
    completion_rate: int = Field(..., description="Rounded completion percentage")


class CategoryBreakdown(BaseModel):
    category: str
    total: int
    completed: int
    completion_rate: int


class PriorityBreakdown(BaseModel):
    priority: TaskPriority
    count: int
    percentage: int = Field(..., description="Share of all tasks, rounded percent")


class AnalyticsSummary(BaseModel):
    total: int
    completed: int
    pending: int
    overdue: int
    completion_rate: int
    today_total: int = Field(..., description="Tasks due today")
    today_completed: int
    today_completion_rate: int
    by_category: List[CategoryBreakdown]
    by_priority: List[PriorityBreakdown]


class TagCount(BaseModel):
    tag: str
    count: int = Field(..., description="Open (not completed) tasks carrying the tag")


# ---------------------------------------------------------------------------
# Notification Schemas
# ---------------------------------------------------------------------------
class NotificationStatus(BaseModel):
    supported: bool
    permission: PermissionState
    pending_reminders: List[int]
    periodic_check_active: bool


class PermissionResult(BaseModel):
    granted: bool
    permission: PermissionState


class InAppMessageOut(BaseModel):
    id: int
    level: MessageLevel
    message: str
    duration_ms: int
    created_at: datetime

    model_config = {"from_attributes": True}
