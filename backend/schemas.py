from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints, computed_field, field_validator
from pydantic.alias_generators import to_camel
from typing_extensions import Annotated

from models import TaskPriority, TaskStatus, UserRole
from time_utils import ensure_utc, is_overdue as task_is_overdue, utc_now


Username = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=30)]
Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
Description = Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)]
Tag = Annotated[str, StringConstraints(strip_whitespace=True, max_length=20)]


class APIModel(BaseModel):
    """Base for all wire schemas: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _reject_past_due_date(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    value = ensure_utc(value)
    if value < utc_now():
        raise ValueError("Due date must be in the future")
    return value


# Error envelope
class ErrorDetail(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    error: str
    message: str
    errors: Optional[List[ErrorDetail]] = None


class MessageResponse(APIModel):
    message: str


class Pagination(APIModel):
    page: int
    limit: int
    total: int
    pages: int


# User schemas
class RegisterRequest(APIModel):
    username: Username
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class LoginRequest(APIModel):
    # Presence is checked by the handler so a missing field gets the login-specific message
    email: Optional[str] = None
    password: Optional[str] = None


class UserResponse(APIModel):
    id: str
    username: str
    email: str
    role: UserRole
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class AuthResponse(APIModel):
    message: str
    token: str
    user: UserResponse


class ProfileResponse(APIModel):
    user: UserResponse


class UserStatusUpdate(APIModel):
    # Left untyped so the handler can reject non-booleans with its own message
    is_active: Any = None


class UserStatusResponse(APIModel):
    message: str
    user: UserResponse


class UserListResponse(APIModel):
    users: List[UserResponse]
    pagination: Pagination


class OwnerBrief(APIModel):
    id: str
    username: str
    email: str


# Task schemas
class TaskCreate(APIModel):
    title: Title
    description: Optional[Description] = None
    status: TaskStatus = TaskStatus.pending
    priority: TaskPriority = TaskPriority.medium
    due_date: Optional[datetime] = None
    tags: List[Tag] = Field(default_factory=list)

    @field_validator("due_date")
    @classmethod
    def due_date_in_future(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _reject_past_due_date(value)


class TaskUpdate(APIModel):
    """
    Partial update. Only fields present in the request body are applied
    (see `model_dump(exclude_unset=True)`); `owner` is never updatable.
    """

    title: Optional[Title] = None
    description: Optional[Description] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    tags: Optional[List[Tag]] = None

    @field_validator("title", "status", "priority", "tags")
    @classmethod
    def not_null(cls, value, info):
        # Validators only run for supplied values, so this rejects explicit nulls
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value

    @field_validator("due_date")
    @classmethod
    def due_date_in_future(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _reject_past_due_date(value)


class TaskBase(APIModel):
    id: str
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    due_date: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("due_date", "completed_at", "created_at", "updated_at")
    @classmethod
    def as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @computed_field(alias="isOverdue")
    @property
    def is_overdue(self) -> bool:
        return task_is_overdue(self.due_date, self.status)


class TaskResponse(TaskBase):
    owner_id: str = Field(validation_alias="owner_id", serialization_alias="owner")


class AdminTaskResponse(TaskBase):
    owner: OwnerBrief


class TaskEnvelope(APIModel):
    task: TaskResponse


class TaskMessageResponse(APIModel):
    message: str
    task: TaskResponse


class TaskListResponse(APIModel):
    tasks: List[TaskResponse]
    pagination: Pagination


class AdminTaskListResponse(APIModel):
    tasks: List[AdminTaskResponse]
    pagination: Pagination


# Stats schemas
class TaskSummaryStats(APIModel):
    total: int
    overdue: int
    by_status: Dict[str, int]


class TaskSummaryResponse(APIModel):
    stats: TaskSummaryStats


class UserStats(APIModel):
    total: int
    active: int
    admins: int
    recent: int


class TaskStats(APIModel):
    total: int
    completed: int
    pending: int
    overdue: int
    recent: int
    by_status: Dict[str, int]
    by_priority: Dict[str, int]


class AdminStats(APIModel):
    users: UserStats
    tasks: TaskStats


class AdminStatsResponse(APIModel):
    stats: AdminStats
