import enum
import uuid

from sqlalchemy import Column, String, Text, ForeignKey, DateTime, Enum, Boolean, Index, JSON
from sqlalchemy.orm import relationship

from database import Base
from time_utils import utc_now


class UserRole(str, enum.Enum):
    user = "user"
    admin = "admin"


class TaskStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in-progress"
    completed = "completed"
    cancelled = "cancelled"


class TaskPriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"


def generate_id() -> str:
    return str(uuid.uuid4())


def _enum_values(enum_cls):
    # Persist "in-progress", not the member name "in_progress"
    return [member.value for member in enum_cls]


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    username = Column(String(30), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(
        Enum(UserRole, name="user_role", native_enum=False, length=20, values_callable=_enum_values),
        nullable=False,
        default=UserRole.user,
    )
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    # Relationships
    tasks = relationship("Task", back_populates="owner", cascade="all, delete-orphan", passive_deletes=True)


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_owner_status", "owner_id", "status"),
        Index("ix_tasks_owner_created", "owner_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    title = Column(String(100), nullable=False)
    description = Column(Text)
    status = Column(
        Enum(TaskStatus, name="task_status", native_enum=False, length=20, values_callable=_enum_values),
        nullable=False,
        default=TaskStatus.pending,
    )
    priority = Column(
        Enum(TaskPriority, name="task_priority", native_enum=False, length=20, values_callable=_enum_values),
        nullable=False,
        default=TaskPriority.medium,
    )
    due_date = Column(DateTime(timezone=True), nullable=True, index=True)
    owner_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    tags = Column(JSON, nullable=False, default=list)

    # Derived from status, see tasks.service.apply_status
    completed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    # Relationships
    owner = relationship("User", back_populates="tasks")
