"""
Task rules applied at the service boundary, before anything is persisted.

`completed_at` is derived from `status` here instead of in an ORM hook: it
is stamped when a task enters "completed", kept while it stays completed,
and cleared as soon as it leaves.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Query

from models import Task, TaskPriority, TaskStatus, User
from schemas import TaskCreate
from time_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

# Fields a client may change through a partial update
UPDATABLE_FIELDS = ("title", "description", "status", "priority", "due_date", "tags")


def derive_completed_at(
    status: TaskStatus,
    previous_completed_at: Optional[datetime],
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """
    Compute `completed_at` for a task whose status is (or becomes) `status`.

    >>> derive_completed_at(TaskStatus.pending, None) is None
    True
    """
    if status != TaskStatus.completed:
        return None
    if previous_completed_at is not None:
        return previous_completed_at
    return now or utc_now()


def apply_status(task: Task, status: TaskStatus) -> Task:
    task.status = status
    task.completed_at = derive_completed_at(status, task.completed_at)
    return task


def build_task(data: TaskCreate, owner: User) -> Task:
    """Create an unsaved Task owned by `owner` from validated input."""
    task = Task(
        title=data.title,
        description=data.description,
        priority=data.priority,
        due_date=data.due_date,
        tags=list(data.tags),
        owner_id=owner.id,
    )
    apply_status(task, data.status)
    return task


def apply_update(task: Task, changes: Dict[str, Any]) -> List[str]:
    """
    Apply a partial update. Only keys present in `changes` are touched.

    Returns:
        Names of fields whose value actually changed
    """
    changed = []
    for field_name in UPDATABLE_FIELDS:
        if field_name not in changes:
            continue
        value = changes[field_name]
        current = getattr(task, field_name)
        if field_name == "due_date":
            # SQLite hands back naive datetimes
            current, value = ensure_utc(current), ensure_utc(value)
        if current == value:
            continue
        if field_name == "status":
            apply_status(task, value)
        elif field_name == "tags":
            task.tags = list(value)
        else:
            setattr(task, field_name, value)
        changed.append(field_name)
    return changed


def filter_tasks(
    query: Query,
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
) -> Query:
    if status:
        query = query.filter(Task.status == status)
    if priority:
        query = query.filter(Task.priority == priority)
    return query


def newest_first(query: Query) -> Query:
    # id breaks ties between rows created in the same instant
    return query.order_by(Task.created_at.desc(), Task.id.desc())


def overdue_only(query: Query) -> Query:
    return query.filter(
        Task.due_date.isnot(None),
        Task.due_date < utc_now(),
        Task.status != TaskStatus.completed,
    )


def count_by(query: Query, column) -> Dict[str, int]:
    """
    Group-by-count over `column`, keyed by enum value.

    Only values that occur are present, so the counts always sum to the
    query's total.
    """
    rows = query.with_entities(column, func.count(Task.id)).group_by(column).all()
    return {(key.value if hasattr(key, "value") else str(key)): count for key, count in rows}


def summarize(query: Query) -> Dict[str, Any]:
    """Totals for a set of tasks: total, overdue and a per-status breakdown."""
    return {
        "total": query.count(),
        "overdue": overdue_only(query).count(),
        "by_status": count_by(query, Task.status),
    }
