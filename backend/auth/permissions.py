"""
Task ownership scoping.

Non-admin routes must filter every read and write by the caller's identity.
A task that exists but belongs to someone else is reported exactly like a
task that does not exist (404), so callers cannot probe for other users'
records.
"""

import logging

from fastapi import status
from sqlalchemy.orm import Query, Session

from errors import APIError
from models import Task, User

logger = logging.getLogger(__name__)


def owned_tasks(user: User, db: Session) -> Query:
    """
    Base query for tasks owned by `user`.

    Example:
        >>> total = owned_tasks(user, db).count()
    """
    return db.query(Task).filter(Task.owner_id == user.id)


def task_not_found(action: str = "view") -> APIError:
    return APIError(
        status.HTTP_404_NOT_FOUND,
        "Task not found",
        f"Task not found or you do not have permission to {action} it",
    )


def get_owned_task_or_404(user: User, task_id: str, db: Session, action: str = "view") -> Task:
    """
    Load a task by id, scoped to its owner.

    Raises:
        APIError: 404 if the task does not exist or belongs to another user
    """
    task = owned_tasks(user, db).filter(Task.id == task_id).first()
    if task is None:
        logger.info(f"Task {task_id} not found for user {user.id}, returning 404")
        raise task_not_found(action)
    return task


def get_task_or_404(task_id: str, db: Session) -> Task:
    """Unscoped lookup for admin routes."""
    task = db.query(Task).filter(Task.id == task_id).first()
    if task is None:
        logger.info(f"Task {task_id} not found")
        raise APIError(status.HTTP_404_NOT_FOUND, "Task not found", "Task not found")
    return task
