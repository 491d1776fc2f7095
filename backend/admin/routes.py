"""
Admin-only API endpoints: global task/user views, system statistics,
account activation and unscoped task deletion.

Every route on this router requires an authenticated admin.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session, joinedload

from config import RECENT_WINDOW_DAYS
from database import get_db
from errors import APIError
from models import Task, TaskPriority, TaskStatus, User, UserRole
from pagination import PageParams, page_params, paginate
from schemas import (
    AdminStatsResponse,
    AdminTaskListResponse,
    ErrorResponse,
    MessageResponse,
    UserListResponse,
    UserStatusResponse,
    UserStatusUpdate,
)
from auth.dependencies import require_admin
from auth.permissions import get_task_or_404
from tasks import service
from time_utils import days_ago

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)


@router.get("/tasks", response_model=AdminTaskListResponse)
def list_all_tasks(
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    priority: Optional[TaskPriority] = Query(None),
    pagination: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
):
    """List every task in the system with its owner, newest first."""
    logger.debug(f"Admin listing all tasks: status={status_filter}, priority={priority}")

    query = service.filter_tasks(db.query(Task).options(joinedload(Task.owner)), status_filter, priority)
    tasks, page_info = paginate(service.newest_first(query), pagination)
    return {"tasks": tasks, "pagination": page_info}


@router.get("/users", response_model=UserListResponse)
def list_users(
    role: Optional[UserRole] = Query(None, description="Filter by user role"),
    pagination: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
):
    """List users, newest first, optionally filtered by role."""
    logger.debug(f"Admin listing users: role={role}")

    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    users, page_info = paginate(query.order_by(User.created_at.desc(), User.id.desc()), pagination)
    return {"users": users, "pagination": page_info}


@router.get("/stats", response_model=AdminStatsResponse)
def get_system_stats(db: Session = Depends(get_db)):
    """System-wide user and task statistics."""
    logger.debug("Admin requesting system stats")

    since = days_ago(RECENT_WINDOW_DAYS)
    users = db.query(User)
    tasks = db.query(Task)

    return {
        "stats": {
            "users": {
                "total": users.count(),
                "active": users.filter(User.is_active.is_(True)).count(),
                "admins": users.filter(User.role == UserRole.admin).count(),
                "recent": users.filter(User.created_at >= since).count(),
            },
            "tasks": {
                "total": tasks.count(),
                "completed": tasks.filter(Task.status == TaskStatus.completed).count(),
                "pending": tasks.filter(Task.status == TaskStatus.pending).count(),
                "overdue": service.overdue_only(tasks).count(),
                "recent": tasks.filter(Task.created_at >= since).count(),
                "by_status": service.count_by(tasks, Task.status),
                "by_priority": service.count_by(tasks, Task.priority),
            },
        }
    }


@router.put(
    "/users/{user_id}/status",
    response_model=UserStatusResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def update_user_status(
    user_id: UUID,
    update: UserStatusUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Activate or deactivate a user account.

    Raises:
        APIError: 400 if isActive is not a boolean or the admin targets their own account
        APIError: 404 if the user does not exist
    """
    if not isinstance(update.is_active, bool):
        logger.info(f"Admin {current_user.id} sent non-boolean isActive: {update.is_active!r}")
        raise APIError(status.HTTP_400_BAD_REQUEST, "Invalid input", "isActive must be a boolean value")

    user = db.query(User).filter(User.id == str(user_id)).first()
    if not user:
        raise APIError(status.HTTP_404_NOT_FOUND, "User not found", "User not found")

    # Prevent admin lockout
    if user.id == current_user.id:
        logger.warning(f"Admin {current_user.id} attempted to change their own account status")
        raise APIError(status.HTTP_400_BAD_REQUEST, "Invalid operation", "You cannot change your own account status")

    user.is_active = update.is_active
    db.commit()
    db.refresh(user)

    state = "activated" if user.is_active else "deactivated"
    logger.warning(f"User {user.email} (ID: {user.id}) {state} by admin {current_user.id}")
    return {"message": f"User {state} successfully", "user": user}


@router.delete("/tasks/{task_id}", response_model=MessageResponse, responses={404: {"model": ErrorResponse}})
def delete_any_task(
    task_id: UUID,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Delete any task regardless of owner."""
    task = get_task_or_404(str(task_id), db)
    db.delete(task)
    db.commit()

    logger.info(f"Task {task_id} deleted by admin {current_user.id}")
    return {"message": "Task deleted successfully"}
