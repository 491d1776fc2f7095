"""
Task API endpoints, scoped to the authenticated user.

Every query filters on `owner_id == current_user.id`; tasks belonging to
other users are reported as not found.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from database import get_db
from models import TaskPriority, TaskStatus, User
from pagination import PageParams, page_params, paginate
from schemas import (
    ErrorResponse,
    MessageResponse,
    TaskCreate,
    TaskEnvelope,
    TaskListResponse,
    TaskMessageResponse,
    TaskSummaryResponse,
    TaskUpdate,
)
from auth.dependencies import get_current_user
from auth.permissions import get_owned_task_or_404, owned_tasks
from tasks import service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/tasks",
    tags=["tasks"],
    responses={401: {"model": ErrorResponse}},
)


@router.get("", response_model=TaskListResponse)
def list_tasks(
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    priority: Optional[TaskPriority] = Query(None),
    pagination: PageParams = Depends(page_params),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List the caller's tasks, newest first."""
    logger.debug(
        f"User {current_user.id} listing tasks: status={status_filter}, priority={priority}, "
        f"page={pagination.page}, limit={pagination.limit}"
    )

    query = service.filter_tasks(owned_tasks(current_user, db), status_filter, priority)
    tasks, page_info = paginate(service.newest_first(query), pagination)

    logger.debug(f"Retrieved {len(tasks)} of {page_info['total']} tasks")
    return {"tasks": tasks, "pagination": page_info}


@router.get("/stats/summary", response_model=TaskSummaryResponse)
def get_task_summary(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Totals for the caller's tasks: total, overdue and count by status."""
    logger.debug(f"User {current_user.id} requesting task summary")
    return {"stats": service.summarize(owned_tasks(current_user, db))}


@router.post(
    "",
    response_model=TaskMessageResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
def create_task(
    task: TaskCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a task owned by the caller. Any client-supplied owner is ignored."""
    logger.info(f"User {current_user.id} creating task: {task.title}")

    db_task = service.build_task(task, current_user)
    db.add(db_task)
    db.commit()
    db.refresh(db_task)

    logger.info(f"Task created successfully: id={db_task.id}")
    return {"message": "Task created successfully", "task": db_task}


@router.get("/{task_id}", response_model=TaskEnvelope, responses={404: {"model": ErrorResponse}})
def get_task(
    task_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get one of the caller's tasks by id."""
    logger.debug(f"User {current_user.id} requesting task {task_id}")
    return {"task": get_owned_task_or_404(current_user, str(task_id), db)}


@router.put(
    "/{task_id}",
    response_model=TaskMessageResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def update_task(
    task_id: UUID,
    task_update: TaskUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Partially update one of the caller's tasks."""
    logger.info(f"User {current_user.id} updating task {task_id}")

    task = get_owned_task_or_404(current_user, str(task_id), db, action="update")

    changed = service.apply_update(task, task_update.model_dump(exclude_unset=True))
    if changed:
        db.commit()
        db.refresh(task)

    logger.info(f"Task {task_id} updated successfully (changed: {', '.join(changed) or 'nothing'})")
    return {"message": "Task updated successfully", "task": task}


@router.delete("/{task_id}", response_model=MessageResponse, responses={404: {"model": ErrorResponse}})
def delete_task(
    task_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete one of the caller's tasks."""
    logger.debug(f"User {current_user.id} deleting task {task_id}")

    task = get_owned_task_or_404(current_user, str(task_id), db, action="delete")
    db.delete(task)
    db.commit()

    logger.info(f"Task {task_id} deleted by user {current_user.id}")
    return {"message": "Task deleted successfully"}
