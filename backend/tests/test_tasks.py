"""
Tests for the caller-scoped task endpoints.

Covers:
- Create/get/update/delete with ownership scoping (foreign tasks are 404)
- Derived completedAt on status transitions
- Pagination, filtering and ordering of the task list
- The per-user summary
"""

import logging
import math
import uuid
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

import models
from tests.conftest import bearer, make_task
from time_utils import utc_now

logger = logging.getLogger(__name__)


# ============== Example scenario ==============


def test_register_create_complete_and_summarize(client: TestClient):
    """Register, create a task, complete it, and read the summary."""
    registered = client.post(
        "/api/auth/register",
        json={"username": "ali", "email": "a@x.com", "password": "secret1"},
    )
    assert registered.status_code == 201, registered.json()
    headers = bearer(registered.json()["token"])

    created = client.post("/api/tasks", json={"title": "T"}, headers=headers)
    assert created.status_code == 201, created.json()
    task = created.json()["task"]
    assert task["status"] == "pending"
    assert task["priority"] == "medium"
    assert task["completedAt"] is None

    updated = client.put(f"/api/tasks/{task['id']}", json={"status": "completed"}, headers=headers)
    assert updated.status_code == 200, updated.json()
    assert updated.json()["task"]["completedAt"] is not None

    summary = client.get("/api/tasks/stats/summary", headers=headers)
    assert summary.status_code == 200
    assert summary.json() == {"stats": {"total": 1, "overdue": 0, "byStatus": {"completed": 1}}}
    logger.info("✓ end-to-end scenario produces the expected summary")


# ============== Create ==============


def test_create_task_forces_owner_to_caller(
    client: TestClient, regular_user: models.User, another_user: models.User, user_auth_headers
):
    response = client.post(
        "/api/tasks",
        json={"title": "Mine", "owner": another_user.id, "ownerId": another_user.id},
        headers=user_auth_headers,
    )

    assert response.status_code == 201, response.json()
    assert response.json()["task"]["owner"] == regular_user.id


def test_create_task_with_all_fields(client: TestClient, user_auth_headers):
    due = (utc_now() + timedelta(days=3)).isoformat()
    response = client.post(
        "/api/tasks",
        json={
            "title": "  Write report  ",
            "description": "Quarterly numbers",
            "status": "in-progress",
            "priority": "high",
            "dueDate": due,
            "tags": ["work", " urgent "],
        },
        headers=user_auth_headers,
    )

    assert response.status_code == 201, response.json()
    task = response.json()["task"]
    assert task["title"] == "Write report"
    assert task["status"] == "in-progress"
    assert task["priority"] == "high"
    assert task["tags"] == ["work", "urgent"]
    assert task["dueDate"] is not None
    assert task["completedAt"] is None


def test_create_completed_task_stamps_completed_at(client: TestClient, user_auth_headers):
    response = client.post("/api/tasks", json={"title": "Done already", "status": "completed"}, headers=user_auth_headers)

    assert response.status_code == 201
    assert response.json()["task"]["completedAt"] is not None


def test_create_task_requires_title(client: TestClient, user_auth_headers):
    response = client.post("/api/tasks", json={"description": "no title"}, headers=user_auth_headers)

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation Error"
    assert [err["field"] for err in body["errors"]] == ["title"]


@pytest.mark.parametrize(
    "payload,field",
    [
        ({"title": "x" * 101}, "title"),
        ({"title": "ok", "description": "d" * 501}, "description"),
        ({"title": "ok", "status": "done"}, "status"),
        ({"title": "ok", "priority": "urgent"}, "priority"),
        ({"title": "ok", "tags": ["t" * 21]}, "tags"),
    ],
)
def test_create_task_field_validation(client: TestClient, user_auth_headers, payload, field):
    response = client.post("/api/tasks", json=payload, headers=user_auth_headers)

    assert response.status_code == 400
    assert field in {err["field"] for err in response.json()["errors"]}


def test_create_task_rejects_past_due_date(client: TestClient, user_auth_headers):
    past = (utc_now() - timedelta(days=1)).isoformat()
    response = client.post("/api/tasks", json={"title": "Late", "dueDate": past}, headers=user_auth_headers)

    assert response.status_code == 400
    errors = response.json()["errors"]
    assert errors[0]["field"] == "dueDate"
    assert errors[0]["message"] == "Due date must be in the future"


def test_task_routes_require_token(client: TestClient):
    assert client.get("/api/tasks").status_code == 401
    assert client.post("/api/tasks", json={"title": "T"}).status_code == 401


# ============== Get / ownership ==============


def test_get_own_task(client: TestClient, test_db: Session, regular_user: models.User, user_auth_headers):
    task = make_task(test_db, regular_user, "Mine")

    response = client.get(f"/api/tasks/{task.id}", headers=user_auth_headers)
    assert response.status_code == 200
    assert response.json()["task"]["id"] == task.id


def test_get_task_reports_overdue(client: TestClient, test_db: Session, regular_user: models.User, user_auth_headers):
    yesterday = utc_now() - timedelta(days=1)
    late = make_task(test_db, regular_user, "Late", due_date=yesterday)
    done = make_task(test_db, regular_user, "Done late", due_date=yesterday,
                     status=models.TaskStatus.completed, completed_at=utc_now())
    undated = make_task(test_db, regular_user, "Whenever")

    def overdue(task):
        return client.get(f"/api/tasks/{task.id}", headers=user_auth_headers).json()["task"]["isOverdue"]

    assert overdue(late) is True
    assert overdue(done) is False
    assert overdue(undated) is False


def test_get_other_users_task_is_404(
    client: TestClient, test_db: Session, another_user: models.User, user_auth_headers
):
    """Another user's task is indistinguishable from a missing one."""
    foreign = make_task(test_db, another_user, "Theirs")

    foreign_response = client.get(f"/api/tasks/{foreign.id}", headers=user_auth_headers)
    missing_response = client.get(f"/api/tasks/{uuid.uuid4()}", headers=user_auth_headers)

    assert foreign_response.status_code == 404
    assert missing_response.status_code == 404
    assert foreign_response.json() == missing_response.json()


def test_admin_cannot_read_other_users_task_through_user_route(
    client: TestClient, test_db: Session, regular_user: models.User, auth_headers
):
    task = make_task(test_db, regular_user, "Private")

    response = client.get(f"/api/tasks/{task.id}", headers=auth_headers)
    assert response.status_code == 404


def test_malformed_task_id_is_400(client: TestClient, user_auth_headers):
    response = client.get("/api/tasks/not-an-id", headers=user_auth_headers)

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid ID Format"


# ============== Update ==============


def test_partial_update_changes_only_supplied_fields(
    client: TestClient, test_db: Session, regular_user: models.User, user_auth_headers
):
    task = make_task(
        test_db, regular_user, "Original",
        description="keep me", priority=models.TaskPriority.high, tags=["a"],
    )

    response = client.put(f"/api/tasks/{task.id}", json={"title": "Renamed"}, headers=user_auth_headers)

    assert response.status_code == 200, response.json()
    body = response.json()
    assert body["message"] == "Task updated successfully"
    updated = body["task"]
    assert updated["title"] == "Renamed"
    assert updated["description"] == "keep me"
    assert updated["priority"] == "high"
    assert updated["tags"] == ["a"]


def test_update_can_clear_description(
    client: TestClient, test_db: Session, regular_user: models.User, user_auth_headers
):
    task = make_task(test_db, regular_user, "T", description="old")

    response = client.put(f"/api/tasks/{task.id}", json={"description": None}, headers=user_auth_headers)
    assert response.status_code == 200
    assert response.json()["task"]["description"] is None


def test_update_rejects_null_title(
    client: TestClient, test_db: Session, regular_user: models.User, user_auth_headers
):
    task = make_task(test_db, regular_user, "T")

    response = client.put(f"/api/tasks/{task.id}", json={"title": None}, headers=user_auth_headers)
    assert response.status_code == 400
    assert response.json()["errors"][0]["message"] == "title cannot be null"


def test_update_ignores_owner(
    client: TestClient, test_db: Session, regular_user: models.User, another_user: models.User, user_auth_headers
):
    task = make_task(test_db, regular_user, "T")

    response = client.put(f"/api/tasks/{task.id}", json={"owner": another_user.id}, headers=user_auth_headers)
    assert response.status_code == 200
    assert response.json()["task"]["owner"] == regular_user.id


def test_update_other_users_task_is_404(
    client: TestClient, test_db: Session, another_user: models.User, user_auth_headers
):
    task = make_task(test_db, another_user, "Theirs")

    response = client.put(f"/api/tasks/{task.id}", json={"title": "Hijacked"}, headers=user_auth_headers)
    assert response.status_code == 404

    test_db.refresh(task)
    assert task.title == "Theirs"


def test_completed_at_follows_status(client: TestClient, user_auth_headers):
    created = client.post("/api/tasks", json={"title": "T"}, headers=user_auth_headers).json()["task"]
    url = f"/api/tasks/{created['id']}"

    # Between two non-completed statuses completedAt is never set
    moved = client.put(url, json={"status": "in-progress"}, headers=user_auth_headers).json()["task"]
    assert moved["completedAt"] is None

    completed = client.put(url, json={"status": "completed"}, headers=user_auth_headers).json()["task"]
    assert completed["completedAt"] is not None

    # Unrelated edits keep the original completion time
    retitled = client.put(url, json={"title": "T2"}, headers=user_auth_headers).json()["task"]
    assert retitled["completedAt"] == completed["completedAt"]

    reopened = client.put(url, json={"status": "cancelled"}, headers=user_auth_headers).json()["task"]
    assert reopened["completedAt"] is None


def test_resending_same_due_date_is_not_a_change(client: TestClient, user_auth_headers):
    due = (utc_now() + timedelta(days=3)).isoformat()
    created = client.post("/api/tasks", json={"title": "T", "dueDate": due}, headers=user_auth_headers).json()["task"]

    response = client.put(
        f"/api/tasks/{created['id']}", json={"dueDate": created["dueDate"]}, headers=user_auth_headers
    )

    assert response.status_code == 200
    assert response.json()["task"]["dueDate"] == created["dueDate"]
    assert response.json()["task"]["updatedAt"] == created["updatedAt"]


# ============== Delete ==============


def test_delete_own_task(client: TestClient, test_db: Session, regular_user: models.User, user_auth_headers):
    task = make_task(test_db, regular_user, "Bye")
    task_id = task.id

    response = client.delete(f"/api/tasks/{task_id}", headers=user_auth_headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Task deleted successfully"}
    assert test_db.query(models.Task).filter(models.Task.id == task_id).first() is None


def test_delete_other_users_task_is_404(
    client: TestClient, test_db: Session, another_user: models.User, user_auth_headers
):
    task = make_task(test_db, another_user, "Theirs")
    task_id = task.id

    response = client.delete(f"/api/tasks/{task_id}", headers=user_auth_headers)
    assert response.status_code == 404
    assert test_db.query(models.Task).filter(models.Task.id == task_id).first() is not None


# ============== List ==============


def test_list_is_scoped_sorted_and_paginated(
    client: TestClient, test_db: Session, regular_user: models.User, another_user: models.User, user_auth_headers
):
    base = utc_now() - timedelta(hours=1)
    for i in range(5):
        make_task(test_db, regular_user, f"Task {i}", created_at=base + timedelta(minutes=i))
    make_task(test_db, another_user, "Not mine")

    response = client.get("/api/tasks", params={"page": 1, "limit": 2}, headers=user_auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert [t["title"] for t in body["tasks"]] == ["Task 4", "Task 3"]
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 5, "pages": 3}

    last_page = client.get("/api/tasks", params={"page": 3, "limit": 2}, headers=user_auth_headers).json()
    assert [t["title"] for t in last_page["tasks"]] == ["Task 0"]


def test_list_defaults(client: TestClient, test_db: Session, regular_user: models.User, user_auth_headers):
    for i in range(12):
        make_task(test_db, regular_user, f"Task {i}")

    body = client.get("/api/tasks", headers=user_auth_headers).json()
    assert len(body["tasks"]) == 10
    assert body["pagination"] == {"page": 1, "limit": 10, "total": 12, "pages": 2}


def test_list_filters_by_status_and_priority(
    client: TestClient, test_db: Session, regular_user: models.User, user_auth_headers
):
    make_task(test_db, regular_user, "A", status=models.TaskStatus.pending, priority=models.TaskPriority.high)
    make_task(test_db, regular_user, "B", status=models.TaskStatus.pending, priority=models.TaskPriority.low)
    make_task(test_db, regular_user, "C", status=models.TaskStatus.in_progress, priority=models.TaskPriority.high)

    by_status = client.get("/api/tasks", params={"status": "pending"}, headers=user_auth_headers).json()
    assert {t["title"] for t in by_status["tasks"]} == {"A", "B"}

    both = client.get(
        "/api/tasks", params={"status": "in-progress", "priority": "high"}, headers=user_auth_headers
    ).json()
    assert [t["title"] for t in both["tasks"]] == ["C"]
    assert both["pagination"]["total"] == 1


def test_list_rejects_bad_pagination(client: TestClient, user_auth_headers):
    assert client.get("/api/tasks", params={"page": 0}, headers=user_auth_headers).status_code == 400
    assert client.get("/api/tasks", params={"limit": 0}, headers=user_auth_headers).status_code == 400


def test_pages_is_ceiling_of_total_over_limit(
    client: TestClient, test_db: Session, regular_user: models.User, user_auth_headers
):
    empty = client.get("/api/tasks", params={"limit": 1}, headers=user_auth_headers).json()["pagination"]
    assert empty["total"] == 0
    assert empty["pages"] == 0

    for i in range(7):
        make_task(test_db, regular_user, f"Task {i}")

    for limit in (1, 2, 3, 7, 10):
        pagination = client.get("/api/tasks", params={"limit": limit}, headers=user_auth_headers).json()["pagination"]
        assert pagination["total"] == 7
        assert pagination["pages"] == math.ceil(7 / limit), f"limit={limit}"


# ============== Summary ==============


def test_summary_counts(
    client: TestClient, test_db: Session, regular_user: models.User, another_user: models.User, user_auth_headers
):
    now = utc_now()
    make_task(test_db, regular_user, "Overdue", due_date=now - timedelta(days=1))
    make_task(test_db, regular_user, "Late but done", status=models.TaskStatus.completed,
              completed_at=now, due_date=now - timedelta(days=1))
    make_task(test_db, regular_user, "Future", status=models.TaskStatus.in_progress, due_date=now + timedelta(days=1))
    make_task(test_db, regular_user, "No due date", status=models.TaskStatus.cancelled)
    make_task(test_db, another_user, "Not mine", due_date=now - timedelta(days=1))

    stats = client.get("/api/tasks/stats/summary", headers=user_auth_headers).json()["stats"]

    assert stats["total"] == 4
    assert stats["overdue"] == 1
    assert stats["byStatus"] == {"pending": 1, "completed": 1, "in-progress": 1, "cancelled": 1}
    assert sum(stats["byStatus"].values()) == stats["total"]


def test_summary_for_user_without_tasks(client: TestClient, user_auth_headers):
    stats = client.get("/api/tasks/stats/summary", headers=user_auth_headers).json()["stats"]
    assert stats == {"total": 0, "overdue": 0, "byStatus": {}}
