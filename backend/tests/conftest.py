"""
Test configuration and fixtures for task tracker tests.

Provides:
- Test database with SQLite in-memory for speed
- FastAPI test client with database dependency override
- Authentication helpers (JWT token generation)
- Common fixtures for users and tasks
"""

import os
import sys
import logging
from datetime import timedelta
from typing import Generator, Dict

# Configure the app before it is imported
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")
os.environ.pop("ADMIN_EMAIL", None)
os.environ.pop("ADMIN_PASSWORD", None)

# Add backend directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app
import models
from auth.security import hash_password, create_access_token

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)

# SQLite in-memory database for fast testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def test_db() -> Generator[Session, None, None]:
    """
    Create a fresh in-memory SQLite database for each test.

    This ensures test isolation and fast execution.
    """
    engine = create_engine(
        SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def client(test_db: Session) -> TestClient:
    """
    Create FastAPI test client with database dependency override.
    """
    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def make_user(
    db: Session,
    username: str,
    email: str,
    password: str,
    role: models.UserRole = models.UserRole.user,
    is_active: bool = True,
) -> models.User:
    user = models.User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=role,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_task(db: Session, owner: models.User, title: str = "Task", **kwargs) -> models.Task:
    task = models.Task(owner_id=owner.id, title=title, **kwargs)
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


@pytest.fixture(scope="function")
def admin_user(test_db: Session) -> models.User:
    """
    Create an admin user for testing.
    """
    user = make_user(test_db, "admin", "admin@test.com", "admin123", role=models.UserRole.admin)
    logger.info(f"Created admin user with ID: {user.id}")
    return user


@pytest.fixture(scope="function")
def regular_user(test_db: Session) -> models.User:
    """
    Create a regular user for testing.
    """
    user = make_user(test_db, "regular", "user@test.com", "user123")
    logger.info(f"Created regular user with ID: {user.id}")
    return user


@pytest.fixture(scope="function")
def another_user(test_db: Session) -> models.User:
    """
    Create another user for testing multi-user scenarios.
    """
    user = make_user(test_db, "another", "another@test.com", "another123")
    logger.info(f"Created another user with ID: {user.id}")
    return user


def create_auth_token(user: models.User, expires_delta: timedelta = None) -> str:
    """
    Helper to create JWT access token for a user.

    Args:
        user: User to create token for
        expires_delta: Optional expiration time override

    Returns:
        JWT access token string
    """
    return create_access_token(user.id, expires_delta)


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def auth_headers(admin_user: models.User) -> Dict[str, str]:
    """
    Create authorization headers with admin token.
    """
    return bearer(create_auth_token(admin_user))


@pytest.fixture(scope="function")
def user_auth_headers(regular_user: models.User) -> Dict[str, str]:
    """
    Create authorization headers for regular user.
    """
    return bearer(create_auth_token(regular_user))


@pytest.fixture(scope="function")
def another_user_auth_headers(another_user: models.User) -> Dict[str, str]:
    """
    Create authorization headers for another user.
    """
    return bearer(create_auth_token(another_user))
