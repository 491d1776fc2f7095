"""
Database engine and session management.

The engine is created once per process; request handlers receive a session
through the `get_db` dependency instead of touching module state directly.
"""

import logging
import os
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./task_tracker.db")

# SQLite connections are used from FastAPI's threadpool
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Yield a database session for the duration of a request.

    The session is always closed, even when the handler raises.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create all tables that do not exist yet."""
    # Import models so their tables are registered on Base.metadata
    import models  # noqa: F401

    logger.info(f"Ensuring database tables exist ({engine.url.get_backend_name()})")
    Base.metadata.create_all(bind=engine)
