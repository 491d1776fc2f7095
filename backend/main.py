import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config
from database import SessionLocal, engine, init_db
import models
from errors import register_exception_handlers
from auth.routes import router as auth_router
from auth.security import hash_password
from tasks.routes import router as tasks_router
from admin.routes import router as admin_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def ensure_admin_user() -> None:
    """
    Ensure the configured admin user exists.

    Runs only when ADMIN_EMAIL and ADMIN_PASSWORD are set. An existing account
    with that email is promoted to admin and reactivated; its password is left
    untouched. If ADMIN_USERNAME already belongs to a different account,
    seeding is skipped.
    """
    if not config.ADMIN_EMAIL or not config.ADMIN_PASSWORD:
        logger.debug("ADMIN_EMAIL/ADMIN_PASSWORD not set, skipping admin seeding")
        return

    if config.is_production_like() and len(config.ADMIN_PASSWORD.strip()) < 8:
        logger.error("❌ ADMIN_PASSWORD must be at least 8 characters in production/staging; admin not seeded")
        return

    email = config.ADMIN_EMAIL.strip().lower()
    db = SessionLocal()
    try:
        admin = db.query(models.User).filter(models.User.email == email).first()
        if admin:
            if admin.role != models.UserRole.admin or not admin.is_active:
                admin.role = models.UserRole.admin
                admin.is_active = True
                db.commit()
                logger.warning(f"Existing user {email} promoted to active admin")
            else:
                logger.info(f"Admin user already exists (email: {email})")
            return

        taken = db.query(models.User).filter(models.User.username == config.ADMIN_USERNAME).first()
        if taken:
            logger.error(
                f"❌ ADMIN_USERNAME '{config.ADMIN_USERNAME}' is already used by {taken.email}; admin not seeded"
            )
            return

        admin = models.User(
            username=config.ADMIN_USERNAME,
            email=email,
            password_hash=hash_password(config.ADMIN_PASSWORD),
            role=models.UserRole.admin,
            is_active=True,
        )
        db.add(admin)
        db.commit()
        logger.info(f"✅ Admin user created (email: {email})")
    except Exception:
        db.rollback()
        logger.exception("Failed to ensure admin user exists")
        raise
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting Task Tracker API (environment: {config.ENVIRONMENT})")
    init_db()
    ensure_admin_user()
    yield
    logger.info("Shutting down Task Tracker API")
    engine.dispose()


app = FastAPI(
    title="Task Tracker API",
    description="Multi-user task tracking with bearer-token auth and an admin role",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(auth_router)
app.include_router(tasks_router)
app.include_router(admin_router)


# Health check
@app.get("/health", tags=["health"])
def health_check():
    return {"status": "healthy"}
