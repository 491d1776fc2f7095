"""
Application configuration loaded from environment variables.

Values are read once at import time. Security-sensitive values (JWT secret,
token lifetime) are validated in `auth.security`.
"""

import os
from typing import List


ENVIRONMENT = os.environ.get("ENVIRONMENT", "development").lower()
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# Comma-separated list of allowed frontend origins
CORS_ORIGINS: List[str] = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

# Optional admin account created at startup
ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL")
ADMIN_USERNAME = os.environ.get("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
RECENT_WINDOW_DAYS = 30


def is_production_like() -> bool:
    """
    Check if the current environment is production-like (production or staging).

    Used for security-sensitive checks like JWT secret validation and for
    deciding whether error responses may carry stack traces.
    """
    return ENVIRONMENT in ("production", "staging")


def is_development() -> bool:
    return ENVIRONMENT == "development"
