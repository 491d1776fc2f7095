"""
FastAPI dependencies for authentication and authorization.

This module provides dependency functions that can be used in route handlers to:
- Extract and validate the current user from a bearer token
- Enforce the admin role on admin-only routes

Ordering is enforced by composition: `require_admin` depends on
`get_current_user`, so a router declaring `dependencies=[Depends(require_admin)]`
always authenticates first.
"""

import logging
from typing import Optional

from fastapi import Depends, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from database import get_db
from errors import APIError
from models import User, UserRole
from auth.security import TokenError, decode_access_token

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme; missing credentials are reported by get_current_user
security = HTTPBearer(auto_error=False)

BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


def _unauthorized(message: str) -> APIError:
    return APIError(status.HTTP_401_UNAUTHORIZED, "Access denied", message, headers=BEARER_CHALLENGE)


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Extract and validate the current user from the `Authorization: Bearer` header.

    Returns:
        The active User the token was issued to; also stored on `request.state.user`

    Raises:
        APIError: 401 if the token is missing, malformed, expired or forged,
            if the user no longer exists, or if the account is inactive

    Example:
        @router.get("/api/tasks")
        def list_tasks(user: User = Depends(get_current_user)):
            ...
    """
    if not credentials or not credentials.credentials:
        logger.info("No authentication credentials provided")
        raise _unauthorized("No token provided")

    try:
        user_id = decode_access_token(credentials.credentials)
    except TokenError as e:
        raise _unauthorized(e.message) from e

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        logger.info(f"User not found for id: {user_id}")
        raise _unauthorized("Invalid token - user not found")

    if not user.is_active:
        logger.info(f"Inactive user attempted access: {user_id}")
        raise _unauthorized("User account is inactive")

    request.state.user = user
    logger.debug(f"User authenticated via JWT: {user.email}")
    return user


def ensure_admin(user: Optional[User]) -> User:
    """
    Check that an already-authenticated user has the admin role.

    A missing user means authentication did not run first; that is reported
    as 401 rather than failing with an attribute error.
    """
    if user is None:
        logger.warning("Admin check ran without an authenticated user")
        raise _unauthorized("Authentication required")

    if user.role != UserRole.admin:
        logger.info(f"Access denied: user {user.email} has role '{user.role.value}', but 'admin' is required")
        raise APIError(status.HTTP_403_FORBIDDEN, "Access denied", "Admin role required")

    logger.debug(f"Role check passed for user: {user.email}")
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """
    Dependency for admin-only endpoints.

    Example:
        router = APIRouter(prefix="/api/admin", dependencies=[Depends(require_admin)])
    """
    return ensure_admin(current_user)
