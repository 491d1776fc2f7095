"""
Authentication API endpoints.

This module provides REST API endpoints for:
- User registration
- Login
- Current user profile
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from database import get_db
from errors import APIError
from models import User, UserRole
from schemas import AuthResponse, ErrorResponse, LoginRequest, ProfileResponse, RegisterRequest
from auth.security import hash_password, verify_password, create_access_token
from auth.dependencies import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def find_user_by_email(db: Session, email: str):
    return db.query(User).filter(User.email == email.strip().lower()).first()


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """
    Register a new user account.

    Returns:
        A bearer token and the sanitized user

    Raises:
        APIError: 400 if the email or username is already taken
    """
    logger.info(f"Registration attempt for email: {request.email}")

    existing_user = db.query(User).filter(
        or_(User.email == request.email, User.username == request.username)
    ).first()
    if existing_user:
        message = "Email already registered" if existing_user.email == request.email else "Username already taken"
        logger.info(f"Registration failed: {message.lower()}: {request.email} / {request.username}")
        raise APIError(status.HTTP_400_BAD_REQUEST, "User already exists", message)

    new_user = User(
        username=request.username,
        email=request.email,
        password_hash=hash_password(request.password),
        role=UserRole.user,
        is_active=True,
    )
    db.add(new_user)
    # A concurrent registration with the same email/username fails here on the
    # unique constraint and is reported by the IntegrityError handler
    db.commit()
    db.refresh(new_user)

    token = create_access_token(new_user.id)

    logger.critical(f"User registered successfully: {new_user.email} (ID: {new_user.id})")
    return {"message": "User registered successfully", "token": token, "user": new_user}


@router.post("/login", response_model=AuthResponse, responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}})
def login(request: LoginRequest, db: Session = Depends(get_db)):
    """
    Login with email and password.

    Unknown email and wrong password produce the same 401 so the endpoint
    does not reveal which accounts exist.

    Raises:
        APIError: 400 if email or password is missing
        APIError: 401 if credentials are invalid
        APIError: 403 if the account is inactive
    """
    if not request.email or not request.password:
        logger.info("Login failed: missing email or password")
        raise APIError(status.HTTP_400_BAD_REQUEST, "Invalid input", "Email and password are required")

    logger.info(f"Login attempt for email: {request.email}")

    user = find_user_by_email(db, request.email)
    if not user:
        logger.info(f"Login failed: user not found: {request.email}")
        raise APIError(status.HTTP_401_UNAUTHORIZED, "Invalid credentials", "Invalid email or password")

    if not verify_password(request.password, user.password_hash):
        logger.info(f"Login failed: invalid password: {request.email}")
        raise APIError(status.HTTP_401_UNAUTHORIZED, "Invalid credentials", "Invalid email or password")

    if not user.is_active:
        logger.info(f"Login failed: inactive user: {request.email}")
        raise APIError(
            status.HTTP_403_FORBIDDEN,
            "Account inactive",
            "Your account is inactive. Please contact support.",
        )

    token = create_access_token(user.id)

    logger.critical(f"User logged in successfully: {user.email} (ID: {user.id})")
    return {"message": "Login successful", "token": token, "user": user}


@router.get("/profile", response_model=ProfileResponse)
def get_profile(current_user: User = Depends(get_current_user)):
    """Get the authenticated user's sanitized record."""
    logger.debug(f"Fetching profile for: {current_user.email}")
    return {"user": current_user}
