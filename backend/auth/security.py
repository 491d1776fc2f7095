"""
Security utilities for password hashing and JWT token management.

This module provides cryptographic functions for:
- Password hashing using Argon2id (memory-hard, GPU-resistant)
- JWT access token creation and verification
"""

import logging
import os
import secrets
from datetime import timedelta
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from config import is_production_like
from time_utils import utc_now

logger = logging.getLogger(__name__)


class TokenError(Exception):
    """Base class for bearer token verification failures."""

    message = "Invalid token"


class TokenMalformed(TokenError):
    """Token is not a decodable JWT or lacks a usable subject claim."""


class TokenExpired(TokenError):
    message = "Token expired"


class TokenInvalidSignature(TokenError):
    """Token is well-formed but was not signed with our key."""


# Password hashing configuration using Argon2id
# Argon2id is recommended for password hashing as it's memory-hard and GPU-resistant
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

# JWT configuration
# Load SECRET_KEY from environment variable (REQUIRED for security)
SECRET_KEY = os.environ.get("JWT_SECRET_KEY")
if not SECRET_KEY:
    # CRITICAL: In production, this MUST be set via environment variable
    if is_production_like():
        raise ValueError(
            "JWT_SECRET_KEY environment variable is required in production. "
            "Generate a secure key with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
        )
    else:
        SECRET_KEY = "dev-insecure-key-" + secrets.token_urlsafe(32)
        logger.warning(
            "⚠️  JWT_SECRET_KEY not set! Using temporary development key. "
            "Tokens will not survive a restart. Set JWT_SECRET_KEY environment variable."
        )

ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")

SUPPORTED_ALGORITHMS = ["HS256", "HS384", "HS512"]
if ALGORITHM not in SUPPORTED_ALGORITHMS:
    logger.warning(
        f"⚠️  Unsupported JWT_ALGORITHM={ALGORITHM}. Using HS256. "
        f"Supported: {', '.join(SUPPORTED_ALGORITHMS)}"
    )
    ALGORITHM = "HS256"

try:
    ACCESS_TOKEN_EXPIRE_HOURS = int(os.environ.get("ACCESS_TOKEN_EXPIRE_HOURS", "24"))
    if ACCESS_TOKEN_EXPIRE_HOURS < 1 or ACCESS_TOKEN_EXPIRE_HOURS > 168:  # 1 hour to 7 days
        logger.warning(
            f"⚠️  ACCESS_TOKEN_EXPIRE_HOURS={ACCESS_TOKEN_EXPIRE_HOURS} is outside safe range (1-168). "
            "Using default of 24 hours."
        )
        ACCESS_TOKEN_EXPIRE_HOURS = 24
except ValueError:
    logger.warning("⚠️  Invalid ACCESS_TOKEN_EXPIRE_HOURS value in environment. Using default of 24 hours.")
    ACCESS_TOKEN_EXPIRE_HOURS = 24


def hash_password(password: str) -> str:
    """
    Hash a password using Argon2id.

    Called explicitly by the registration and seeding code before a user is
    persisted; the ORM model only ever sees the hash.

    Example:
        >>> hashed = hash_password("my_secure_password")
        >>> verify_password("my_secure_password", hashed)
        True
    """
    logger.debug("Hashing password")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash.

    Returns:
        True if password matches, False otherwise (including unparseable hashes)
    """
    logger.debug("Verifying password")
    try:
        is_valid = pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        logger.warning("Stored password hash could not be parsed")
        return False
    logger.debug(f"Password verification result: {is_valid}")
    return is_valid


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed JWT access token for a user.

    The user id (``sub``) is the only application claim; ``iat`` and ``exp``
    are standard.

    Args:
        user_id: Identifier of the user the token proves
        expires_delta: Optional custom lifetime (defaults to ACCESS_TOKEN_EXPIRE_HOURS)

    Example:
        >>> token = create_access_token("5f0c...")
    """
    now = utc_now()
    expire = now + (expires_delta if expires_delta is not None else timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS))

    to_encode = {"sub": str(user_id), "iat": now, "exp": expire}
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    logger.debug(f"Access token created for user {user_id}, expires at: {expire}")
    return encoded_jwt


def decode_access_token(token: str) -> str:
    """
    Verify a JWT access token and return the user id it carries.

    Raises:
        TokenMalformed: token cannot be parsed or has no subject
        TokenInvalidSignature: signature does not match our key/algorithm
        TokenExpired: token was valid but its ``exp`` has passed
    """
    logger.debug("Verifying JWT token")

    # Parse without verification first so garbage input is told apart from forged tokens
    try:
        jwt.get_unverified_claims(token)
    except JWTError as e:
        logger.info(f"Malformed JWT: {str(e)}")
        raise TokenMalformed() from e

    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError as e:
        logger.info("JWT verification failed: token expired")
        raise TokenExpired() from e
    except JWTError as e:
        logger.info(f"JWT verification failed: {str(e)}")
        raise TokenInvalidSignature() from e

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        logger.info("Token payload missing 'sub' claim")
        raise TokenMalformed()

    logger.debug(f"Token verified successfully for user: {user_id}")
    return user_id
