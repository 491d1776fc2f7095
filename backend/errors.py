"""
Centralized error normalization.

Route handlers and dependencies raise; the handlers registered here are the
only place where failures are turned into HTTP statuses and the JSON error
envelope:

    {"error": str, "message": str, "errors": [{"field", "message"}], "stack": str}

`errors` is present only for field-level failures and `stack` only for
unexpected errors in development mode.
"""

import logging
import re
import traceback
from http import HTTPStatus
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import is_development

logger = logging.getLogger(__name__)

# "UNIQUE constraint failed: users.email" (SQLite) / "Key (email)=(...)" (PostgreSQL)
_DUPLICATE_FIELD_PATTERNS = (
    re.compile(r"UNIQUE constraint failed: \w+\.(\w+)"),
    re.compile(r"Key \((\w+)\)=\("),
    re.compile(r"Duplicate entry '.*' for key '(?:\w+\.)?(\w+)'"),
)


class APIError(Exception):
    """
    Application error carrying its HTTP status and envelope fields.

    Example:
        raise APIError(404, "Task not found", "Task not found or you do not have permission to view it")
    """

    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        errors: Optional[List[Dict[str, str]]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.message = message
        self.errors = errors
        self.headers = headers


def build_error_payload(
    error: str,
    message: str,
    errors: Optional[List[Dict[str, str]]] = None,
    stack: Optional[str] = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"error": error, "message": message}
    if errors:
        payload["errors"] = errors
    if stack and is_development():
        payload["stack"] = stack
    return payload


def _field_from_loc(loc) -> str:
    # Drop the request part ("body", "query", "path") and list indexes
    parts = [str(part) for part in loc[1:] if not isinstance(part, int)]
    if parts:
        return ".".join(parts)
    return str(loc[0]) if loc else "request"


def _clean_message(message: str) -> str:
    # pydantic prefixes custom validator errors with "Value error, "
    return message.replace("Value error, ", "", 1)


def duplicate_field(exc: IntegrityError) -> Optional[str]:
    """Extract the column that violated a unique constraint, if recognizable."""
    text = str(exc.orig) if exc.orig is not None else str(exc)
    for pattern in _DUPLICATE_FIELD_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=build_error_payload(exc.error, exc.message, exc.errors),
        headers=exc.headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    try:
        error = HTTPStatus(exc.status_code).phrase
    except ValueError:
        error = "Error"
    message = exc.detail if isinstance(exc.detail, str) else error
    return JSONResponse(
        status_code=exc.status_code,
        content=build_error_payload(error, message),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    raw_errors = exc.errors()
    errors = [
        {"field": _field_from_loc(err.get("loc", ())), "message": _clean_message(err.get("msg", "Invalid value"))}
        for err in raw_errors
    ]

    if any(err.get("loc", ())[:1] == ("path",) for err in raw_errors):
        logger.info(f"Malformed identifier on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=build_error_payload(
                "Invalid ID Format",
                "Invalid ID format",
                [{"field": e["field"], "message": "Invalid ID format"} for e in errors],
            ),
        )

    logger.info(f"Validation failed on {request.method} {request.url.path}: {errors}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=build_error_payload("Validation Error", "Request validation failed", errors),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    field = duplicate_field(exc)
    if field is None:
        logger.warning(f"Unrecognized integrity error on {request.method} {request.url.path}: {exc.orig}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=build_error_payload("Constraint Violation", "The request violates a data constraint"),
        )

    logger.info(f"Duplicate value for '{field}' on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=build_error_payload(
            "Duplicate Error",
            f"{field} already exists",
            [{"field": field, "message": f"{field} already exists"}],
        ),
    )


def unhandled_error_response(exc: Exception) -> JSONResponse:
    """Generic 500 envelope; internals are only exposed in development mode."""
    stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=build_error_payload("Internal Server Error", "An unexpected error occurred", stack=stack),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return unhandled_error_response(exc)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the error normalizer to the application."""
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
