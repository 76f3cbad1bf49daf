"""
Global exception handling for the application.
Every failure in the core is one of the AppError subclasses below; the HTTP
layer renders them as a JSON error body with the matching status code.
"""

from typing import Any, Dict, Optional

import structlog
from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class EntityNotFoundException(AppError):
    """Operation on an id that does not exist."""
    def __init__(self, message: str = "Entity not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_404_NOT_FOUND, details)


class DuplicateIdentityException(AppError):
    """Email or employee id already taken by another user."""
    def __init__(self, message: str = "Email or Employee ID already exists", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_409_CONFLICT, details)


class DuplicateResponseException(AppError):
    """The user already answered this question."""
    def __init__(self, message: str = "Question already answered", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_409_CONFLICT, details)


class StorageFailureException(AppError):
    """Underlying read or write against the persistent store failed."""
    def __init__(self, message: str = "Storage failure", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE, details)


class ValidationFailureException(AppError):
    """Field-level validation error."""
    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY, details)


class BusinessRuleViolationException(AppError):
    """Operation not allowed in the current state (e.g. answering a text message)."""
    def __init__(self, message: str = "Business rule violation", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY, details)


class AuthFailureException(AppError):
    """Authentication failure. Never says whether the email exists."""
    def __init__(self, message: str = "Invalid email or password", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED, details)


class ForbiddenException(AppError):
    """Authenticated, but not an admin or not a member of the group."""
    def __init__(self, message: str = "Forbidden", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_403_FORBIDDEN, details)


def _error_body(request: Request, code: str, message: str, details: Optional[Dict[str, Any]] = None) -> dict:
    body: Dict[str, Any] = {"code": code, "message": message, "path": request.url.path}
    if details is not None:
        body["details"] = details
    return {"error": body}


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render AppErrors with their status code; anything else is a logged 500."""

    if isinstance(exc, AppError):
        if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.warning("Request failed", path=request.url.path, error=exc.__class__.__name__, reason=exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.__class__.__name__, exc.message, exc.details),
        )

    logger.exception("Unexpected error occurred", path=request.url.path)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            request, "InternalServerError", "An unexpected error occurred. Please try again later."
        ),
    )
