"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from sqlalchemy.orm.exc import StaleDataError
from typing import Any, Dict

logger = logging.getLogger("transportpro.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InvalidInputError(AppException):
    """
    Raised for bad input that passed schema validation but breaks a business rule.

    Examples: missing ad-hoc calculator input, self-service guard violations.
    """

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to perform an action."""

    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class ResourceConflictError(AppException):
    """
    Raised when a mutation collides with existing state.

    Used for trucks blocked by active trips and duplicate registration numbers.
    """

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_CONFLICT_001",
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class AuthenticationError(AppException):
    """Raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class TokenRevokedError(AppException):
    """Raised when token has been revoked."""

    def __init__(self, message: str = "Token has been revoked"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_002",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_encoder(exc.errors())
            }
        }
    )


async def stale_data_exception_handler(request: Request, exc: StaleDataError) -> JSONResponse:
    """Handler for optimistic-lock failures on versioned rows."""
    logger.warning(
        "Concurrent modification rejected",
        extra={"path": request.url.path, "method": request.method}
    )
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "error_code": "ERR_CONFLICT_002",
            "message": "Record was modified concurrently, reload and retry",
            "details": {}
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception(
        "Unhandled exception: %s",
        type(exc).__name__,
        extra={"path": request.url.path, "method": request.method}
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
