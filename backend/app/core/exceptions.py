"""
Custom exceptions and error handlers for consistent error responses.

Every error leaves the API as
``{"success": false, "error": <code>, "message": <text>, "details": {...}}``.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger("foodshare.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


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
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class InvalidDonationError(AppException):
    """Raised when donation input is well-formed but violates a date or range rule."""

    def __init__(self, message: str, field: str = None):
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"field": field} if field else None
        )


class DonationNotAvailableError(AppException):
    """Raised when reserving a donation that is not in the available state."""

    def __init__(self, donation_id: int, current_status: str):
        super().__init__(
            message="This donation is not available for reservation",
            error_code="ERR_DONATION_NOT_AVAILABLE",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"id": donation_id, "status": current_status}
        )


class DonationExpiredError(AppException):
    """Raised when reserving a donation whose expiry date has passed."""

    def __init__(self, donation_id: int):
        super().__init__(
            message="This donation has expired and cannot be reserved",
            error_code="ERR_DONATION_EXPIRED",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"id": donation_id}
        )


class InvalidDonationStateError(AppException):
    """Raised when a transition is requested from the wrong state."""

    def __init__(self, donation_id: int, current_status: str, message: str = "This donation is not reserved"):
        super().__init__(
            message=message,
            error_code="ERR_DONATION_INVALID_STATE",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"id": donation_id, "status": current_status}
        )


class DonationLockedError(AppException):
    """Raised when editing or deleting a donation its status no longer permits."""

    def __init__(self, donation_id: int, current_status: str, operation: str):
        super().__init__(
            message=f"This donation cannot be {operation} in its current status",
            error_code="ERR_DONATION_LOCKED",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"id": donation_id, "status": current_status}
        )


def _error_body(error_code: str, message: Any, details: Dict[str, Any] = None) -> Dict[str, Any]:
    return {
        "success": False,
        "error": error_code,
        "message": message,
        "details": details or {},
    }


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.error_code, exc.message, exc.details)
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        405: "ERR_METHOD_NOT_ALLOWED",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(error_code, exc.detail),
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for request validation errors (reported as 400)."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(
            "ERR_VALIDATION",
            "Validation failed",
            {"errors": jsonable_encoder(exc.errors())}
        )
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("ERR_INTERNAL_SERVER", "An internal server error occurred")
    )
