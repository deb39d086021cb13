"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger("courier.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


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


# Delivery domain errors

class AlreadyClaimedError(AppException):
    """Raised when a job was claimed by someone else before this accept landed."""

    def __init__(self, job_id: int):
        super().__init__(
            message=f"Job {job_id} has already been claimed",
            error_code="ERR_JOB_CLAIMED",
            status_code=status.HTTP_409_CONFLICT,
            details={"job_id": job_id}
        )


class JobExpiredError(AppException):
    """Raised when accepting a job past its expiry timestamp."""

    def __init__(self, job_id: int):
        super().__init__(
            message=f"Job {job_id} has expired",
            error_code="ERR_JOB_EXPIRED",
            status_code=status.HTTP_410_GONE,
            details={"job_id": job_id}
        )


class InvalidTransitionError(AppException):
    """Raised when an action is not valid for the stop's kind and status."""

    def __init__(self, kind: str, current_status: str, action: str):
        super().__init__(
            message=f"Cannot '{action}' a {kind} stop in status '{current_status}'",
            error_code="ERR_INVALID_TRANSITION",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"kind": kind, "status": current_status, "action": action}
        )


class ConfirmationRejectedError(AppException):
    """Raised when proof of delivery does not match. The stop is left unchanged."""

    def __init__(self, stop_id: Any, reason: str = "Confirmation code does not match"):
        super().__init__(
            message=reason,
            error_code="ERR_CONFIRMATION_REJECTED",
            status_code=422,
            details={"stop_id": stop_id}
        )


class NoActiveBatchError(AppException):
    """Raised when the driver has no active delivery batch."""

    def __init__(self):
        super().__init__(
            message="No active delivery. Accept a job to start delivering.",
            error_code="ERR_NO_ACTIVE_BATCH",
            status_code=status.HTTP_404_NOT_FOUND
        )


class ActiveBatchExistsError(AppException):
    """Raised when accepting a job while another is still in progress."""

    def __init__(self, job_id: int):
        super().__init__(
            message=f"Finish job {job_id} before accepting another",
            error_code="ERR_ACTIVE_BATCH_EXISTS",
            status_code=status.HTTP_409_CONFLICT,
            details={"active_job_id": job_id}
        )


class LocationUnavailableError(AppException):
    """Raised when an action needs a GPS fix and none is known."""

    def __init__(self, sensor_error: str = None):
        super().__init__(
            message=sensor_error or "Waiting for GPS location. Please ensure GPS is enabled.",
            error_code="ERR_LOCATION_UNAVAILABLE",
            status_code=status.HTTP_409_CONFLICT
        )


class DriverOfflineError(AppException):
    """Raised when an offline driver tries to take work."""

    def __init__(self):
        super().__init__(
            message="Go online to accept jobs",
            error_code="ERR_DRIVER_OFFLINE",
            status_code=status.HTTP_409_CONFLICT
        )


class OutboxEntryNotRetryableError(AppException):
    """Raised when a retry targets an outbox entry that has not failed."""

    def __init__(self, entry_id: int, state: str):
        super().__init__(
            message=f"Outbox entry {entry_id} is {state}; only FAILED entries can be retried",
            error_code="ERR_OUTBOX_NOT_RETRYABLE",
            status_code=status.HTTP_409_CONFLICT,
            details={"entry_id": entry_id, "state": state}
        )


class InvalidPointError(AppException):
    """Raised when a textual point cannot be parsed."""

    def __init__(self, value: Any):
        super().__init__(
            message=f"Invalid point: {value!r}",
            error_code="ERR_INVALID_POINT",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"value": str(value)}
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
        status_code=422,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_errors(exc)
            }
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry exception instances that JSONResponse cannot encode
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        errors.append(error)
    return errors


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s: %s", type(exc).__name__, exc)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
