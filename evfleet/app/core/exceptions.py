"""
Custom exceptions and error handlers for consistent error responses.

Every domain failure carries a machine-readable error code, an HTTP status
and a details payload. The global handlers turn them into
``{"error_code", "message", "details"}`` JSON bodies.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from typing import Any, Dict, List, Optional

logger = logging.getLogger("evfleet.errors")


class AppException(Exception):
    """Base application exception."""

    retryable = False

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
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class InvalidIntervalError(AppException):
    """Raised when a trip's end time is missing or not after its start time."""

    def __init__(self, message: str = "End time must be after start time", start=None, end=None):
        super().__init__(
            message=message,
            error_code="INVALID_INTERVAL",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"start_time": start, "end_time": end}
        )


class DriverInactiveError(AppException):
    """Raised when an inactive driver is assigned to a trip."""

    def __init__(self, driver_id: int):
        super().__init__(
            message=f"Driver {driver_id} is inactive and cannot be assigned to trips",
            error_code="DRIVER_INACTIVE",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"driver_id": driver_id}
        )


class VehicleConflictError(AppException):
    """Raised when the vehicle already has an active trip in the requested slot."""

    def __init__(self, vehicle_id: int, conflicting_trip_id: int):
        super().__init__(
            message="EV is already assigned to another trip during the requested time period",
            error_code="VEHICLE_CONFLICT",
            status_code=status.HTTP_409_CONFLICT,
            details={"vehicle_id": vehicle_id, "conflicting_trip_id": conflicting_trip_id}
        )
        self.conflicting_trip_id = conflicting_trip_id


class DriverConflictError(AppException):
    """Raised when the driver already has an active trip in the requested slot."""

    def __init__(self, driver_id: int, conflicting_trip_id: int):
        super().__init__(
            message="Driver is already assigned to another trip during the requested time period",
            error_code="DRIVER_CONFLICT",
            status_code=status.HTTP_409_CONFLICT,
            details={"driver_id": driver_id, "conflicting_trip_id": conflicting_trip_id}
        )
        self.conflicting_trip_id = conflicting_trip_id


class InvalidTransitionError(AppException):
    """Raised for lifecycle moves the trip state machine does not allow."""

    def __init__(self, trip_id: Optional[int], from_status: str, to_status: str, message: str = None):
        super().__init__(
            message=message or f"Cannot move trip from {from_status} to {to_status}",
            error_code="INVALID_TRANSITION",
            status_code=status.HTTP_409_CONFLICT,
            details={"trip_id": trip_id, "from": from_status, "to": to_status}
        )


class DuplicateResourceError(AppException):
    """Raised when a unique field (registration, license id, charger code) is taken."""

    def __init__(self, resource: str, field: str, value: Any):
        super().__init__(
            message=f"{resource} with {field} '{value}' already exists",
            error_code="DUPLICATE_RESOURCE",
            status_code=status.HTTP_409_CONFLICT,
            details={"resource": resource, "field": field, "value": value}
        )


class ResourceInUseError(AppException):
    """Raised when deleting a vehicle or driver still booked on active trips."""

    def __init__(self, resource: str, resource_id: int, trip_ids: List[int]):
        super().__init__(
            message=f"{resource} {resource_id} is referenced by active trips",
            error_code="RESOURCE_IN_USE",
            status_code=status.HTTP_409_CONFLICT,
            details={"resource": resource, "id": resource_id, "trip_ids": trip_ids}
        )


class StoreUnavailableError(AppException):
    """Raised for transient database failures. Safe to retry with backoff."""

    retryable = True

    def __init__(self, message: str = "Data store is temporarily unavailable"):
        super().__init__(
            message=message,
            error_code="STORE_UNAVAILABLE",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"retryable": True}
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": jsonable_encoder(exc.details)
        },
        headers=headers
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "VALIDATION_ERROR",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        500: "INTERNAL_ERROR"
    }

    error_code = error_code_map.get(exc.status_code, "UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error_code": "VALIDATION_ERROR",
            "message": "Validation error",
            "details": {
                "errors": jsonable_encoder(exc.errors())
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s", type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "INTERNAL_ERROR",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
