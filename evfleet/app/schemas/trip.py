"""
Trip schemas.

Schemas for trip scheduling and visibility.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from evfleet.app.models.trip_enums import TripStatus
from evfleet.app.schemas.common import UtcDatetime
from evfleet.app.schemas.vehicle import VehicleSummary
from evfleet.app.schemas.driver import DriverSummary


class TripCreate(BaseModel):
    """
    Schema for booking a trip.

    ``start_time`` defaults to now. ``status`` may only be PLANNED.
    """
    vehicle_id: int = Field(..., gt=0)
    driver_id: int = Field(..., gt=0)
    start_time: Optional[UtcDatetime] = None
    end_time: Optional[UtcDatetime] = None
    status: Optional[TripStatus] = None
    origin: Optional[str] = Field(None, max_length=255)
    destination: Optional[str] = Field(None, max_length=255)
    estimated_distance_km: Optional[float] = Field(None, gt=0)

    class Config:
        extra = "forbid"


class TripUpdate(BaseModel):
    """Schema for updating a trip. Only fields that are sent are changed."""
    vehicle_id: Optional[int] = Field(None, gt=0)
    driver_id: Optional[int] = Field(None, gt=0)
    start_time: Optional[UtcDatetime] = None
    end_time: Optional[UtcDatetime] = None
    status: Optional[TripStatus] = None
    origin: Optional[str] = Field(None, max_length=255)
    destination: Optional[str] = Field(None, max_length=255)
    estimated_distance_km: Optional[float] = Field(None, gt=0)

    class Config:
        extra = "forbid"


class TripResponse(BaseModel):
    """Schema for trip response."""
    id: int
    vehicle_id: Optional[int]
    driver_id: Optional[int]
    vehicle: Optional[VehicleSummary] = None
    driver: Optional[DriverSummary] = None
    start_time: UtcDatetime
    end_time: Optional[UtcDatetime]
    status: TripStatus
    origin: Optional[str]
    destination: Optional[str]
    estimated_distance_km: Optional[float]
    created_at: UtcDatetime
    updated_at: UtcDatetime
    started_at: Optional[UtcDatetime]
    completed_at: Optional[UtcDatetime]

    class Config:
        from_attributes = True


class TripListResponse(BaseModel):
    """Schema for paginated trip list."""
    trips: List[TripResponse]
    total: int
    page: int
    page_size: int


class TripHistoryEntry(BaseModel):
    """One audit event of a trip."""
    id: int
    action: str
    meta_data: Optional[Dict[str, Any]]
    correlation_id: Optional[str]
    timestamp: UtcDatetime

    class Config:
        from_attributes = True
