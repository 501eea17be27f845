"""
EV Pydantic schemas.

Defines request and response models for vehicle management.
"""

from pydantic import BaseModel, Field
from typing import Optional, List

from evfleet.app.models.enums import VehicleStatus
from evfleet.app.schemas.common import UtcDatetime


class VehicleCreate(BaseModel):
    """Schema for registering a new EV."""
    registration: str = Field(..., min_length=1, max_length=50, description="Unique registration plate")
    model: str = Field(..., min_length=1, max_length=100, description="Make/model, e.g. Nissan Leaf")

    battery_capacity_kwh: float = Field(..., gt=0, description="Usable battery capacity in kWh")
    current_battery_percent: float = Field(100.0, ge=0, le=100, description="State of charge in percent")
    status: VehicleStatus = VehicleStatus.IDLE

    last_known_latitude: Optional[float] = Field(None, ge=-90, le=90)
    last_known_longitude: Optional[float] = Field(None, ge=-180, le=180)
    last_seen_at: Optional[UtcDatetime] = None

    class Config:
        extra = "forbid"


class VehicleUpdate(BaseModel):
    """
    Schema for updating an EV.

    Registration is immutable and therefore not accepted here.
    """
    model: Optional[str] = Field(None, min_length=1, max_length=100)
    battery_capacity_kwh: Optional[float] = Field(None, gt=0)
    current_battery_percent: Optional[float] = Field(None, ge=0, le=100)
    status: Optional[VehicleStatus] = None
    last_known_latitude: Optional[float] = Field(None, ge=-90, le=90)
    last_known_longitude: Optional[float] = Field(None, ge=-180, le=180)
    last_seen_at: Optional[UtcDatetime] = None

    class Config:
        extra = "forbid"


class VehicleResponse(BaseModel):
    """Schema for EV response."""
    id: int
    registration: str
    model: str
    battery_capacity_kwh: float
    current_battery_percent: float
    status: VehicleStatus
    last_known_latitude: Optional[float]
    last_known_longitude: Optional[float]
    last_seen_at: Optional[UtcDatetime]
    created_at: UtcDatetime
    updated_at: UtcDatetime

    class Config:
        from_attributes = True


class VehicleSummary(BaseModel):
    """Vehicle fields embedded in trip responses."""
    id: int
    registration: str
    model: str
    current_battery_percent: float
    status: VehicleStatus

    class Config:
        from_attributes = True


class VehicleListResponse(BaseModel):
    """Schema for paginated EV list."""
    vehicles: List[VehicleResponse]
    total: int
    page: int
    page_size: int
