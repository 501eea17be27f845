"""
Driver Pydantic schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional, List

from evfleet.app.schemas.common import UtcDatetime


class DriverCreate(BaseModel):
    """Schema for registering a driver."""
    name: str = Field(..., min_length=1, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)
    license_id: str = Field(..., min_length=1, max_length=100, description="Unique driving licence number")
    active: bool = True

    class Config:
        extra = "forbid"


class DriverUpdate(BaseModel):
    """Schema for updating a driver (all fields optional)."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)
    license_id: Optional[str] = Field(None, min_length=1, max_length=100)
    active: Optional[bool] = None

    class Config:
        extra = "forbid"


class DriverResponse(BaseModel):
    """Schema for driver response."""
    id: int
    name: str
    phone: Optional[str]
    license_id: str
    active: bool
    created_at: UtcDatetime
    updated_at: UtcDatetime

    class Config:
        from_attributes = True


class DriverSummary(BaseModel):
    """Driver fields embedded in trip responses."""
    id: int
    name: str
    active: bool

    class Config:
        from_attributes = True


class DriverListResponse(BaseModel):
    drivers: List[DriverResponse]
    total: int
    page: int
    page_size: int
