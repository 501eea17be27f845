"""
Charger Pydantic schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional, List

from evfleet.app.models.enums import ChargerStatus
from evfleet.app.schemas.common import UtcDatetime


class ChargerCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50, description="Unique charger code")
    location: Optional[str] = Field(None, max_length=255)
    max_power_kw: float = Field(..., gt=0)
    status: ChargerStatus = ChargerStatus.AVAILABLE

    class Config:
        extra = "forbid"


class ChargerUpdate(BaseModel):
    location: Optional[str] = Field(None, max_length=255)
    max_power_kw: Optional[float] = Field(None, gt=0)
    status: Optional[ChargerStatus] = None

    class Config:
        extra = "forbid"


class ChargerResponse(BaseModel):
    id: int
    code: str
    location: Optional[str]
    max_power_kw: float
    status: ChargerStatus
    created_at: UtcDatetime
    updated_at: UtcDatetime

    class Config:
        from_attributes = True


class ChargerListResponse(BaseModel):
    chargers: List[ChargerResponse]
    total: int
    page: int
    page_size: int
