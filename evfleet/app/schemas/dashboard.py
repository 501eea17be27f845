"""
Dashboard schemas.
"""

from pydantic import BaseModel
from typing import List, Optional

from evfleet.app.models.trip_enums import TripStatus
from evfleet.app.schemas.common import UtcDatetime


class StatusCount(BaseModel):
    """Number of entities currently in one status."""
    status: str
    count: int


class AtRiskVehicle(BaseModel):
    """A vehicle whose battery may not cover one of its upcoming or running trips."""
    vehicle_id: int
    registration: str
    current_battery_percent: float
    last_seen_at: Optional[UtcDatetime]
    trip_id: int
    trip_status: TripStatus
    trip_start_time: UtcDatetime
    trip_end_time: UtcDatetime
    trip_origin: Optional[str]
    trip_destination: Optional[str]
    estimated_range_km: float
    remaining_trip_distance_km: float
    projected_end_battery_percent: float
    reasons: List[str]
