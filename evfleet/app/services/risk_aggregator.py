"""
Risk aggregation service.

Derives dashboard signals from the fleet store: vehicles whose battery may not
cover an upcoming or running trip, status counts and today's trips.
Read-only; recomputed on every call.
"""

import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from evfleet.app.core.config import settings
from evfleet.app.core.reliability import retry_on_store_unavailable, store_errors
from evfleet.app.core.timeutils import day_bounds, ensure_utc, utcnow
from evfleet.app.models.charger import Charger
from evfleet.app.models.trip import Trip
from evfleet.app.models.trip_enums import ACTIVE_TRIP_STATUSES, TripStatus
from evfleet.app.models.vehicle import Vehicle
from evfleet.app.schemas.dashboard import AtRiskVehicle, StatusCount

logger = logging.getLogger("evfleet.risk")

REASON_LOW_BATTERY = "LOW_BATTERY"
REASON_INSUFFICIENT_RANGE = "INSUFFICIENT_RANGE"

_STATUS_COLUMNS = {
    "vehicle": Vehicle.status,
    "charger": Charger.status,
}


def estimate_range_km(capacity_kwh: float, battery_percent: float) -> float:
    """Distance the remaining charge covers at the configured consumption."""
    available_kwh = capacity_kwh * battery_percent / 100.0
    return available_kwh / settings.consumption_kwh_per_km


def remaining_distance_km(trip: Trip, now: datetime) -> float:
    """
    Distance still to drive on ``trip``.

    Uses the planned distance when known, otherwise duration times average
    speed. Only the not-yet-elapsed share counts for a running trip.
    """
    start = ensure_utc(trip.start_time)
    end = ensure_utc(trip.end_time)
    duration_hours = (end - start).total_seconds() / 3600.0
    if trip.estimated_distance_km is not None:
        distance = trip.estimated_distance_km
    else:
        distance = duration_hours * settings.average_speed_kmh

    if trip.status == TripStatus.IN_PROGRESS and now > start and duration_hours > 0:
        left_hours = max(0.0, (end - now).total_seconds() / 3600.0)
        distance *= min(1.0, left_hours / duration_hours)
    return distance


def projected_end_percent(capacity_kwh: float, battery_percent: float, distance_km: float) -> float:
    available_kwh = capacity_kwh * battery_percent / 100.0
    required_kwh = distance_km * settings.consumption_kwh_per_km * settings.consumption_safety_factor
    return max(0.0, (available_kwh - required_kwh) / capacity_kwh * 100.0)


class RiskAggregator:

    @staticmethod
    @retry_on_store_unavailable()
    async def at_risk_vehicles(
        db: AsyncSession,
        horizon_hours: Optional[float] = None,
        now: Optional[datetime] = None
    ) -> List[AtRiskVehicle]:
        """
        Vehicles that may not make it through a trip starting within the horizon.

        One row per (vehicle, trip). A row is flagged when the battery is below
        the low-battery threshold or the estimated range is shorter than the
        remaining trip distance. Sorted by battery ascending, then trip start.
        """
        if horizon_hours is None:
            horizon_hours = settings.default_risk_horizon_hours
        now = ensure_utc(now) or utcnow()
        horizon_end = now + timedelta(hours=horizon_hours)

        query = (
            select(Trip, Vehicle)
            .join(Vehicle, Trip.vehicle_id == Vehicle.id)
            .where(
                Trip.status.in_(ACTIVE_TRIP_STATUSES),
                Trip.start_time <= horizon_end,
                Trip.end_time.is_not(None),
                # a running trip stays listed after its scheduled end
                or_(Trip.status == TripStatus.IN_PROGRESS, Trip.end_time > now),
            )
        )
        async with store_errors(db):
            rows = (await db.execute(query)).all()

        at_risk = []
        for trip, vehicle in rows:
            battery = vehicle.current_battery_percent
            range_km = estimate_range_km(vehicle.battery_capacity_kwh, battery)
            distance_km = remaining_distance_km(trip, now)

            reasons = []
            if battery < settings.low_battery_threshold_percent:
                reasons.append(REASON_LOW_BATTERY)
            if range_km < distance_km:
                reasons.append(REASON_INSUFFICIENT_RANGE)
            if not reasons:
                continue

            at_risk.append(AtRiskVehicle(
                vehicle_id=vehicle.id,
                registration=vehicle.registration,
                current_battery_percent=battery,
                last_seen_at=vehicle.last_seen_at,
                trip_id=trip.id,
                trip_status=trip.status,
                trip_start_time=trip.start_time,
                trip_end_time=trip.end_time,
                trip_origin=trip.origin,
                trip_destination=trip.destination,
                estimated_range_km=round(range_km, 2),
                remaining_trip_distance_km=round(distance_km, 2),
                projected_end_battery_percent=round(
                    projected_end_percent(vehicle.battery_capacity_kwh, battery, distance_km), 2
                ),
                reasons=reasons,
            ))

        at_risk.sort(key=lambda row: (row.current_battery_percent, row.trip_start_time))
        logger.debug("%d at-risk vehicle/trip pairs within %.1fh", len(at_risk), horizon_hours)
        return at_risk

    @staticmethod
    @retry_on_store_unavailable()
    async def status_counts(db: AsyncSession, entity_type: str) -> List[StatusCount]:
        """Count of vehicles or chargers per status. Empty statuses are omitted."""
        column = _STATUS_COLUMNS.get(entity_type)
        if column is None:
            raise ValueError(f"Unsupported entity type: {entity_type}")

        query = select(column, func.count()).group_by(column).order_by(column)
        async with store_errors(db):
            rows = (await db.execute(query)).all()
        return [StatusCount(status=status.value, count=count) for status, count in rows]

    @staticmethod
    @retry_on_store_unavailable()
    async def todays_trips(
        db: AsyncSession,
        reference_date: Optional[date] = None,
        tz: Optional[str] = None
    ) -> List[Trip]:
        """Trips starting on the given calendar day (default: today) in ``tz``."""
        lower, upper = day_bounds(reference_date, tz)
        query = (
            select(Trip)
            .where(Trip.start_time >= lower, Trip.start_time < upper)
            .order_by(Trip.start_time, Trip.id)
            .execution_options(populate_existing=True)
        )
        async with store_errors(db):
            result = await db.execute(query)
            return list(result.scalars().all())
