"""
Trip scheduler.

Creates, reschedules, transitions and deletes trips so that no vehicle or
driver is ever booked on two overlapping PLANNED/IN_PROGRESS trips.

Every write runs as one unit:

1. Acquire the in-process locks of every vehicle/driver key involved, in
   sorted key order.
2. Inside a store transaction, lock the same rows ``FOR UPDATE`` in the same
   order (serializes writers in other processes sharing the database).
3. Validate interval, resources, lifecycle and conflicts against the index.
4. Write the trip and its audit event, commit.
5. Only then mutate the interval index, still under the locks.

A failure at any step rolls the transaction back and leaves the index as it
was. Conflicts are never retried.
"""

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from evfleet.app.core.exceptions import (
    DriverConflictError,
    DriverInactiveError,
    InvalidIntervalError,
    InvalidTransitionError,
    ResourceNotFoundError,
    VehicleConflictError,
)
from evfleet.app.core.reliability import store_errors
from evfleet.app.core.timeutils import day_bounds, ensure_utc, utcnow
from evfleet.app.models.driver import Driver
from evfleet.app.models.enums import ResourceKind, VehicleStatus
from evfleet.app.models.trip import Trip
from evfleet.app.models.trip_enums import ACTIVE_TRIP_STATUSES, TripStatus
from evfleet.app.models.vehicle import Vehicle
from evfleet.app.services import fleet_store
from evfleet.app.services.audit import AuditAction, record_event
from evfleet.app.services.interval_index import Interval, IntervalIndex, ResourceKey
from evfleet.app.services.resource_locks import ResourceLockManager
from evfleet.app.services.trip_lifecycle import releases_interval, validate_transition

logger = logging.getLogger("evfleet.scheduler")

_TRANSITION_ACTIONS = {
    TripStatus.IN_PROGRESS: AuditAction.TRIP_STARTED,
    TripStatus.COMPLETED: AuditAction.TRIP_COMPLETED,
    TripStatus.CANCELLED: AuditAction.TRIP_CANCELLED,
}


class _ResourcesMoved(Exception):
    """The trip was reassigned between reading it and locking its resources."""


def resource_keys(vehicle_id: Optional[int], driver_id: Optional[int]) -> List[ResourceKey]:
    keys = []
    if vehicle_id is not None:
        keys.append(ResourceKey.vehicle(vehicle_id))
    if driver_id is not None:
        keys.append(ResourceKey.driver(driver_id))
    return keys


def validate_interval(start: Optional[datetime], end: Optional[datetime]) -> Interval:
    """Half-open ``[start, end)`` with ``end`` strictly after ``start``."""
    if end is None:
        raise InvalidIntervalError("End time is required", start=start, end=None)
    if start is None or end <= start:
        raise InvalidIntervalError(start=start, end=end)
    return Interval(start, end)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class TripScheduler:
    """
    Owns the interval index and the per-resource lock table.

    One instance per process. The index is rebuilt from the store on startup
    via ``rebuild_index`` and afterwards only follows committed writes.
    """

    def __init__(self, index: Optional[IntervalIndex] = None, locks: Optional[ResourceLockManager] = None):
        self.index = index if index is not None else IntervalIndex()
        self.locks = locks if locks is not None else ResourceLockManager()

    # ------------------------------------------------------------------
    # Index maintenance
    # ------------------------------------------------------------------

    async def rebuild_index(self, db: AsyncSession) -> int:
        """Reload the index from PLANNED/IN_PROGRESS trips in the store."""
        async with store_errors(db):
            result = await db.execute(
                select(Trip.id, Trip.vehicle_id, Trip.driver_id, Trip.start_time, Trip.end_time).where(
                    Trip.status.in_(ACTIVE_TRIP_STATUSES),
                    Trip.end_time.is_not(None),
                ).order_by(Trip.start_time, Trip.id)
            )
            rows = result.all()

        bookings = [
            (
                row.id,
                resource_keys(row.vehicle_id, row.driver_id),
                Interval(ensure_utc(row.start_time), ensure_utc(row.end_time)),
            )
            for row in rows
        ]
        loaded = self.index.rebuild(bookings)
        logger.info("Interval index rebuilt with %d active trips", loaded)
        return loaded

    def _index_remove(self, trip_id: int, keys: Iterable[ResourceKey]) -> None:
        for key in keys:
            self.index.remove(key, trip_id)

    def _index_insert(self, trip_id: int, keys: Iterable[ResourceKey], interval: Interval) -> None:
        for key in keys:
            self.index.insert(key, interval, trip_id)

    # ------------------------------------------------------------------
    # Helpers running inside the critical section
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _unit_of_work(self, db: AsyncSession):
        """Roll the session back on any failure inside the block."""
        try:
            async with store_errors(db):
                yield
        except Exception:
            await db.rollback()
            raise

    @staticmethod
    async def _lock_rows(db: AsyncSession, keys: Sequence[ResourceKey]) -> Dict[ResourceKey, object]:
        """``SELECT ... FOR UPDATE`` each resource row in the given (sorted) order."""
        rows = {}
        for key in keys:
            model = Vehicle if key.kind == ResourceKind.VEHICLE else Driver
            result = await db.execute(
                select(model)
                .where(model.id == key.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            rows[key] = result.scalar_one_or_none()
        return rows

    @staticmethod
    async def _lock_trip(db: AsyncSession, trip_id: int) -> Trip:
        result = await db.execute(
            select(Trip)
            .where(Trip.id == trip_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        trip = result.scalar_one_or_none()
        if trip is None:
            raise ResourceNotFoundError("Trip", trip_id)
        return trip

    @staticmethod
    async def _peek_resources(db: AsyncSession, trip_id: int) -> Tuple[Optional[int], Optional[int]]:
        async with store_errors(db):
            result = await db.execute(select(Trip.vehicle_id, Trip.driver_id).where(Trip.id == trip_id))
            row = result.one_or_none()
        if row is None:
            raise ResourceNotFoundError("Trip", trip_id)
        return row.vehicle_id, row.driver_id

    @staticmethod
    def _require_vehicle(rows: Dict[ResourceKey, object], vehicle_id: int) -> Vehicle:
        vehicle = rows.get(ResourceKey.vehicle(vehicle_id))
        if vehicle is None:
            raise ResourceNotFoundError("Vehicle", vehicle_id)
        return vehicle

    @staticmethod
    def _require_active_driver(rows: Dict[ResourceKey, object], driver_id: int) -> Driver:
        driver = rows.get(ResourceKey.driver(driver_id))
        if driver is None:
            raise ResourceNotFoundError("Driver", driver_id)
        if not driver.active:
            raise DriverInactiveError(driver_id)
        return driver

    def _check_conflicts(
        self,
        interval: Interval,
        vehicle_id: int,
        driver_id: int,
        trip_id: Optional[int] = None
    ) -> None:
        clash = self.index.find_overlap(ResourceKey.vehicle(vehicle_id), interval, excluding_trip_id=trip_id)
        if clash is not None:
            logger.info("Vehicle %s conflict: trip %s already holds %s", vehicle_id, clash, interval)
            raise VehicleConflictError(vehicle_id, clash)
        clash = self.index.find_overlap(ResourceKey.driver(driver_id), interval, excluding_trip_id=trip_id)
        if clash is not None:
            logger.info("Driver %s conflict: trip %s already holds %s", driver_id, clash, interval)
            raise DriverConflictError(driver_id, clash)

    @staticmethod
    async def _release_vehicle(db: AsyncSession, vehicle: Optional[Vehicle], trip_id: int) -> None:
        """Back to IDLE unless another IN_PROGRESS trip still claims the vehicle."""
        if vehicle is None:
            return
        result = await db.execute(
            select(func.count(Trip.id)).where(
                Trip.vehicle_id == vehicle.id,
                Trip.status == TripStatus.IN_PROGRESS,
                Trip.id != trip_id,
            )
        )
        if (result.scalar() or 0) == 0:
            vehicle.status = VehicleStatus.IDLE

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_trip(
        self,
        db: AsyncSession,
        vehicle_id: int,
        driver_id: int,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        origin: Optional[str] = None,
        destination: Optional[str] = None,
        estimated_distance_km: Optional[float] = None,
        status: Optional[TripStatus] = None,
    ) -> Trip:
        """
        Book a new PLANNED trip.

        Raises:
            InvalidIntervalError: end missing or not after start
            InvalidTransitionError: a status other than PLANNED was requested
            ResourceNotFoundError: unknown vehicle or driver
            DriverInactiveError: driver is deactivated
            VehicleConflictError / DriverConflictError: slot already taken
        """
        start = ensure_utc(start_time) or utcnow()
        interval = validate_interval(start, ensure_utc(end_time))
        if status is not None and status != TripStatus.PLANNED:
            raise InvalidTransitionError(
                None, "NEW", status.value, message="Trips are always created as PLANNED"
            )

        keys = resource_keys(vehicle_id, driver_id)
        async with self.locks.hold(keys) as ordered_keys:
            async with self._unit_of_work(db):
                rows = await self._lock_rows(db, ordered_keys)
                self._require_vehicle(rows, vehicle_id)
                self._require_active_driver(rows, driver_id)
                self._check_conflicts(interval, vehicle_id, driver_id)

                trip = Trip(
                    vehicle_id=vehicle_id,
                    driver_id=driver_id,
                    start_time=interval.start,
                    end_time=interval.end,
                    status=TripStatus.PLANNED,
                    origin=origin,
                    destination=destination,
                    estimated_distance_km=estimated_distance_km,
                )
                db.add(trip)
                await db.flush()
                record_event(
                    db, AuditAction.TRIP_CREATED, "trip", trip.id,
                    metadata={
                        "vehicle_id": vehicle_id,
                        "driver_id": driver_id,
                        "start_time": _iso(interval.start),
                        "end_time": _iso(interval.end),
                    }
                )
                await db.commit()
            trip_id = trip.id
            self._index_insert(trip_id, keys, interval)

        logger.info("Trip %s booked: vehicle %s, driver %s, %s", trip_id, vehicle_id, driver_id, interval)
        return await self.get_trip(db, trip_id)

    async def update_trip(
        self,
        db: AsyncSession,
        trip_id: int,
        vehicle_id: Optional[int] = None,
        driver_id: Optional[int] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        status: Optional[TripStatus] = None,
        origin: Optional[str] = None,
        destination: Optional[str] = None,
        estimated_distance_km: Optional[float] = None,
    ) -> Trip:
        """
        Reschedule, reassign and/or transition a trip. ``None`` means unchanged.

        The trip's own interval is ignored in the conflict check. Terminal
        trips can still get new origin/destination text but can no longer be
        rescheduled.
        """
        while True:
            current_vehicle, current_driver = await self._peek_resources(db, trip_id)
            target_vehicle = vehicle_id if vehicle_id is not None else current_vehicle
            target_driver = driver_id if driver_id is not None else current_driver
            keys = resource_keys(current_vehicle, current_driver) + resource_keys(target_vehicle, target_driver)
            try:
                return await self._update_locked(
                    db, trip_id, keys, (current_vehicle, current_driver),
                    vehicle_id=vehicle_id,
                    driver_id=driver_id,
                    start_time=ensure_utc(start_time),
                    end_time=ensure_utc(end_time),
                    status=status,
                    origin=origin,
                    destination=destination,
                    estimated_distance_km=estimated_distance_km,
                )
            except _ResourcesMoved:
                logger.debug("Trip %s was reassigned concurrently; retrying lock acquisition", trip_id)

    async def _update_locked(
        self,
        db: AsyncSession,
        trip_id: int,
        keys: List[ResourceKey],
        expected_resources: Tuple[Optional[int], Optional[int]],
        **changes,
    ) -> Trip:
        async with self.locks.hold(keys) as ordered_keys:
            async with self._unit_of_work(db):
                rows = await self._lock_rows(db, ordered_keys)
                trip = await self._lock_trip(db, trip_id)
                if (trip.vehicle_id, trip.driver_id) != expected_resources:
                    raise _ResourcesMoved()

                old_status = trip.status
                old_keys = resource_keys(trip.vehicle_id, trip.driver_id)
                old_vehicle_id = trip.vehicle_id
                old_start = ensure_utc(trip.start_time)
                old_end = ensure_utc(trip.end_time)

                target_status = changes["status"] or old_status
                is_transition = validate_transition(trip.id, old_status, target_status)

                new_vehicle_id = changes["vehicle_id"] if changes["vehicle_id"] is not None else trip.vehicle_id
                new_driver_id = changes["driver_id"] if changes["driver_id"] is not None else trip.driver_id
                new_start = changes["start_time"] or old_start
                new_end = changes["end_time"] or old_end

                vehicle_changed = new_vehicle_id != trip.vehicle_id
                driver_changed = new_driver_id != trip.driver_id
                rescheduled = vehicle_changed or driver_changed or new_start != old_start or new_end != old_end

                if rescheduled and old_status.is_terminal:
                    raise InvalidTransitionError(
                        trip.id, old_status.value, old_status.value,
                        message=f"Trip is {old_status.value} and can no longer be rescheduled"
                    )

                interval = None
                if rescheduled or not target_status.is_terminal:
                    interval = validate_interval(new_start, new_end)

                if vehicle_changed:
                    self._require_vehicle(rows, new_vehicle_id)
                if driver_changed:
                    self._require_active_driver(rows, new_driver_id)
                if not target_status.is_terminal:
                    self._check_conflicts(interval, new_vehicle_id, new_driver_id, trip_id=trip.id)

                # Apply
                trip.vehicle_id = new_vehicle_id
                trip.driver_id = new_driver_id
                trip.start_time = new_start
                trip.end_time = new_end
                for field in ("origin", "destination", "estimated_distance_km"):
                    if changes[field] is not None:
                        setattr(trip, field, changes[field])

                now = utcnow()
                new_vehicle = rows.get(ResourceKey.vehicle(new_vehicle_id)) if new_vehicle_id is not None else None
                old_vehicle = rows.get(ResourceKey.vehicle(old_vehicle_id)) if old_vehicle_id is not None else None

                if old_status == TripStatus.IN_PROGRESS and (target_status.is_terminal or vehicle_changed):
                    await self._release_vehicle(db, old_vehicle, trip.id)
                if target_status == TripStatus.IN_PROGRESS and new_vehicle is not None:
                    if is_transition or vehicle_changed:
                        new_vehicle.status = VehicleStatus.DRIVING
                if is_transition:
                    trip.status = target_status
                    if target_status == TripStatus.IN_PROGRESS:
                        trip.started_at = now
                    elif target_status == TripStatus.COMPLETED:
                        trip.completed_at = now

                action = _TRANSITION_ACTIONS[target_status] if is_transition else AuditAction.TRIP_UPDATED
                record_event(
                    db, action, "trip", trip.id,
                    metadata={
                        "from_status": old_status.value,
                        "to_status": target_status.value,
                        "vehicle_id": new_vehicle_id,
                        "driver_id": new_driver_id,
                        "start_time": _iso(new_start),
                        "end_time": _iso(new_end),
                        "rescheduled": rescheduled,
                    }
                )
                await db.commit()

            # Index follows the committed state
            if not old_status.is_terminal:
                self._index_remove(trip_id, old_keys)
            if not releases_interval(target_status):
                self._index_insert(trip_id, resource_keys(new_vehicle_id, new_driver_id), interval)

        if is_transition:
            logger.info("Trip %s moved %s -> %s", trip_id, old_status.value, target_status.value)
        return await self.get_trip(db, trip_id)

    async def start_trip(self, db: AsyncSession, trip_id: int) -> Trip:
        return await self.update_trip(db, trip_id, status=TripStatus.IN_PROGRESS)

    async def complete_trip(self, db: AsyncSession, trip_id: int) -> Trip:
        return await self.update_trip(db, trip_id, status=TripStatus.COMPLETED)

    async def cancel_trip(self, db: AsyncSession, trip_id: int) -> Trip:
        return await self.update_trip(db, trip_id, status=TripStatus.CANCELLED)

    async def delete_trip(self, db: AsyncSession, trip_id: int) -> None:
        """
        Remove a trip and its bookings permanently.

        Unlike cancelling, nothing of the trip remains except its audit trail.
        """
        while True:
            current = await self._peek_resources(db, trip_id)
            keys = resource_keys(*current)
            try:
                async with self.locks.hold(keys) as ordered_keys:
                    async with self._unit_of_work(db):
                        rows = await self._lock_rows(db, ordered_keys)
                        trip = await self._lock_trip(db, trip_id)
                        if (trip.vehicle_id, trip.driver_id) != current:
                            raise _ResourcesMoved()
                        status = trip.status
                        if status == TripStatus.IN_PROGRESS and trip.vehicle_id is not None:
                            await self._release_vehicle(db, rows.get(ResourceKey.vehicle(trip.vehicle_id)), trip.id)
                        record_event(
                            db, AuditAction.TRIP_DELETED, "trip", trip.id,
                            metadata={"status": status.value, "vehicle_id": trip.vehicle_id, "driver_id": trip.driver_id}
                        )
                        await db.delete(trip)
                        await db.commit()
                    self._index_remove(trip_id, keys)
                logger.info("Trip %s deleted", trip_id)
                return
            except _ResourcesMoved:
                logger.debug("Trip %s was reassigned concurrently; retrying delete", trip_id)

    async def delete_vehicle(self, db: AsyncSession, vehicle_id: int) -> None:
        """Delete a vehicle while holding its scheduling lock."""
        async with self.locks.hold([ResourceKey.vehicle(vehicle_id)]):
            await fleet_store.delete_vehicle(db, vehicle_id)

    async def delete_driver(self, db: AsyncSession, driver_id: int) -> None:
        """Delete a driver while holding its scheduling lock."""
        async with self.locks.hold([ResourceKey.driver(driver_id)]):
            await fleet_store.delete_driver(db, driver_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_trip(self, db: AsyncSession, trip_id: int) -> Trip:
        async with store_errors(db):
            result = await db.execute(
                select(Trip).where(Trip.id == trip_id).execution_options(populate_existing=True)
            )
            trip = result.scalar_one_or_none()
        if trip is None:
            raise ResourceNotFoundError("Trip", trip_id)
        return trip

    async def list_trips(
        self,
        db: AsyncSession,
        day: Optional[date] = None,
        tz: Optional[str] = None,
        status: Optional[TripStatus] = None,
        vehicle_id: Optional[int] = None,
        driver_id: Optional[int] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[Trip], int]:
        """Filtered, paginated trips ordered by start time. Takes no locks."""
        conditions = []
        if day is not None:
            lower, upper = day_bounds(day, tz)
            conditions += [Trip.start_time >= lower, Trip.start_time < upper]
        if status is not None:
            conditions.append(Trip.status == status)
        if vehicle_id is not None:
            conditions.append(Trip.vehicle_id == vehicle_id)
        if driver_id is not None:
            conditions.append(Trip.driver_id == driver_id)

        query = select(Trip).where(*conditions).order_by(Trip.start_time, Trip.id)
        count_query = select(func.count(Trip.id)).where(*conditions)
        async with store_errors(db):
            total = (await db.execute(count_query)).scalar() or 0
            result = await db.execute(
                query.offset((page - 1) * page_size).limit(page_size).execution_options(populate_existing=True)
            )
            trips = list(result.scalars().all())
        return trips, total


# Process-wide scheduler used by the API
trip_scheduler = TripScheduler()
