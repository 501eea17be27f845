"""
Fleet entity store.

CRUD primitives for vehicles, drivers and chargers with uniqueness and
referential checks. Every write records an audit event and commits.

Deleting a vehicle or driver must not race with trip scheduling; the trip
scheduler wraps ``delete_vehicle`` / ``delete_driver`` in the resource lock.
"""

import logging
from typing import List, Optional, Tuple, Type

from sqlalchemy import select, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from evfleet.app.core.exceptions import (
    DuplicateResourceError,
    ResourceInUseError,
    ResourceNotFoundError,
)
from evfleet.app.core.reliability import store_errors
from evfleet.app.models.charger import Charger
from evfleet.app.models.driver import Driver
from evfleet.app.models.enums import ChargerStatus, VehicleStatus
from evfleet.app.models.trip import Trip
from evfleet.app.models.trip_enums import ACTIVE_TRIP_STATUSES
from evfleet.app.models.vehicle import Vehicle
from evfleet.app.schemas.charger import ChargerCreate, ChargerUpdate
from evfleet.app.schemas.driver import DriverCreate, DriverUpdate
from evfleet.app.schemas.vehicle import VehicleCreate, VehicleUpdate
from evfleet.app.services.audit import AuditAction, record_event

logger = logging.getLogger("evfleet.fleet_store")

VEHICLE_NULLABLE_FIELDS = ("last_known_latitude", "last_known_longitude", "last_seen_at")


async def _get_or_404(db: AsyncSession, model: Type, resource: str, entity_id: int, for_update: bool = False):
    query = select(model).where(model.id == entity_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    entity = result.scalar_one_or_none()
    if entity is None:
        raise ResourceNotFoundError(resource, entity_id)
    return entity


async def _paginate(db: AsyncSession, query, count_query, page: int, page_size: int) -> Tuple[list, int]:
    total = (await db.execute(count_query)).scalar() or 0
    offset = (page - 1) * page_size
    result = await db.execute(query.offset(offset).limit(page_size))
    return list(result.scalars().all()), total


async def _guard_unique(db: AsyncSession, pending, resource: str, field: str, value) -> None:
    """Await a flush or commit, turning a unique-constraint race into DuplicateResourceError."""
    try:
        await pending
    except IntegrityError:
        await db.rollback()
        raise DuplicateResourceError(resource, field, value)


def _changes(data, nullable=()) -> dict:
    """Fields the client sent; explicit nulls only for nullable columns."""
    return {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field in nullable
    }


async def _active_trip_ids(db: AsyncSession, column, entity_id: int) -> List[int]:
    result = await db.execute(
        select(Trip.id).where(column == entity_id, Trip.status.in_(ACTIVE_TRIP_STATUSES)).order_by(Trip.id)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Vehicles
# ---------------------------------------------------------------------------

async def create_vehicle(db: AsyncSession, data: VehicleCreate) -> Vehicle:
    async with store_errors(db):
        existing = await db.execute(select(Vehicle.id).where(Vehicle.registration == data.registration))
        if existing.scalar_one_or_none() is not None:
            raise DuplicateResourceError("Vehicle", "registration", data.registration)

        vehicle = Vehicle(**data.model_dump())
        db.add(vehicle)
        await _guard_unique(db, db.flush(), "Vehicle", "registration", data.registration)
        record_event(
            db, AuditAction.VEHICLE_CREATED, "vehicle", vehicle.id,
            metadata={"registration": vehicle.registration}
        )
        await db.commit()
        await db.refresh(vehicle)
    logger.info("Registered vehicle %s (%s)", vehicle.id, vehicle.registration)
    return vehicle


async def get_vehicle(db: AsyncSession, vehicle_id: int, for_update: bool = False) -> Vehicle:
    async with store_errors(db):
        return await _get_or_404(db, Vehicle, "Vehicle", vehicle_id, for_update=for_update)


async def list_vehicles(
    db: AsyncSession,
    status: Optional[VehicleStatus] = None,
    page: int = 1,
    page_size: int = 50
) -> Tuple[List[Vehicle], int]:
    query = select(Vehicle).order_by(Vehicle.id)
    count_query = select(func.count(Vehicle.id))
    if status is not None:
        query = query.where(Vehicle.status == status)
        count_query = count_query.where(Vehicle.status == status)
    async with store_errors(db):
        return await _paginate(db, query, count_query, page, page_size)


async def update_vehicle(db: AsyncSession, vehicle_id: int, data: VehicleUpdate) -> Vehicle:
    """Apply a partial update. Registration is immutable and not part of ``VehicleUpdate``."""
    async with store_errors(db):
        vehicle = await _get_or_404(db, Vehicle, "Vehicle", vehicle_id)
        update_data = _changes(data, nullable=VEHICLE_NULLABLE_FIELDS)
        for field, value in update_data.items():
            setattr(vehicle, field, value)
        record_event(
            db, AuditAction.VEHICLE_UPDATED, "vehicle", vehicle.id,
            metadata={"updated_fields": sorted(update_data.keys())}
        )
        await db.commit()
        await db.refresh(vehicle)
    return vehicle


async def delete_vehicle(db: AsyncSession, vehicle_id: int) -> None:
    """
    Delete a vehicle.

    Fails with ResourceInUseError while PLANNED/IN_PROGRESS trips reference
    it. Historical trips are kept and detached (``vehicle_id`` set to NULL).
    """
    async with store_errors(db):
        vehicle = await _get_or_404(db, Vehicle, "Vehicle", vehicle_id, for_update=True)
        active = await _active_trip_ids(db, Trip.vehicle_id, vehicle_id)
        if active:
            await db.rollback()
            raise ResourceInUseError("Vehicle", vehicle_id, active)

        detached = await db.execute(
            update(Trip).where(Trip.vehicle_id == vehicle_id).values(vehicle_id=None)
        )
        record_event(
            db, AuditAction.VEHICLE_DELETED, "vehicle", vehicle_id,
            metadata={"registration": vehicle.registration, "detached_trips": detached.rowcount}
        )
        await db.delete(vehicle)
        await db.commit()
    logger.info("Deleted vehicle %s", vehicle_id)


# ---------------------------------------------------------------------------
# Drivers
# ---------------------------------------------------------------------------

async def create_driver(db: AsyncSession, data: DriverCreate) -> Driver:
    async with store_errors(db):
        existing = await db.execute(select(Driver.id).where(Driver.license_id == data.license_id))
        if existing.scalar_one_or_none() is not None:
            raise DuplicateResourceError("Driver", "license_id", data.license_id)

        driver = Driver(**data.model_dump())
        db.add(driver)
        await _guard_unique(db, db.flush(), "Driver", "license_id", data.license_id)
        record_event(db, AuditAction.DRIVER_CREATED, "driver", driver.id, metadata={"name": driver.name})
        await db.commit()
        await db.refresh(driver)
    return driver


async def get_driver(db: AsyncSession, driver_id: int, for_update: bool = False) -> Driver:
    async with store_errors(db):
        return await _get_or_404(db, Driver, "Driver", driver_id, for_update=for_update)


async def list_drivers(
    db: AsyncSession,
    active: Optional[bool] = None,
    page: int = 1,
    page_size: int = 50
) -> Tuple[List[Driver], int]:
    query = select(Driver).order_by(Driver.id)
    count_query = select(func.count(Driver.id))
    if active is not None:
        query = query.where(Driver.active == active)
        count_query = count_query.where(Driver.active == active)
    async with store_errors(db):
        return await _paginate(db, query, count_query, page, page_size)


async def update_driver(db: AsyncSession, driver_id: int, data: DriverUpdate) -> Driver:
    """Partial update. Deactivating a driver leaves existing trips alone."""
    async with store_errors(db):
        driver = await _get_or_404(db, Driver, "Driver", driver_id)
        update_data = _changes(data, nullable=("phone",))

        new_license = update_data.get("license_id")
        if new_license is not None and new_license != driver.license_id:
            taken = await db.execute(
                select(Driver.id).where(Driver.license_id == new_license, Driver.id != driver_id)
            )
            if taken.scalar_one_or_none() is not None:
                raise DuplicateResourceError("Driver", "license_id", new_license)

        for field, value in update_data.items():
            setattr(driver, field, value)
        record_event(
            db, AuditAction.DRIVER_UPDATED, "driver", driver.id,
            metadata={"updated_fields": sorted(update_data.keys())}
        )
        await _guard_unique(db, db.commit(), "Driver", "license_id", driver.license_id)
        await db.refresh(driver)
    return driver


async def delete_driver(db: AsyncSession, driver_id: int) -> None:
    """Delete a driver; same reference rules as ``delete_vehicle``."""
    async with store_errors(db):
        driver = await _get_or_404(db, Driver, "Driver", driver_id, for_update=True)
        active = await _active_trip_ids(db, Trip.driver_id, driver_id)
        if active:
            await db.rollback()
            raise ResourceInUseError("Driver", driver_id, active)

        detached = await db.execute(
            update(Trip).where(Trip.driver_id == driver_id).values(driver_id=None)
        )
        record_event(
            db, AuditAction.DRIVER_DELETED, "driver", driver_id,
            metadata={"name": driver.name, "detached_trips": detached.rowcount}
        )
        await db.delete(driver)
        await db.commit()


# ---------------------------------------------------------------------------
# Chargers
# ---------------------------------------------------------------------------

async def create_charger(db: AsyncSession, data: ChargerCreate) -> Charger:
    async with store_errors(db):
        existing = await db.execute(select(Charger.id).where(Charger.code == data.code))
        if existing.scalar_one_or_none() is not None:
            raise DuplicateResourceError("Charger", "code", data.code)

        charger = Charger(**data.model_dump())
        db.add(charger)
        await _guard_unique(db, db.flush(), "Charger", "code", data.code)
        record_event(db, AuditAction.CHARGER_CREATED, "charger", charger.id, metadata={"code": charger.code})
        await db.commit()
        await db.refresh(charger)
    return charger


async def get_charger(db: AsyncSession, charger_id: int) -> Charger:
    async with store_errors(db):
        return await _get_or_404(db, Charger, "Charger", charger_id)


async def list_chargers(
    db: AsyncSession,
    status: Optional[ChargerStatus] = None,
    page: int = 1,
    page_size: int = 50
) -> Tuple[List[Charger], int]:
    query = select(Charger).order_by(Charger.id)
    count_query = select(func.count(Charger.id))
    if status is not None:
        query = query.where(Charger.status == status)
        count_query = count_query.where(Charger.status == status)
    async with store_errors(db):
        return await _paginate(db, query, count_query, page, page_size)


async def update_charger(db: AsyncSession, charger_id: int, data: ChargerUpdate) -> Charger:
    async with store_errors(db):
        charger = await _get_or_404(db, Charger, "Charger", charger_id)
        update_data = _changes(data, nullable=("location",))
        for field, value in update_data.items():
            setattr(charger, field, value)
        record_event(
            db, AuditAction.CHARGER_UPDATED, "charger", charger.id,
            metadata={"updated_fields": sorted(update_data.keys())}
        )
        await db.commit()
        await db.refresh(charger)
    return charger


async def delete_charger(db: AsyncSession, charger_id: int) -> None:
    async with store_errors(db):
        charger = await _get_or_404(db, Charger, "Charger", charger_id)
        record_event(db, AuditAction.CHARGER_DELETED, "charger", charger_id, metadata={"code": charger.code})
        await db.delete(charger)
        await db.commit()
