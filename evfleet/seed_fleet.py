"""
Database seeding script for a demo fleet.

Creates a handful of vehicles, drivers and chargers plus today's trips for
local development. Trips are booked through the trip scheduler so they obey
the same conflict rules as API bookings.
Run this script after the database is set up.
"""

import asyncio
import sys
from datetime import timedelta
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from evfleet.app.core.timeutils import utcnow
from evfleet.app.db.session import AsyncSessionLocal, Base, engine
from evfleet.app.models.enums import ChargerStatus, VehicleStatus
from evfleet.app.models.vehicle import Vehicle
from evfleet.app.schemas.charger import ChargerCreate
from evfleet.app.schemas.driver import DriverCreate
from evfleet.app.schemas.vehicle import VehicleCreate
from evfleet.app.services import fleet_store
from evfleet.app.services.trip_scheduler import TripScheduler

VEHICLES = [
    VehicleCreate(registration="EV-1001", model="Nissan Leaf", battery_capacity_kwh=40, current_battery_percent=86),
    VehicleCreate(registration="EV-1002", model="Renault Zoe", battery_capacity_kwh=52, current_battery_percent=15),
    VehicleCreate(registration="EV-1003", model="VW ID.Buzz Cargo", battery_capacity_kwh=77, current_battery_percent=54),
    VehicleCreate(
        registration="EV-1004", model="Tesla Model 3", battery_capacity_kwh=57,
        current_battery_percent=100, status=VehicleStatus.MAINTENANCE
    ),
]

DRIVERS = [
    DriverCreate(name="Alex Moreau", phone="+33 6 12 34 56 78", license_id="DL-FR-0001"),
    DriverCreate(name="Sam Okafor", phone="+44 7700 900123", license_id="DL-UK-0002"),
    DriverCreate(name="Robin Jansen", license_id="DL-NL-0003"),
]

CHARGERS = [
    ChargerCreate(code="CHG-A1", location="Depot North bay 1", max_power_kw=50),
    ChargerCreate(code="CHG-A2", location="Depot North bay 2", max_power_kw=50, status=ChargerStatus.IN_USE),
    ChargerCreate(code="CHG-B1", location="Depot South", max_power_kw=150, status=ChargerStatus.FAULTED),
]


async def seed_fleet():
    """
    Seed a demo fleet.

    Creates:
    - 4 vehicles (one low on charge, one in maintenance)
    - 3 drivers
    - 3 chargers
    - 3 trips over the next hours
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    scheduler = TripScheduler()
    async with AsyncSessionLocal() as db:
        print("🌱 Starting fleet seeding...")

        result = await db.execute(select(Vehicle.id).limit(1))
        if result.scalar_one_or_none() is not None:
            print("ℹ️  Vehicles already exist, skipping seeding")
            return

        await scheduler.rebuild_index(db)

        vehicles = [await fleet_store.create_vehicle(db, data) for data in VEHICLES]
        print(f"✅ Created {len(vehicles)} vehicles")
        drivers = [await fleet_store.create_driver(db, data) for data in DRIVERS]
        print(f"✅ Created {len(drivers)} drivers")
        chargers = [await fleet_store.create_charger(db, data) for data in CHARGERS]
        print(f"✅ Created {len(chargers)} chargers")

        now = utcnow().replace(minute=0, second=0, microsecond=0)
        bookings = [
            (vehicles[0], drivers[0], now + timedelta(hours=1), now + timedelta(hours=3), "Depot North", "Airport", 60.0),
            (vehicles[1], drivers[1], now + timedelta(hours=2), now + timedelta(hours=4), "Depot South", "Harbour", None),
            (vehicles[2], drivers[2], now + timedelta(hours=5), now + timedelta(hours=9), "Depot North", "Outlet Mall", 180.0),
        ]
        for vehicle, driver, start, end, origin, destination, distance in bookings:
            trip = await scheduler.create_trip(
                db,
                vehicle_id=vehicle.id,
                driver_id=driver.id,
                start_time=start,
                end_time=end,
                origin=origin,
                destination=destination,
                estimated_distance_km=distance,
            )
            print(f"✅ Booked trip {trip.id}: {vehicle.registration} with {driver.name} {origin} -> {destination}")

        print("\n🎉 Fleet seeding completed successfully!")


if __name__ == "__main__":
    asyncio.run(seed_fleet())
