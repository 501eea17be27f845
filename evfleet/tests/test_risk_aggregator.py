"""
Risk aggregator tests.

Battery projection, status counts and calendar-day trip lookup.
"""

import pytest
from datetime import date, datetime, timezone

from evfleet.app.models.enums import ChargerStatus, VehicleStatus
from evfleet.app.schemas.charger import ChargerCreate
from evfleet.app.services import fleet_store
from evfleet.app.services.risk_aggregator import (
    REASON_INSUFFICIENT_RANGE,
    REASON_LOW_BATTERY,
    RiskAggregator,
    estimate_range_km,
    projected_end_percent,
)

NOW = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)


def at(hour, minute=0, day=7):
    return datetime(2030, 1, day, hour, minute, tzinfo=timezone.utc)


async def book(scheduler, db, vehicle, driver, start, end, **kwargs):
    return await scheduler.create_trip(
        db, vehicle_id=vehicle.id, driver_id=driver.id, start_time=start, end_time=end, **kwargs
    )


def test_energy_model():
    # 40 kWh at 45% = 18 kWh; 18 / 0.18 = 100 km
    assert estimate_range_km(40, 45) == pytest.approx(100.0)
    # 50 km needs 50 * 0.18 * 1.15 = 10.35 kWh of the 18 kWh available
    assert projected_end_percent(40, 45, 50) == pytest.approx((18 - 10.35) / 40 * 100)
    assert projected_end_percent(40, 10, 500) == 0.0


@pytest.mark.asyncio
async def test_low_battery_vehicle_with_upcoming_trip_is_at_risk(scheduler, db_session, create_vehicle, create_driver):
    low = await create_vehicle(current_battery_percent=15)
    await create_vehicle(current_battery_percent=90)  # no trip
    trip = await book(scheduler, db_session, low, await create_driver(), at(10), at(12))

    rows = await RiskAggregator.at_risk_vehicles(db_session, 4, now=NOW)

    assert [row.vehicle_id for row in rows] == [low.id]
    row = rows[0]
    assert row.trip_id == trip.id
    assert row.registration == low.registration
    assert REASON_LOW_BATTERY in row.reasons
    # 2h at 40 km/h = 80 km against 40 * 0.15 / 0.18 = 33.3 km of range
    assert row.remaining_trip_distance_km == pytest.approx(80.0)
    assert REASON_INSUFFICIENT_RANGE in row.reasons
    assert row.projected_end_battery_percent == 0.0


@pytest.mark.asyncio
async def test_healthy_vehicle_with_short_trip_not_at_risk(scheduler, db_session, create_vehicle, create_driver):
    healthy = await create_vehicle(current_battery_percent=90)
    await book(scheduler, db_session, healthy, await create_driver(), at(10), at(12), estimated_distance_km=20)

    assert await RiskAggregator.at_risk_vehicles(db_session, 4, now=NOW) == []


@pytest.mark.asyncio
async def test_insufficient_range_without_low_battery(scheduler, db_session, create_vehicle, create_driver):
    vehicle = await create_vehicle(current_battery_percent=50)  # 20 kWh, ~111 km
    await book(scheduler, db_session, vehicle, await create_driver(), at(9), at(12), estimated_distance_km=150)

    rows = await RiskAggregator.at_risk_vehicles(db_session, 4, now=NOW)
    assert len(rows) == 1
    assert rows[0].reasons == [REASON_INSUFFICIENT_RANGE]
    assert rows[0].estimated_range_km == pytest.approx(111.11, abs=0.01)


@pytest.mark.asyncio
async def test_horizon_and_terminal_trips_excluded(scheduler, db_session, create_vehicle, create_driver):
    low = await create_vehicle(current_battery_percent=10)
    driver = await create_driver()
    await book(scheduler, db_session, low, driver, at(13), at(14))  # starts after now + 4h
    cancelled = await book(scheduler, db_session, low, driver, at(9), at(10))
    await scheduler.cancel_trip(db_session, cancelled.id)
    await book(scheduler, db_session, low, driver, at(6), at(7))  # already over

    assert await RiskAggregator.at_risk_vehicles(db_session, 4, now=NOW) == []
    assert len(await RiskAggregator.at_risk_vehicles(db_session, 6, now=NOW)) == 1


@pytest.mark.asyncio
async def test_running_trip_counts_remaining_share(scheduler, db_session, create_vehicle, create_driver):
    vehicle = await create_vehicle(current_battery_percent=12)
    trip = await book(scheduler, db_session, vehicle, await create_driver(), at(6), at(10), estimated_distance_km=100)
    await scheduler.start_trip(db_session, trip.id)

    rows = await RiskAggregator.at_risk_vehicles(db_session, 4, now=NOW)
    assert len(rows) == 1
    # Half of the 4h trip is left
    assert rows[0].remaining_trip_distance_km == pytest.approx(50.0)
    assert rows[0].trip_status.value == "IN_PROGRESS"


@pytest.mark.asyncio
async def test_overrunning_trip_stays_at_risk(scheduler, db_session, create_vehicle, create_driver):
    vehicle = await create_vehicle(current_battery_percent=5)
    driver = await create_driver()
    running = await book(scheduler, db_session, vehicle, driver, at(6), at(7))
    await scheduler.start_trip(db_session, running.id)
    await book(scheduler, db_session, vehicle, driver, at(5), at(6))  # never started

    rows = await RiskAggregator.at_risk_vehicles(db_session, 4, now=NOW)

    assert [row.trip_id for row in rows] == [running.id]
    assert rows[0].remaining_trip_distance_km == 0.0
    assert rows[0].reasons == [REASON_LOW_BATTERY]


@pytest.mark.asyncio
async def test_sorted_by_battery_then_start(scheduler, db_session, create_vehicle, create_driver):
    mid = await create_vehicle(current_battery_percent=50)
    low = await create_vehicle(current_battery_percent=5)
    driver_a, driver_b = await create_driver(), await create_driver()
    await book(scheduler, db_session, mid, driver_a, at(9), at(12), estimated_distance_km=150)
    await book(scheduler, db_session, low, driver_b, at(11), at(11, 30))
    await book(scheduler, db_session, low, driver_b, at(9), at(10))

    rows = await RiskAggregator.at_risk_vehicles(db_session, 4, now=NOW)
    assert [(r.vehicle_id, r.trip_start_time) for r in rows] == [
        (low.id, at(9)),
        (low.id, at(11)),
        (mid.id, at(9)),
    ]


@pytest.mark.asyncio
async def test_vehicle_status_counts_omit_empty(db_session, create_vehicle):
    await create_vehicle()
    await create_vehicle()
    await create_vehicle(status=VehicleStatus.MAINTENANCE)

    counts = await RiskAggregator.status_counts(db_session, "vehicle")
    assert {c.status: c.count for c in counts} == {"IDLE": 2, "MAINTENANCE": 1}


@pytest.mark.asyncio
async def test_charger_status_counts(db_session):
    for code, charger_status in [("C1", ChargerStatus.AVAILABLE), ("C2", ChargerStatus.FAULTED), ("C3", ChargerStatus.AVAILABLE)]:
        await fleet_store.create_charger(db_session, ChargerCreate(code=code, max_power_kw=50, status=charger_status))

    counts = await RiskAggregator.status_counts(db_session, "charger")
    assert {c.status: c.count for c in counts} == {"AVAILABLE": 2, "FAULTED": 1}


@pytest.mark.asyncio
async def test_status_counts_unknown_entity(db_session):
    with pytest.raises(ValueError):
        await RiskAggregator.status_counts(db_session, "parcel")


@pytest.mark.asyncio
async def test_todays_trips_respects_time_zone(scheduler, db_session, vehicle, driver):
    early = await book(scheduler, db_session, vehicle, driver, at(9), at(10))
    late = await book(scheduler, db_session, vehicle, driver, at(23, 30), at(23, 45))

    utc_day = await RiskAggregator.todays_trips(db_session, date(2030, 1, 7), "UTC")
    assert [t.id for t in utc_day] == [early.id, late.id]

    # 23:30 UTC is already Jan 8 in Berlin
    berlin_day = await RiskAggregator.todays_trips(db_session, date(2030, 1, 8), "Europe/Berlin")
    assert [t.id for t in berlin_day] == [late.id]
