"""
Integration tests for dashboard endpoints.
"""

import pytest
from datetime import datetime, timedelta, timezone


def iso(value):
    return value.isoformat()


@pytest.mark.asyncio
async def test_ev_status_counts(client):
    await client.post("/v1/evs", json={"registration": "EV-1", "model": "Zoe", "battery_capacity_kwh": 52})
    await client.post("/v1/evs", json={"registration": "EV-2", "model": "Zoe", "battery_capacity_kwh": 52})
    await client.post("/v1/evs", json={
        "registration": "EV-3", "model": "Zoe", "battery_capacity_kwh": 52, "status": "CHARGING"
    })

    response = await client.get("/v1/dashboard/ev-status")
    assert response.status_code == 200
    counts = {row["status"]: row["count"] for row in response.json()}
    assert counts == {"IDLE": 2, "CHARGING": 1}


@pytest.mark.asyncio
async def test_charger_status_empty_fleet(client):
    response = await client.get("/v1/dashboard/charger-status")
    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_at_risk_vehicles(client):
    low = (await client.post("/v1/evs", json={
        "registration": "EV-LOW", "model": "Leaf", "battery_capacity_kwh": 40, "current_battery_percent": 15
    })).json()
    await client.post("/v1/evs", json={
        "registration": "EV-FULL", "model": "Leaf", "battery_capacity_kwh": 40, "current_battery_percent": 90
    })
    driver = (await client.post("/v1/drivers", json={"name": "Ari", "license_id": "DL-R1"})).json()

    start = datetime.now(timezone.utc) + timedelta(hours=2)
    trip = (await client.post("/v1/trips", json={
        "vehicle_id": low["id"], "driver_id": driver["id"],
        "start_time": iso(start), "end_time": iso(start + timedelta(hours=1)),
    })).json()

    response = await client.get("/v1/dashboard/at-risk", params={"hours": 4})
    assert response.status_code == 200
    rows = response.json()
    assert [row["registration"] for row in rows] == ["EV-LOW"]
    assert rows[0]["trip_id"] == trip["id"]
    assert "LOW_BATTERY" in rows[0]["reasons"]

    # Horizon shorter than the time to departure
    response = await client.get("/v1/dashboard/at-risk", params={"hours": 1})
    assert response.json() == []


@pytest.mark.asyncio
async def test_at_risk_rejects_bad_horizon(client):
    response = await client.get("/v1/dashboard/at-risk", params={"hours": -1})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_today_trips(client):
    vehicle = (await client.post("/v1/evs", json={
        "registration": "EV-T", "model": "ID.4", "battery_capacity_kwh": 77
    })).json()
    driver = (await client.post("/v1/drivers", json={"name": "Lee", "license_id": "DL-T"})).json()
    await client.post("/v1/trips", json={
        "vehicle_id": vehicle["id"], "driver_id": driver["id"],
        "start_time": "2030-05-10T22:30:00Z", "end_time": "2030-05-10T23:30:00Z",
    })

    response = await client.get("/v1/dashboard/today-trips", params={"date": "2030-05-10"})
    assert response.status_code == 200
    assert len(response.json()) == 1

    # 22:30 UTC falls on May 11 in Berlin (UTC+2 in summer)
    response = await client.get("/v1/dashboard/today-trips", params={"date": "2030-05-11", "tz": "Europe/Berlin"})
    assert [t["vehicle_id"] for t in response.json()] == [vehicle["id"]]

    response = await client.get("/v1/dashboard/today-trips", params={"tz": "Not/AZone"})
    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_health_and_root(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

    response = await client.get("/")
    assert response.status_code == 200
