"""
Failure Injection Tests.

Validates that store outages surface as retryable STORE_UNAVAILABLE errors
and never corrupt the scheduler state.
"""

import asyncio
import pytest
from datetime import datetime, timezone
from httpx import AsyncClient, ASGITransport
from sqlalchemy.exc import OperationalError, IntegrityError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from evfleet.app.core.exceptions import StoreUnavailableError
from evfleet.app.core.reliability import is_transient_store_error, retry_on_store_unavailable, store_errors
from evfleet.app.main import app
from evfleet.app.services import risk_aggregator


def at(hour):
    return datetime(2030, 1, 7, hour, tzinfo=timezone.utc)


def _operational_error():
    return OperationalError("SELECT 1", {}, Exception("connection refused"))


def test_transient_error_classification():
    assert is_transient_store_error(_operational_error())
    assert is_transient_store_error(PoolTimeoutError("QueuePool limit reached"))
    assert is_transient_store_error(asyncio.TimeoutError())
    assert not is_transient_store_error(IntegrityError("INSERT", {}, Exception("unique")))
    assert not is_transient_store_error(ValueError("boom"))


@pytest.mark.asyncio
async def test_store_errors_translates_transient_failures():
    with pytest.raises(StoreUnavailableError) as exc_info:
        async with store_errors():
            raise _operational_error()
    assert exc_info.value.retryable
    assert isinstance(exc_info.value.__cause__, OperationalError)

    with pytest.raises(ValueError):
        async with store_errors():
            raise ValueError("not a store failure")


@pytest.mark.asyncio
async def test_retry_recovers_after_transient_failure():
    calls = []

    @retry_on_store_unavailable(attempts=3, base_delay=0)
    async def flaky_read():
        calls.append(1)
        if len(calls) < 3:
            raise StoreUnavailableError()
        return "ok"

    assert await flaky_read() == "ok"
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_retry_gives_up_after_max_attempts():
    calls = []

    @retry_on_store_unavailable(attempts=2, base_delay=0)
    async def dead_read():
        calls.append(1)
        raise StoreUnavailableError()

    with pytest.raises(StoreUnavailableError):
        await dead_read()
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_store_outage_during_booking_leaves_index_untouched(scheduler, db_session, vehicle, driver, mocker):
    mocker.patch.object(db_session, "commit", side_effect=_operational_error())

    with pytest.raises(StoreUnavailableError):
        await scheduler.create_trip(
            db_session, vehicle_id=vehicle.id, driver_id=driver.id, start_time=at(9), end_time=at(10)
        )
    assert len(scheduler.index) == 0


@pytest.mark.asyncio
async def test_store_outage_maps_to_503(client, mocker):
    mocker.patch.object(
        risk_aggregator.RiskAggregator, "status_counts",
        side_effect=StoreUnavailableError()
    )
    response = await client.get("/v1/dashboard/ev-status")
    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"
    body = response.json()
    assert body["error_code"] == "STORE_UNAVAILABLE"
    assert body["details"]["retryable"] is True


@pytest.mark.asyncio
async def test_unhandled_error_maps_to_500(client, mocker):
    mocker.patch.object(
        risk_aggregator.RiskAggregator, "status_counts",
        side_effect=RuntimeError("unexpected")
    )
    # The server error middleware re-raises after responding
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as raw_client:
        response = await raw_client.get("/v1/dashboard/charger-status")
    assert response.status_code == 500
    assert response.json()["error_code"] == "INTERNAL_ERROR"
