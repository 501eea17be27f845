"""
Dashboard API Endpoints.

Read-only operational signals for the fleet dashboard.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from evfleet.app.core.dependencies import get_timezone
from evfleet.app.db.session import get_db
from evfleet.app.schemas.dashboard import AtRiskVehicle, StatusCount
from evfleet.app.schemas.trip import TripResponse
from evfleet.app.services.risk_aggregator import RiskAggregator

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/ev-status", response_model=List[StatusCount])
async def get_ev_status(db: AsyncSession = Depends(get_db)):
    """Number of vehicles per status."""
    return await RiskAggregator.status_counts(db, "vehicle")


@router.get("/charger-status", response_model=List[StatusCount])
async def get_charger_status(db: AsyncSession = Depends(get_db)):
    """Number of chargers per status."""
    return await RiskAggregator.status_counts(db, "charger")


@router.get("/at-risk", response_model=List[AtRiskVehicle])
async def get_at_risk_vehicles(
    hours: float = Query(4, gt=0, le=168, description="Look-ahead horizon in hours"),
    db: AsyncSession = Depends(get_db)
):
    """Vehicles whose battery may not cover a trip starting within ``hours``."""
    return await RiskAggregator.at_risk_vehicles(db, hours)


@router.get("/today-trips", response_model=List[TripResponse])
async def get_today_trips(
    reference_date: Optional[date] = Query(None, alias="date", description="Defaults to today"),
    tz: Optional[str] = Depends(get_timezone),
    db: AsyncSession = Depends(get_db)
):
    """Trips starting on the given day in the caller's time zone."""
    return await RiskAggregator.todays_trips(db, reference_date, tz)
