"""
Trip API Endpoints.

Booking, rescheduling, lifecycle transitions and history of trips. All
writes go through the trip scheduler, which enforces that no vehicle or
driver is double-booked.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from evfleet.app.core.dependencies import get_scheduler, get_timezone
from evfleet.app.db.session import get_db
from evfleet.app.models.trip_enums import TripStatus
from evfleet.app.schemas.trip import (
    TripCreate, TripUpdate, TripResponse, TripListResponse, TripHistoryEntry
)
from evfleet.app.services.audit import list_entity_events
from evfleet.app.services.trip_scheduler import TripScheduler

router = APIRouter(prefix="/trips", tags=["Trips"])


@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    trip_data: TripCreate,
    db: AsyncSession = Depends(get_db),
    scheduler: TripScheduler = Depends(get_scheduler)
):
    """
    Book a trip.

    Validates:
    - end_time is present and after start_time (start defaults to now)
    - vehicle exists, driver exists and is active
    - neither vehicle nor driver has an overlapping planned/running trip

    The trip is created as PLANNED.
    """
    return await scheduler.create_trip(db, **trip_data.model_dump())


@router.get("", response_model=TripListResponse)
async def list_trips(
    day: Optional[date] = Query(None, description="Only trips starting on this calendar day"),
    tz: Optional[str] = Depends(get_timezone),
    status_filter: Optional[TripStatus] = Query(None, alias="status"),
    vehicle_id: Optional[int] = Query(None, gt=0),
    driver_id: Optional[int] = Query(None, gt=0),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    scheduler: TripScheduler = Depends(get_scheduler)
):
    """List trips ordered by start time."""
    trips, total = await scheduler.list_trips(
        db,
        day=day,
        tz=tz,
        status=status_filter,
        vehicle_id=vehicle_id,
        driver_id=driver_id,
        page=page,
        page_size=page_size
    )
    return TripListResponse(
        trips=[TripResponse.model_validate(t) for t in trips],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip(
    trip_id: int = Path(..., description="Trip ID"),
    db: AsyncSession = Depends(get_db),
    scheduler: TripScheduler = Depends(get_scheduler)
):
    return await scheduler.get_trip(db, trip_id)


@router.put("/{trip_id}", response_model=TripResponse)
@router.patch("/{trip_id}", response_model=TripResponse)
async def update_trip(
    trip_data: TripUpdate,
    trip_id: int = Path(..., description="Trip ID"),
    db: AsyncSession = Depends(get_db),
    scheduler: TripScheduler = Depends(get_scheduler)
):
    """
    Reschedule, reassign or transition a trip.

    Only the fields sent are changed. The trip's own slot does not count as a
    conflict. Completed or cancelled trips cannot be rescheduled.
    """
    return await scheduler.update_trip(db, trip_id, **trip_data.model_dump(exclude_unset=True))


@router.delete("/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_trip(
    trip_id: int = Path(..., description="Trip ID"),
    db: AsyncSession = Depends(get_db),
    scheduler: TripScheduler = Depends(get_scheduler)
):
    """Delete a trip and free its vehicle and driver slots."""
    await scheduler.delete_trip(db, trip_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{trip_id}/start", response_model=TripResponse)
async def start_trip(
    trip_id: int = Path(..., description="Trip ID"),
    db: AsyncSession = Depends(get_db),
    scheduler: TripScheduler = Depends(get_scheduler)
):
    """PLANNED -> IN_PROGRESS. The vehicle switches to DRIVING."""
    return await scheduler.start_trip(db, trip_id)


@router.post("/{trip_id}/complete", response_model=TripResponse)
async def complete_trip(
    trip_id: int = Path(..., description="Trip ID"),
    db: AsyncSession = Depends(get_db),
    scheduler: TripScheduler = Depends(get_scheduler)
):
    """IN_PROGRESS -> COMPLETED. Frees the slot and idles the vehicle."""
    return await scheduler.complete_trip(db, trip_id)


@router.post("/{trip_id}/cancel", response_model=TripResponse)
async def cancel_trip(
    trip_id: int = Path(..., description="Trip ID"),
    db: AsyncSession = Depends(get_db),
    scheduler: TripScheduler = Depends(get_scheduler)
):
    """PLANNED or IN_PROGRESS -> CANCELLED. Frees the slot."""
    return await scheduler.cancel_trip(db, trip_id)


@router.get("/{trip_id}/history", response_model=List[TripHistoryEntry])
async def get_trip_history(
    trip_id: int = Path(..., description="Trip ID"),
    db: AsyncSession = Depends(get_db),
    scheduler: TripScheduler = Depends(get_scheduler)
):
    """Audit events of a trip, oldest first."""
    await scheduler.get_trip(db, trip_id)
    return await list_entity_events(db, "trip", trip_id)
