"""
Driver API Endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from evfleet.app.core.dependencies import get_scheduler
from evfleet.app.db.session import get_db
from evfleet.app.schemas.driver import DriverCreate, DriverUpdate, DriverResponse, DriverListResponse
from evfleet.app.services import fleet_store
from evfleet.app.services.trip_scheduler import TripScheduler

router = APIRouter(prefix="/drivers", tags=["Drivers"])


@router.post("", response_model=DriverResponse, status_code=status.HTTP_201_CREATED)
async def create_driver(
    driver_data: DriverCreate,
    db: AsyncSession = Depends(get_db)
):
    """Register a driver. The licence id must be unique."""
    return await fleet_store.create_driver(db, driver_data)


@router.get("", response_model=DriverListResponse)
async def list_drivers(
    active: Optional[bool] = Query(None, description="Filter by active flag"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db)
):
    drivers, total = await fleet_store.list_drivers(db, active=active, page=page, page_size=page_size)
    return DriverListResponse(
        drivers=[DriverResponse.model_validate(d) for d in drivers],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{driver_id}", response_model=DriverResponse)
async def get_driver(
    driver_id: int = Path(..., description="Driver ID"),
    db: AsyncSession = Depends(get_db)
):
    return await fleet_store.get_driver(db, driver_id)


@router.put("/{driver_id}", response_model=DriverResponse)
@router.patch("/{driver_id}", response_model=DriverResponse)
async def update_driver(
    driver_data: DriverUpdate,
    driver_id: int = Path(..., description="Driver ID"),
    db: AsyncSession = Depends(get_db)
):
    """
    Update a driver (partial).

    Deactivated drivers keep their existing trips but cannot be booked on new ones.
    """
    return await fleet_store.update_driver(db, driver_id, driver_data)


@router.delete("/{driver_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_driver(
    driver_id: int = Path(..., description="Driver ID"),
    db: AsyncSession = Depends(get_db),
    scheduler: TripScheduler = Depends(get_scheduler)
):
    await scheduler.delete_driver(db, driver_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
