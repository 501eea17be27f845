"""
Vehicle API Endpoints.

Register, list, update and delete electric vehicles.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from evfleet.app.core.dependencies import get_scheduler
from evfleet.app.db.session import get_db
from evfleet.app.models.enums import VehicleStatus
from evfleet.app.schemas.vehicle import VehicleCreate, VehicleUpdate, VehicleResponse, VehicleListResponse
from evfleet.app.services import fleet_store
from evfleet.app.services.trip_scheduler import TripScheduler

router = APIRouter(prefix="/evs", tags=["Vehicles"])


@router.post("", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
async def create_vehicle(
    vehicle_data: VehicleCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    Register a new vehicle.

    Fails with DUPLICATE_RESOURCE when the registration is already taken.
    """
    return await fleet_store.create_vehicle(db, vehicle_data)


@router.get("", response_model=VehicleListResponse)
async def list_vehicles(
    status_filter: Optional[VehicleStatus] = Query(None, alias="status", description="Filter by status"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=200, description="Items per page"),
    db: AsyncSession = Depends(get_db)
):
    """List vehicles ordered by id."""
    vehicles, total = await fleet_store.list_vehicles(db, status=status_filter, page=page, page_size=page_size)
    return VehicleListResponse(
        vehicles=[VehicleResponse.model_validate(v) for v in vehicles],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{vehicle_id}", response_model=VehicleResponse)
async def get_vehicle(
    vehicle_id: int = Path(..., description="Vehicle ID"),
    db: AsyncSession = Depends(get_db)
):
    return await fleet_store.get_vehicle(db, vehicle_id)


@router.put("/{vehicle_id}", response_model=VehicleResponse)
@router.patch("/{vehicle_id}", response_model=VehicleResponse)
async def update_vehicle(
    vehicle_data: VehicleUpdate,
    vehicle_id: int = Path(..., description="Vehicle ID"),
    db: AsyncSession = Depends(get_db)
):
    """
    Update a vehicle (partial).

    Registration cannot be changed; sending it is a validation error.
    """
    return await fleet_store.update_vehicle(db, vehicle_id, vehicle_data)


@router.delete("/{vehicle_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_vehicle(
    vehicle_id: int = Path(..., description="Vehicle ID"),
    db: AsyncSession = Depends(get_db),
    scheduler: TripScheduler = Depends(get_scheduler)
):
    """
    Delete a vehicle.

    Fails with RESOURCE_IN_USE while planned or running trips reference it.
    """
    await scheduler.delete_vehicle(db, vehicle_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
