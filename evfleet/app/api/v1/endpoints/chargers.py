"""
Charger API Endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from evfleet.app.db.session import get_db
from evfleet.app.models.enums import ChargerStatus
from evfleet.app.schemas.charger import ChargerCreate, ChargerUpdate, ChargerResponse, ChargerListResponse
from evfleet.app.services import fleet_store

router = APIRouter(prefix="/chargers", tags=["Chargers"])


@router.post("", response_model=ChargerResponse, status_code=status.HTTP_201_CREATED)
async def create_charger(
    charger_data: ChargerCreate,
    db: AsyncSession = Depends(get_db)
):
    return await fleet_store.create_charger(db, charger_data)


@router.get("", response_model=ChargerListResponse)
async def list_chargers(
    status_filter: Optional[ChargerStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db)
):
    chargers, total = await fleet_store.list_chargers(db, status=status_filter, page=page, page_size=page_size)
    return ChargerListResponse(
        chargers=[ChargerResponse.model_validate(c) for c in chargers],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{charger_id}", response_model=ChargerResponse)
async def get_charger(
    charger_id: int = Path(..., description="Charger ID"),
    db: AsyncSession = Depends(get_db)
):
    return await fleet_store.get_charger(db, charger_id)


@router.patch("/{charger_id}", response_model=ChargerResponse)
async def update_charger(
    charger_data: ChargerUpdate,
    charger_id: int = Path(..., description="Charger ID"),
    db: AsyncSession = Depends(get_db)
):
    return await fleet_store.update_charger(db, charger_id, charger_data)


@router.delete("/{charger_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_charger(
    charger_id: int = Path(..., description="Charger ID"),
    db: AsyncSession = Depends(get_db)
):
    await fleet_store.delete_charger(db, charger_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
