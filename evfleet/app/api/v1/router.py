"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from evfleet.app.api.v1.endpoints import vehicles, drivers, chargers, trips, dashboard

router = APIRouter()

# Fleet entities
router.include_router(vehicles.router)
router.include_router(drivers.router)
router.include_router(chargers.router)

# Scheduling
router.include_router(trips.router)

# Read-only dashboard
router.include_router(dashboard.router)
