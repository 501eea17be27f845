"""
Shared FastAPI dependencies.

Routes receive the process-wide trip scheduler through ``get_scheduler`` so
tests can swap in a fresh instance with ``app.dependency_overrides``.
"""

from typing import Optional

from fastapi import HTTPException, Query, status

from evfleet.app.core.timeutils import resolve_zone
from evfleet.app.services.trip_scheduler import TripScheduler, trip_scheduler


def get_scheduler() -> TripScheduler:
    """FastAPI dependency returning the scheduler that owns the interval index."""
    return trip_scheduler


def get_timezone(
    tz: Optional[str] = Query(None, description="IANA time zone, e.g. Europe/Berlin")
) -> Optional[str]:
    """Validate an optional ``tz`` query parameter; unknown zones are a 400."""
    if tz is not None:
        try:
            resolve_zone(tz)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return tz
