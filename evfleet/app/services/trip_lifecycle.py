"""
Trip lifecycle state machine.

    PLANNED ──> IN_PROGRESS ──> COMPLETED
       │             │
       └──────> CANCELLED <─┘

COMPLETED and CANCELLED are terminal.
"""

from typing import Dict, FrozenSet, Optional

from evfleet.app.core.exceptions import InvalidTransitionError
from evfleet.app.models.trip_enums import TripStatus

ALLOWED_TRANSITIONS: Dict[TripStatus, FrozenSet[TripStatus]] = {
    TripStatus.PLANNED: frozenset({TripStatus.IN_PROGRESS, TripStatus.CANCELLED}),
    TripStatus.IN_PROGRESS: frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED}),
    TripStatus.COMPLETED: frozenset(),
    TripStatus.CANCELLED: frozenset(),
}


def can_transition(current: TripStatus, target: TripStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def validate_transition(trip_id: Optional[int], current: TripStatus, target: TripStatus) -> bool:
    """
    Check a requested status change.

    Returns False when ``target`` equals ``current`` (nothing to do),
    True for a legal move, and raises ``InvalidTransitionError`` otherwise.
    """
    if current == target:
        return False
    if can_transition(current, target):
        return True
    if current.is_terminal:
        message = f"Trip is {current.value}; no further status changes are allowed"
    else:
        message = f"Cannot move trip from {current.value} to {target.value}"
    raise InvalidTransitionError(trip_id, current.value, target.value, message=message)


def releases_interval(target: TripStatus) -> bool:
    """Terminal states free the trip's vehicle and driver slots."""
    return target.is_terminal
