"""
Trip-related enumerations.
"""

import enum


class TripStatus(str, enum.Enum):
    """Trip status enumeration."""
    PLANNED = "PLANNED"  # Booked, not started
    IN_PROGRESS = "IN_PROGRESS"  # Driver has started
    COMPLETED = "COMPLETED"  # Terminal
    CANCELLED = "CANCELLED"  # Terminal

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_TRIP_STATUSES


ACTIVE_TRIP_STATUSES = (TripStatus.PLANNED, TripStatus.IN_PROGRESS)
TERMINAL_TRIP_STATUSES = (TripStatus.COMPLETED, TripStatus.CANCELLED)
