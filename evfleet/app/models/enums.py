"""
Fleet enumerations.

Operational states for vehicles and chargers.
"""

import enum


class VehicleStatus(str, enum.Enum):
    """Vehicle operational status."""
    IDLE = "IDLE"  # Parked, available
    DRIVING = "DRIVING"  # On an IN_PROGRESS trip
    CHARGING = "CHARGING"
    MAINTENANCE = "MAINTENANCE"


class ChargerStatus(str, enum.Enum):
    """Charger status."""
    AVAILABLE = "AVAILABLE"
    IN_USE = "IN_USE"
    FAULTED = "FAULTED"
    OFFLINE = "OFFLINE"


class ResourceKind(str, enum.Enum):
    """Kinds of schedulable resources."""
    VEHICLE = "vehicle"
    DRIVER = "driver"
