"""
EV database model.

Vehicles are registered once and then updated by telemetry and by the
trip scheduler (status only).
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum, CheckConstraint
from sqlalchemy.sql import func
from evfleet.app.db.session import Base
from evfleet.app.models.enums import VehicleStatus


class Vehicle(Base):
    """
    Electric vehicle model.

    ``registration`` is unique and never changes after creation.
    Battery level and position are externally reported facts.
    """
    __tablename__ = "ev_vehicles"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Identification
    registration = Column(String(50), unique=True, nullable=False, index=True)
    model = Column(String(100), nullable=False)

    # Energy
    battery_capacity_kwh = Column(Float, nullable=False)
    current_battery_percent = Column(Float, nullable=False, default=100.0)

    # Operational state
    status = Column(Enum(VehicleStatus), default=VehicleStatus.IDLE, nullable=False, index=True)

    # Last reported position
    last_known_latitude = Column(Float, nullable=True)
    last_known_longitude = Column(Float, nullable=True)
    last_seen_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("battery_capacity_kwh > 0", name="ck_ev_vehicles_capacity_positive"),
        CheckConstraint(
            "current_battery_percent >= 0 AND current_battery_percent <= 100",
            name="ck_ev_vehicles_battery_range"
        ),
    )

    def __repr__(self):
        return f"<Vehicle(id={self.id}, registration='{self.registration}', status='{self.status.value}')>"
