"""
Trip database model.

A trip books one vehicle and one driver for a half-open time slot
``[start_time, end_time)``.
"""

from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, Enum, Index, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from evfleet.app.db.session import Base
from evfleet.app.models.trip_enums import TripStatus


class Trip(Base):
    """
    Trip model.

    Owned by the trip scheduler. ``vehicle_id`` / ``driver_id`` only become
    NULL on historical (terminal) trips whose vehicle or driver was deleted.
    """
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Resource assignment
    vehicle_id = Column(Integer, ForeignKey('ev_vehicles.id'), nullable=True, index=True)
    driver_id = Column(Integer, ForeignKey('drivers.id'), nullable=True, index=True)

    # Schedule
    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=True)

    # Status
    status = Column(Enum(TripStatus), default=TripStatus.PLANNED, nullable=False, index=True)

    # Route
    origin = Column(String(255), nullable=True)
    destination = Column(String(255), nullable=True)
    estimated_distance_km = Column(Float, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    vehicle = relationship("Vehicle", lazy="selectin")
    driver = relationship("Driver", lazy="selectin")

    __table_args__ = (
        CheckConstraint("end_time IS NULL OR end_time > start_time", name="ck_trips_interval"),
        Index("ix_trips_vehicle_status_start", "vehicle_id", "status", "start_time"),
        Index("ix_trips_driver_status_start", "driver_id", "status", "start_time"),
    )

    def __repr__(self):
        return f"<Trip(id={self.id}, vehicle_id={self.vehicle_id}, driver_id={self.driver_id}, status='{self.status.value}')>"
