"""
Audit Log Database Model.

Tracks every write to fleet entities and trips, committed in the same
transaction as the write itself.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON, Index
from sqlalchemy.sql import func
from evfleet.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - VEHICLE_* / DRIVER_* / CHARGER_* entity writes
    - TRIP_CREATED / TRIP_UPDATED / TRIP_DELETED
    - TRIP_STARTED / TRIP_COMPLETED / TRIP_CANCELLED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Which entity it touched
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Integer, nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # Correlation id of the HTTP request, when there was one
    correlation_id = Column(String(64), nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    __table_args__ = (
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', entity={self.entity_type}:{self.entity_id})>"
