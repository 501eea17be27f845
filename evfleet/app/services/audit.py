"""
Audit logging service.

Audit rows are added to the caller's session and committed together with
the write they describe, so a rolled-back write leaves no audit trace.
"""

from typing import Optional, Dict, Any, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from evfleet.app.models.audit_log import AuditLog
from evfleet.app.core.context import get_correlation_id


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    VEHICLE_CREATED = "VEHICLE_CREATED"
    VEHICLE_UPDATED = "VEHICLE_UPDATED"
    VEHICLE_DELETED = "VEHICLE_DELETED"

    DRIVER_CREATED = "DRIVER_CREATED"
    DRIVER_UPDATED = "DRIVER_UPDATED"
    DRIVER_DELETED = "DRIVER_DELETED"

    CHARGER_CREATED = "CHARGER_CREATED"
    CHARGER_UPDATED = "CHARGER_UPDATED"
    CHARGER_DELETED = "CHARGER_DELETED"

    TRIP_CREATED = "TRIP_CREATED"
    TRIP_UPDATED = "TRIP_UPDATED"
    TRIP_STARTED = "TRIP_STARTED"
    TRIP_COMPLETED = "TRIP_COMPLETED"
    TRIP_CANCELLED = "TRIP_CANCELLED"
    TRIP_DELETED = "TRIP_DELETED"


def record_event(
    db: AsyncSession,
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Add an audit event to the current unit of work.

    Args:
        db: Database session holding the write being audited
        action: Action being performed (use AuditAction constants)
        entity_type: "vehicle", "driver", "charger" or "trip"
        entity_id: Primary key of the entity
        metadata: Additional JSON-serializable context

    Returns:
        The pending AuditLog instance (flushed on commit)
    """
    audit_log = AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_data=metadata,
        correlation_id=get_correlation_id()
    )
    db.add(audit_log)
    return audit_log


async def list_entity_events(db: AsyncSession, entity_type: str, entity_id: int) -> List[AuditLog]:
    """Audit events of one entity, oldest first."""
    result = await db.execute(
        select(AuditLog)
        .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
        .order_by(AuditLog.timestamp, AuditLog.id)
    )
    return list(result.scalars().all())
