"""
Charger database model.

Chargers only feed the dashboard status counts.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum
from sqlalchemy.sql import func
from evfleet.app.db.session import Base
from evfleet.app.models.enums import ChargerStatus


class Charger(Base):
    __tablename__ = "chargers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    location = Column(String(255), nullable=True)
    max_power_kw = Column(Float, nullable=False)
    status = Column(Enum(ChargerStatus), default=ChargerStatus.AVAILABLE, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Charger(id={self.id}, code='{self.code}', status='{self.status.value}')>"
