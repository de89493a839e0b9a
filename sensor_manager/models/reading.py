"""Sensor reading model"""

from sqlalchemy import Column, String, Float, TIMESTAMP, ForeignKey, JSON, Uuid
from sqlalchemy.orm import relationship
import uuid

from ..core.database import Base
from ..utils import utcnow


class SensorReading(Base):
    """Time-series value reported by a sensor"""
    __tablename__ = "sensor_readings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    sensor_pk = Column(Uuid, ForeignKey("sensors.id", ondelete="CASCADE"), nullable=False, index=True)

    # Reading data
    value = Column(Float, nullable=False)
    unit = Column(String(32), nullable=True)
    raw = Column(JSON, default=dict)

    # Timestamp
    created_at = Column(TIMESTAMP, default=utcnow, nullable=False, index=True)

    sensor = relationship("Sensor", back_populates="readings")

    def __repr__(self):
        return f"<SensorReading sensor={self.sensor_pk} value={self.value}>"
