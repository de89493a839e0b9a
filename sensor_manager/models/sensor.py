"""Sensor model - registered MQTT sensor and its Node-RED flow pointer"""

from sqlalchemy import Column, String, Text, TIMESTAMP, Uuid
from sqlalchemy.orm import relationship
import uuid

from ..core.database import Base
from ..utils import utcnow

SENSOR_STATUSES = ("connected", "disconnected", "error")


class Sensor(Base):
    """Sensor metadata registered by a user"""
    __tablename__ = "sensors"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Caller-chosen identity
    sensor_id = Column(String(255), unique=True, nullable=False, index=True)

    # MQTT binding
    broker_url = Column(String(512), nullable=False)
    topic = Column(String(512), nullable=False)
    description = Column(Text, nullable=True)
    sample_payload = Column(Text, nullable=False)

    # Status
    status = Column(String(20), nullable=False, default="disconnected")  # connected, disconnected, error
    last_seen = Column(TIMESTAMP, nullable=True)

    # Node-RED tab id (weak reference, the flow may disappear on its own)
    node_red_flow_id = Column(String(255), nullable=True, index=True)

    # Timestamps
    created_at = Column(TIMESTAMP, default=utcnow, nullable=False, index=True)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow)

    # Relationships
    readings = relationship(
        "SensorReading",
        back_populates="sensor",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Sensor {self.sensor_id} status={self.status}>"
