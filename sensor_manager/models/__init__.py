"""SQLAlchemy models"""

from .sensor import Sensor, SENSOR_STATUSES
from .reading import SensorReading

__all__ = [
    "Sensor",
    "SENSOR_STATUSES",
    "SensorReading",
]
