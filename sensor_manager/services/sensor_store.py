"""Sensor persistence - CRUD and upsert keyed by sensor_id"""

from typing import Optional, List, Dict, Any
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
import logging

from ..core.database import Database
from ..exceptions import DuplicateSensorError, SensorNotFoundError
from ..models import Sensor, SensorReading
from ..utils import utcnow

logger = logging.getLogger(__name__)

# Columns callers may write through create/update/upsert
WRITABLE_FIELDS = (
    "broker_url",
    "topic",
    "description",
    "sample_payload",
    "status",
    "last_seen",
    "node_red_flow_id",
)


def _writable(fields: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(fields) - set(WRITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Not writable: {', '.join(sorted(unknown))}")
    return fields


class SensorStore:
    """Service for reading and writing sensor records"""

    def __init__(self, db: Database):
        self.db = db

    async def list_sensors(self) -> List[Sensor]:
        """All sensors, newest first"""
        async with self.db.session() as session:
            result = await session.execute(
                select(Sensor).order_by(Sensor.created_at.desc(), Sensor.sensor_id)
            )
            return list(result.scalars().all())

    async def get(self, sensor_id: str) -> Optional[Sensor]:
        async with self.db.session() as session:
            result = await session.execute(select(Sensor).where(Sensor.sensor_id == sensor_id))
            return result.scalar_one_or_none()

    async def get_or_raise(self, sensor_id: str) -> Sensor:
        sensor = await self.get(sensor_id)
        if sensor is None:
            raise SensorNotFoundError(sensor_id)
        return sensor

    async def get_by_flow_id(self, flow_id: str) -> Optional[Sensor]:
        async with self.db.session() as session:
            result = await session.execute(select(Sensor).where(Sensor.node_red_flow_id == flow_id))
            return result.scalars().first()

    async def exists(self, sensor_id: str) -> bool:
        return await self.get(sensor_id) is not None

    async def create(self, sensor_id: str, **fields) -> Sensor:
        """
        Insert a new sensor

        Raises:
            DuplicateSensorError: sensor_id is already taken
        """
        sensor = Sensor(sensor_id=sensor_id, **_writable(fields))
        try:
            async with self.db.session() as session:
                session.add(sensor)
                await session.flush()
        except IntegrityError:
            raise DuplicateSensorError(sensor_id)

        logger.info(f"Sensor created: {sensor_id}")
        return sensor

    async def update(self, sensor_id: str, **fields) -> Sensor:
        """
        Apply field changes to an existing sensor

        Raises:
            SensorNotFoundError: no sensor with this id
        """
        _writable(fields)
        async with self.db.session() as session:
            result = await session.execute(select(Sensor).where(Sensor.sensor_id == sensor_id))
            sensor = result.scalar_one_or_none()
            if sensor is None:
                raise SensorNotFoundError(sensor_id)
            for name, value in fields.items():
                setattr(sensor, name, value)
            sensor.updated_at = utcnow()
            await session.flush()

        logger.info(f"Sensor updated: {sensor_id} fields={sorted(fields)}")
        return sensor

    async def upsert(self, sensor_id: str, **fields) -> Sensor:
        """Insert or update by sensor_id"""
        _writable(fields)
        async with self.db.session() as session:
            result = await session.execute(select(Sensor).where(Sensor.sensor_id == sensor_id))
            sensor = result.scalar_one_or_none()
            if sensor is None:
                sensor = Sensor(sensor_id=sensor_id, **fields)
                session.add(sensor)
            else:
                for name, value in fields.items():
                    setattr(sensor, name, value)
                sensor.updated_at = utcnow()
            await session.flush()
        return sensor

    async def delete(self, sensor_id: str) -> bool:
        """Delete a sensor and its readings; False if it did not exist"""
        async with self.db.session() as session:
            result = await session.execute(select(Sensor.id).where(Sensor.sensor_id == sensor_id))
            pk = result.scalar_one_or_none()
            if pk is None:
                return False
            await session.execute(delete(SensorReading).where(SensorReading.sensor_pk == pk))
            await session.execute(delete(Sensor).where(Sensor.id == pk))

        logger.info(f"Sensor deleted: {sensor_id}")
        return True

    # ------------------------------------------------------------
    # Readings
    # ------------------------------------------------------------

    async def add_reading(
        self,
        sensor_id: str,
        value: float,
        unit: Optional[str] = None,
        raw: Optional[Dict[str, Any]] = None,
    ) -> SensorReading:
        """Record a reading and bump the sensor's last_seen"""
        async with self.db.session() as session:
            result = await session.execute(select(Sensor).where(Sensor.sensor_id == sensor_id))
            sensor = result.scalar_one_or_none()
            if sensor is None:
                raise SensorNotFoundError(sensor_id)

            reading = SensorReading(sensor_pk=sensor.id, value=value, unit=unit, raw=raw or {})
            session.add(reading)
            sensor.last_seen = utcnow()
            await session.flush()
        return reading

    async def list_readings(self, sensor_id: str, limit: int = 100) -> List[SensorReading]:
        """Most recent readings first"""
        async with self.db.session() as session:
            result = await session.execute(select(Sensor.id).where(Sensor.sensor_id == sensor_id))
            pk = result.scalar_one_or_none()
            if pk is None:
                raise SensorNotFoundError(sensor_id)

            result = await session.execute(
                select(SensorReading)
                .where(SensorReading.sensor_pk == pk)
                .order_by(SensorReading.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
