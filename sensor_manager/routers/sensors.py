"""
Sensors Router - CRUD API for registered sensors
Registration, status changes and deletion go through the flow coordinator
so the sensor's Node-RED flow follows the record
"""
from fastapi import APIRouter, Depends, Query, status

from ..dependencies import get_coordinator, get_store
from ..schemas import (
    SensorCreate,
    SensorUpdate,
    SensorResponse,
    SensorListResponse,
    SensorDetailResponse,
    SensorMutationResponse,
    SensorRegisterResponse,
    SensorDeleteResponse,
    SensorReadingCreate,
    SensorReadingResponse,
    SensorReadingListResponse,
)
from ..services import FlowCoordinator, SensorStore

router = APIRouter(prefix="/sensors", tags=["sensors"])


@router.get("", response_model=SensorListResponse)
async def list_sensors(store: SensorStore = Depends(get_store)):
    """List all sensors, newest first"""
    sensors = await store.list_sensors()
    return SensorListResponse(sensors=[SensorResponse.model_validate(s) for s in sensors])


@router.post("", response_model=SensorRegisterResponse, status_code=status.HTTP_201_CREATED)
async def register_sensor(
    body: SensorCreate,
    coordinator: FlowCoordinator = Depends(get_coordinator),
):
    """
    Register a sensor

    Deploys the sensor's Node-RED flow first and only then stores the
    record, so a failed deploy leaves nothing behind.
    """
    result = await coordinator.register(
        sensor_id=body.sensor_id,
        broker_url=body.broker_url,
        topic=body.topic,
        sample_payload=body.sample_payload,
        description=body.description,
    )
    return SensorRegisterResponse(
        sensor=SensorResponse.model_validate(result.sensor),
        flow_id=result.flow_id,
    )


@router.get("/{sensor_id}", response_model=SensorDetailResponse)
async def get_sensor(sensor_id: str, store: SensorStore = Depends(get_store)):
    sensor = await store.get_or_raise(sensor_id)
    return SensorDetailResponse(sensor=SensorResponse.model_validate(sensor))


@router.put("/{sensor_id}", response_model=SensorMutationResponse)
async def update_sensor(
    sensor_id: str,
    body: SensorUpdate,
    coordinator: FlowCoordinator = Depends(get_coordinator),
):
    """
    Update sensor fields

    A status change enables or disables the sensor's flow tab before the
    record is written; if Node-RED refuses, nothing changes locally (502).
    """
    sensor = await coordinator.update_sensor(sensor_id, **body.model_dump(exclude_unset=True))
    return SensorMutationResponse(sensor=SensorResponse.model_validate(sensor))


@router.delete("/{sensor_id}", response_model=SensorDeleteResponse)
async def delete_sensor(
    sensor_id: str,
    coordinator: FlowCoordinator = Depends(get_coordinator),
):
    """Delete a sensor and its Node-RED flow"""
    flow_deleted = await coordinator.delete(sensor_id)
    return SensorDeleteResponse(flow_deleted=flow_deleted)

# ============================================================
# Readings
# ============================================================

@router.get("/{sensor_id}/readings", response_model=SensorReadingListResponse)
async def list_readings(
    sensor_id: str,
    limit: int = Query(100, ge=1, le=1000),
    store: SensorStore = Depends(get_store),
):
    readings = await store.list_readings(sensor_id, limit=limit)
    return SensorReadingListResponse(readings=[SensorReadingResponse.model_validate(r) for r in readings])


@router.post(
    "/{sensor_id}/readings",
    response_model=SensorReadingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_reading(
    sensor_id: str,
    body: SensorReadingCreate,
    store: SensorStore = Depends(get_store),
):
    """Record a reading; also marks the sensor as seen"""
    reading = await store.add_reading(sensor_id, value=body.value, unit=body.unit, raw=body.raw)
    return SensorReadingResponse.model_validate(reading)
