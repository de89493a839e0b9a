"""Sensor Pydantic schemas"""

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List, Literal
from uuid import UUID
from datetime import datetime

SensorStatus = Literal["connected", "disconnected", "error"]


class SensorBase(BaseModel):
    """Base sensor schema"""
    broker_url: str = Field(..., min_length=1, max_length=512)
    topic: str = Field(..., min_length=1, max_length=512)
    description: Optional[str] = None
    sample_payload: str = Field(..., min_length=1)

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class SensorCreate(SensorBase):
    """Schema for registering a sensor"""
    sensor_id: str = Field(..., min_length=1, max_length=255)


class SensorUpdate(BaseModel):
    """Schema for updating a sensor; only provided fields are written"""
    broker_url: Optional[str] = Field(None, min_length=1, max_length=512)
    topic: Optional[str] = Field(None, min_length=1, max_length=512)
    description: Optional[str] = None
    sample_payload: Optional[str] = Field(None, min_length=1)
    status: Optional[SensorStatus] = None
    node_red_flow_id: Optional[str] = None
    last_seen: Optional[datetime] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class SensorResponse(SensorBase):
    """Schema for sensor response"""
    id: UUID
    sensor_id: str
    status: SensorStatus
    node_red_flow_id: Optional[str] = None
    last_seen: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class _Envelope(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


class SensorListResponse(_Envelope):
    sensors: List[SensorResponse]


class SensorDetailResponse(_Envelope):
    sensor: SensorResponse


class SensorMutationResponse(_Envelope):
    success: bool = True
    sensor: SensorResponse


class SensorRegisterResponse(SensorMutationResponse):
    flow_id: str


class SensorDeleteResponse(_Envelope):
    success: bool = True
    flow_deleted: bool
