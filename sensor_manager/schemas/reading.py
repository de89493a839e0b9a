"""Sensor Reading Pydantic schemas"""

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Optional, Dict, Any, List
from uuid import UUID
from datetime import datetime


class SensorReadingBase(BaseModel):
    """Base sensor reading schema"""
    value: float
    unit: Optional[str] = Field(None, max_length=32)
    raw: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class SensorReadingCreate(SensorReadingBase):
    """Schema for recording a sensor reading"""
    pass


class SensorReadingResponse(SensorReadingBase):
    """Schema for sensor reading response"""
    id: UUID
    created_at: datetime

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class SensorReadingListResponse(BaseModel):
    readings: List[SensorReadingResponse]
