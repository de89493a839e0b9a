"""MQTT publish/test Pydantic schemas"""

from pydantic import AliasChoices, BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, Optional, List, Literal

MqttTransport = Literal["tcp", "tls", "websocket"]


class MqttPublishRequest(BaseModel):
    """One-shot publish against a caller-specified broker"""
    host: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("brokerUrl", "broker_url", "host"),
    )
    topic: str = Field(..., min_length=1)
    payload: str = Field(..., min_length=1)
    qos: Literal[0, 1, 2] = 0
    transport: Optional[MqttTransport] = None
    timeout_ms: Optional[int] = Field(None, ge=1000, le=8000)

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class MqttAttemptResponse(BaseModel):
    transport: str
    port: int
    path: Optional[str] = None
    tls: bool = False
    success: bool
    error: Optional[str] = None
    error_code: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class MqttResultResponse(BaseModel):
    success: bool
    message: str
    host: str
    topic: str
    qos: int
    port: Optional[int] = None
    transport: Optional[str] = None
    message_id: Optional[int] = None
    error: Optional[str] = None
    timestamp: str
    attempts: List[MqttAttemptResponse] = Field(default_factory=list)

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class MqttSimulateRequest(BaseModel):
    """Publish one generated reading to sensors/<sensorId>/data"""
    host: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("brokerUrl", "broker_url", "host"),
    )
    sensor_id: str = Field(..., min_length=1, max_length=255)
    data_type: Literal["temperature", "humidity", "pressure", "generic"] = "generic"
    qos: Literal[0, 1, 2] = 0
    transport: Optional[MqttTransport] = None
    timeout_ms: Optional[int] = Field(None, ge=1000, le=8000)

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class MqttSimulateResponse(MqttResultResponse):
    reading: Dict[str, Any]
