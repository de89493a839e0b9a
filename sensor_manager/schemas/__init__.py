"""Pydantic schemas for API validation"""

from .sensor import (
    SensorCreate, SensorUpdate, SensorResponse,
    SensorListResponse, SensorDetailResponse, SensorMutationResponse,
    SensorRegisterResponse, SensorDeleteResponse,
)
from .reading import SensorReadingCreate, SensorReadingResponse, SensorReadingListResponse
from .flow import (
    FlowCreate, FlowDeployResponse, FlowListResponse,
    FlowNodesResponse, FlowDeleteResponse, NodeRedHealthResponse,
)
from .mqtt import (
    MqttPublishRequest, MqttAttemptResponse, MqttResultResponse,
    MqttSimulateRequest, MqttSimulateResponse,
)

__all__ = [
    "SensorCreate", "SensorUpdate", "SensorResponse",
    "SensorListResponse", "SensorDetailResponse", "SensorMutationResponse",
    "SensorRegisterResponse", "SensorDeleteResponse",
    "SensorReadingCreate", "SensorReadingResponse", "SensorReadingListResponse",
    "FlowCreate", "FlowDeployResponse", "FlowListResponse",
    "FlowNodesResponse", "FlowDeleteResponse", "NodeRedHealthResponse",
    "MqttPublishRequest", "MqttAttemptResponse", "MqttResultResponse",
    "MqttSimulateRequest", "MqttSimulateResponse",
]
