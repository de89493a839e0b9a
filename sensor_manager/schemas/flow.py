"""Node-RED flow Pydantic schemas"""

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Optional, Dict, Any, List


class _CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


class FlowCreate(_CamelModel):
    """Parameters for generating and deploying a sensor flow"""
    sensor_id: str = Field(..., min_length=1, max_length=255)
    broker_url: str = Field(..., min_length=1, max_length=512)
    topic: str = Field(..., min_length=1, max_length=512)
    sample_payload: str = Field(..., min_length=1)


class FlowDeployResponse(_CamelModel):
    success: bool = True
    flow_id: str
    message: str


class FlowListResponse(_CamelModel):
    flows: List[Dict[str, Any]]


class FlowNodesResponse(_CamelModel):
    flow_nodes: List[Dict[str, Any]]


class FlowDeleteResponse(_CamelModel):
    success: bool = True
    flow_deleted: bool
    message: str


class NodeRedHealthResponse(_CamelModel):
    ok: bool
    url: str
    status: Optional[int] = None
    error: Optional[str] = None
