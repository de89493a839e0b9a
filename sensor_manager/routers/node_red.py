"""
Node-RED Router - pass-through flow management
"""
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ..dependencies import get_coordinator, get_node_red, get_store
from ..exceptions import RecordNotFoundError
from ..node_red_client import NodeRedClient
from ..schemas import (
    FlowCreate,
    FlowDeployResponse,
    FlowListResponse,
    FlowNodesResponse,
    FlowDeleteResponse,
    NodeRedHealthResponse,
)
from ..services import FlowCoordinator, SensorStore, generate_flow_export

router = APIRouter(prefix="/node-red", tags=["node-red"])


@router.get("/health", response_model=NodeRedHealthResponse)
async def node_red_health(node_red: NodeRedClient = Depends(get_node_red)):
    """Probe Node-RED; 503 when it does not answer"""
    health = NodeRedHealthResponse(**(await node_red.health_check()))
    if not health.ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=health.model_dump(by_alias=True, exclude_none=True),
        )
    return health


@router.get("/flows", response_model=FlowListResponse)
async def list_flows(coordinator: FlowCoordinator = Depends(get_coordinator)):
    """All nodes of the running flow document"""
    return FlowListResponse(flows=await coordinator.list_flows())


@router.post("/flows", response_model=FlowDeployResponse, status_code=status.HTTP_201_CREATED)
async def create_flow(body: FlowCreate, coordinator: FlowCoordinator = Depends(get_coordinator)):
    """Generate and deploy a sensor flow without registering the sensor"""
    bundle = await coordinator.deploy_flow(
        sensor_id=body.sensor_id,
        broker_url=body.broker_url,
        topic=body.topic,
        sample_payload=body.sample_payload,
    )
    return FlowDeployResponse(
        flow_id=bundle.flow_id,
        message="Node-RED flow created and deployed successfully",
    )


@router.get("/flows/{flow_id}", response_model=FlowNodesResponse)
async def get_flow(flow_id: str, coordinator: FlowCoordinator = Depends(get_coordinator)):
    return FlowNodesResponse(flow_nodes=await coordinator.get_flow(flow_id))


@router.get("/flows/{flow_id}/export")
async def export_flow(flow_id: str, store: SensorStore = Depends(get_store)):
    """Portable export of the flow belonging to a registered sensor"""
    sensor = await store.get_by_flow_id(flow_id)
    if sensor is None:
        raise RecordNotFoundError("Flow", flow_id)
    return generate_flow_export(flow_id, sensor.sensor_id, sensor.broker_url, sensor.topic)


@router.delete("/flows/{flow_id}", response_model=FlowDeleteResponse)
async def delete_flow(flow_id: str, coordinator: FlowCoordinator = Depends(get_coordinator)):
    removed = await coordinator.remove_flow(flow_id)
    return FlowDeleteResponse(
        flow_deleted=removed,
        message="Flow deleted successfully" if removed else "Flow not found in Node-RED",
    )
