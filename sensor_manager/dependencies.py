"""FastAPI dependencies - hand out the handles built in the app lifespan"""

from fastapi import Request

from .core.database import Database
from .node_red_client import NodeRedClient
from .services import FlowCoordinator, MqttGateway, SensorStore


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_store(request: Request) -> SensorStore:
    return request.app.state.store


def get_node_red(request: Request) -> NodeRedClient:
    return request.app.state.node_red


def get_coordinator(request: Request) -> FlowCoordinator:
    return request.app.state.coordinator


def get_mqtt_gateway(request: Request) -> MqttGateway:
    return request.app.state.mqtt_gateway
