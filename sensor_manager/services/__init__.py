"""Service layer"""

from .sensor_store import SensorStore
from .flow_generator import FlowBundle, generate_flow_bundle, build_sensor_flow, generate_flow_export
from .flow_coordinator import FlowCoordinator, RegistrationResult
from .mqtt_gateway import MqttGateway, TransportCandidate, PublishOutcome
from .sensor_simulator import generate_sensor_data

__all__ = [
    "SensorStore",
    "FlowBundle",
    "generate_flow_bundle",
    "build_sensor_flow",
    "generate_flow_export",
    "FlowCoordinator",
    "RegistrationResult",
    "MqttGateway",
    "TransportCandidate",
    "PublishOutcome",
    "generate_sensor_data",
]
