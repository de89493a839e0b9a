"""
Node-RED flow generation for registered sensors

Builds the node bundle deployed for one sensor:

    [tab] <- mqtt in -> json -> debug
                 |
           mqtt-broker (config node, outside the tab)

Pure construction, no I/O. Node ids carry a role prefix, the sensor id and a
random UUID so repeated generation for the same sensor never collides.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List
import copy
import uuid

from ..exceptions import InvalidInputError
from ..utils import normalize_broker_host, parse_json_text

DEFAULT_BROKER_PORT = 1883
DEFAULT_EXPORT_PAYLOAD = '{"value": 0}'

# Fixed broker-config protocol options
_BROKER_DEFAULTS: Dict[str, Any] = {
    "autoConnect": True,
    "usetls": False,
    "protocolVersion": "4",
    "keepalive": 60,
    "cleansession": True,
    "birthTopic": "",
    "birthQos": "0",
    "birthPayload": "",
    "birthMsg": {},
    "closeTopic": "",
    "closeQos": "0",
    "closePayload": "",
    "closeMsg": {},
    "willTopic": "",
    "willQos": "0",
    "willPayload": "",
    "willMsg": {},
    "userProps": "",
    "sessionExpiry": "",
}


@dataclass
class FlowBundle:
    """Nodes for one sensor flow"""
    flow_id: str
    nodes: List[Dict[str, Any]]
    configs: List[Dict[str, Any]]
    sample_payload: Any = None

    @property
    def all_nodes(self) -> List[Dict[str, Any]]:
        return [*self.nodes, *self.configs]

    @property
    def broker_config(self) -> Dict[str, Any]:
        return next(cfg for cfg in self.configs if cfg["type"] == "mqtt-broker")

    def node_ids(self) -> List[str]:
        return [node["id"] for node in self.all_nodes]


def new_node_id(role: str, sensor_id: str) -> str:
    """e.g. mqtt_temp-01_9f1c2e..."""
    return f"{role}_{sensor_id}_{uuid.uuid4().hex}"


def _require(**values: str):
    for name, value in values.items():
        if not value or not str(value).strip():
            raise InvalidInputError(name, "is required")


def generate_flow_bundle(
    sensor_id: str,
    broker_url: str,
    topic: str,
    sample_payload: str,
) -> FlowBundle:
    """
    Generate the Node-RED nodes for a sensor

    Args:
        sensor_id: Caller-chosen sensor id
        broker_url: Broker hostname as entered (scheme/port allowed)
        topic: MQTT topic the input node subscribes to
        sample_payload: JSON object text describing a typical message

    Returns:
        FlowBundle with tab + mqtt in + json + debug nodes and one broker config

    Raises:
        InvalidInputError: a required field is empty
        InvalidPayloadError: sample_payload is not a JSON object
    """
    _require(sensorId=sensor_id, brokerUrl=broker_url, topic=topic, samplePayload=sample_payload)
    parsed_payload = parse_json_text(sample_payload, require_object=True)

    flow_id = new_node_id("flow", sensor_id)
    mqtt_node_id = new_node_id("mqtt", sensor_id)
    json_node_id = new_node_id("json", sensor_id)
    debug_node_id = new_node_id("debug", sensor_id)
    broker_config_id = new_node_id("broker", sensor_id)

    flow_tab = {
        "id": flow_id,
        "type": "tab",
        "label": f"Sensor: {sensor_id}",
        "disabled": False,
        "info": f"Auto-generated flow for sensor {sensor_id}\nTopic: {topic}\nBroker: {broker_url}",
        "env": [],
    }

    broker_config = {
        "id": broker_config_id,
        "type": "mqtt-broker",
        "name": f"{sensor_id} Broker",
        "broker": broker_url,
        "port": DEFAULT_BROKER_PORT,
        "clientid": f"nodered_{sensor_id}",
        **copy.deepcopy(_BROKER_DEFAULTS),
    }

    mqtt_node = {
        "id": mqtt_node_id,
        "type": "mqtt in",
        "z": flow_id,
        "name": f"{sensor_id} Input",
        "topic": topic,
        "qos": "0",
        "datatype": "auto-detect",
        "broker": broker_config_id,
        "nl": False,
        "rap": True,
        "rh": 0,
        "inputs": 0,
        "x": 120,
        "y": 100,
        "wires": [[json_node_id]],
    }

    json_node = {
        "id": json_node_id,
        "type": "json",
        "z": flow_id,
        "name": "Parse JSON",
        "property": "payload",
        "action": "obj",
        "pretty": False,
        "x": 300,
        "y": 100,
        "wires": [[debug_node_id]],
    }

    debug_node = {
        "id": debug_node_id,
        "type": "debug",
        "z": flow_id,
        "name": f"{sensor_id} Debug",
        "active": True,
        "tosidebar": True,
        "console": False,
        "tostatus": False,
        "complete": "payload",
        "targetType": "msg",
        "statusVal": "",
        "statusType": "auto",
        "x": 480,
        "y": 100,
        "wires": [],
    }

    return FlowBundle(
        flow_id=flow_id,
        nodes=[flow_tab, mqtt_node, json_node, debug_node],
        configs=[broker_config],
        sample_payload=parsed_payload,
    )


def apply_broker_host(bundle: FlowBundle, broker_url: str, port: int = DEFAULT_BROKER_PORT) -> FlowBundle:
    """Point every broker config at the bare host and the fixed port"""
    host = normalize_broker_host(broker_url)
    for cfg in bundle.configs:
        if cfg["type"] == "mqtt-broker":
            cfg["broker"] = host
            cfg["port"] = port
    return bundle


def build_sensor_flow(sensor_id: str, broker_url: str, topic: str, sample_payload: str) -> FlowBundle:
    """Generate a bundle with the broker config ready for deployment"""
    bundle = generate_flow_bundle(sensor_id, broker_url, topic, sample_payload)
    return apply_broker_host(bundle, broker_url)


def flow_shape(bundle: FlowBundle) -> List[Dict[str, Any]]:
    """
    Id-free description of a bundle

    Ids are replaced by their position in the bundle so two bundles can be
    compared by wiring topology alone.
    """
    index = {node_id: pos for pos, node_id in enumerate(bundle.node_ids())}

    def _ref(value):
        return index.get(value, value)

    shape = []
    for node in bundle.all_nodes:
        entry = {k: v for k, v in node.items() if k not in ("id", "z", "wires", "broker")}
        if node["type"] == "mqtt-broker":
            entry.pop("broker", None)
        else:
            entry["broker"] = _ref(node.get("broker"))
        entry["z"] = _ref(node.get("z"))
        entry["wires"] = [[_ref(target) for target in port] for port in node.get("wires", [])]
        shape.append(entry)
    return shape


def generate_flow_export(flow_id: str, sensor_id: str, broker_url: str, topic: str) -> Dict[str, Any]:
    """Portable export document for sharing a sensor flow outside this service"""
    bundle = generate_flow_bundle(sensor_id, broker_url, topic, DEFAULT_EXPORT_PAYLOAD)

    # Re-home the generated nodes on the requested tab id
    for node in bundle.nodes:
        if node["id"] == bundle.flow_id:
            node["id"] = flow_id
        elif node.get("z") == bundle.flow_id:
            node["z"] = flow_id

    return {
        "id": flow_id,
        "label": f"Sensor: {sensor_id}",
        "nodes": bundle.nodes,
        "configs": bundle.configs,
        "env": [],
        "meta": {
            "module": "node-red",
            "type": "flows",
            "version": "1.0.0",
            "desc": f"Auto-generated flow for IoT sensor {sensor_id}",
            "keywords": ["iot", "mqtt", "sensor", sensor_id],
            "author": "IoT Sensor Manager",
        },
    }
