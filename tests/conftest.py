"""
Shared fixtures

- FakeNodeRed: in-memory Node-RED admin API served through httpx.MockTransport
- FakeBroker: stands in for paho's Client so MQTT tests never open sockets
- database/store/coordinator: wired against a temporary SQLite file
"""
import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from sensor_manager.core.config import Settings
from sensor_manager.core.database import Database
from sensor_manager.node_red_client import NodeRedClient
from sensor_manager.services import FlowCoordinator, MqttGateway, SensorStore

NODE_RED_URL = "http://node-red.test:1880"


# ============================================================
# Node-RED fake
# ============================================================

class FakeNodeRed:
    """Minimal Node-RED admin API: /settings, GET /flows, POST /flows"""

    def __init__(self, flows: Optional[List[Dict[str, Any]]] = None):
        self.flows: List[Dict[str, Any]] = list(flows or [])
        self.rev_number = 1
        self.healthy = True
        self.api_v1 = False
        self.read_status: Optional[int] = None
        self.deploy_status: Optional[int] = None
        self.deploy_body = "deploy rejected"
        self.conflicts = 0
        self.deploys: List[Dict[str, Any]] = []
        self.deploy_headers: List[httpx.Headers] = []

    @property
    def rev(self) -> str:
        return f"rev-{self.rev_number}"

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path

        if path == "/settings":
            if not self.healthy:
                raise httpx.ConnectError("Connection refused", request=request)
            return httpx.Response(200, json={"httpNodeRoot": "/", "version": "3.1.0"})

        if path == "/flows" and request.method == "GET":
            if self.read_status:
                return httpx.Response(self.read_status, text="read failed")
            if self.api_v1:
                return httpx.Response(200, json=self.flows)
            return httpx.Response(200, json={"flows": self.flows, "rev": self.rev})

        if path == "/flows" and request.method == "POST":
            body = json.loads(request.content)
            self.deploys.append(body)
            self.deploy_headers.append(request.headers)

            if self.conflicts:
                self.conflicts -= 1
                # Someone else deployed in between
                self.rev_number += 1
                return httpx.Response(409, json={"code": "version_mismatch"})
            if self.deploy_status:
                return httpx.Response(self.deploy_status, text=self.deploy_body)
            if "rev" in body and body["rev"] != self.rev:
                return httpx.Response(409, json={"code": "version_mismatch"})

            self.flows = body["flows"]
            self.rev_number += 1
            return httpx.Response(200, json={"rev": self.rev})

        return httpx.Response(404, text="not found")

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def tab(self, flow_id: str) -> Optional[Dict[str, Any]]:
        return next((n for n in self.flows if n.get("id") == flow_id and n.get("type") == "tab"), None)

    def nodes_on(self, flow_id: str) -> List[Dict[str, Any]]:
        return [n for n in self.flows if n.get("z") == flow_id]


# ============================================================
# MQTT fake
# ============================================================

class FakeMessageInfo:
    def __init__(self, mid: int, published: bool):
        self.mid = mid
        self._published = published

    def wait_for_publish(self, timeout=None):
        return None

    def is_published(self) -> bool:
        return self._published


class FakeMqttClient:
    def __init__(self, broker: "FakeBroker", client_id: str, transport: str):
        self.broker = broker
        self.client_id = client_id
        self.transport = transport
        self.on_connect = None
        self.connect_timeout = None
        self.tls = False
        self.ws_path = None
        self.connected_to = None
        self.loop_started = False
        self.loop_stopped = False
        self.disconnected = False

    def tls_set(self, *args, **kwargs):
        self.tls = True

    def ws_set_options(self, path="/mqtt", headers=None):
        self.ws_path = path

    def connect(self, host, port, keepalive=60):
        self.connected_to = (host, port)
        self.broker.connect_attempts.append((self.transport, port, self.tls))
        if (self.transport, port) not in self.broker.reachable:
            raise TimeoutError("timed out")

    def loop_start(self):
        self.loop_started = True
        if self.broker.send_connack:
            self.on_connect(self, None, {}, self.broker.reason_code, None)

    def publish(self, topic, payload, qos=0, retain=False):
        self.broker.published.append(
            {"topic": topic, "payload": payload, "qos": qos, "retain": retain, "client_id": self.client_id}
        )
        return FakeMessageInfo(len(self.broker.published), self.broker.publish_completes)

    def disconnect(self):
        self.disconnected = True

    def loop_stop(self):
        self.loop_stopped = True


class FakeBroker:
    """Decides which (transport, port) pairs accept connections"""

    def __init__(self, reachable=(("tcp", 1883),)):
        self.reachable = set(reachable)
        self.send_connack = True
        self.reason_code = 0
        self.publish_completes = True
        self.clients: List[FakeMqttClient] = []
        self.connect_attempts: List[tuple] = []
        self.published: List[Dict[str, Any]] = []

    def client_factory(self, client_id: str, transport: str) -> FakeMqttClient:
        client = FakeMqttClient(self, client_id, transport)
        self.clients.append(client)
        return client


# ============================================================
# Fixtures
# ============================================================

@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'sensors.db'}"


@pytest.fixture
async def database(database_url):
    db = Database(database_url)
    await db.open()
    yield db
    await db.close()


@pytest.fixture
def store(database):
    return SensorStore(database)


@pytest.fixture
def node_red():
    return FakeNodeRed()


@pytest.fixture
async def node_red_client(node_red):
    async with NodeRedClient(NODE_RED_URL, transport=node_red.transport()) as client:
        yield client


@pytest.fixture
def coordinator(store, node_red_client):
    return FlowCoordinator(store, node_red_client, max_attempts=3, backoff_base=0)


@pytest.fixture
def broker():
    return FakeBroker()


@pytest.fixture
def gateway(broker):
    return MqttGateway(client_factory=broker.client_factory, timeout_ms=1000)


@pytest.fixture
def settings(database_url):
    return Settings(
        database_url=database_url,
        node_red_base_url=NODE_RED_URL,
        flow_deploy_backoff_base=0,
        mqtt_timeout_ms=1000,
        json_logs=False,
    )


@pytest.fixture
async def app(settings, node_red, broker):
    from sensor_manager.main import create_app

    application = create_app(
        settings,
        node_red_transport=node_red.transport(),
        mqtt_client_factory=broker.client_factory,
    )
    async with application.router.lifespan_context(application):
        yield application


@pytest.fixture
async def api_client(app):
    """Async HTTP client bound to the app (lifespan already running)"""
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def registration():
    """Registration body used across API tests"""
    return {
        "sensorId": "temp-01",
        "brokerUrl": "broker.example.com",
        "topic": "sensors/temp-01/data",
        "samplePayload": '{"value":1}',
    }
