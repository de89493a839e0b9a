"""
MQTT Gateway - one-shot connect / publish / disconnect

Used to check that a broker accepts a connection and a publish. Nothing is
kept open: every call builds a fresh paho client, tries the transport
candidates in order, publishes once on the first one that connects, and
always tears the client down before returning.

Transport policy is data, not branching:

    default    tcp:1883 -> websockets:8000/mqtt
    tcp        tcp:1883
    tls        tcp:8883 (TLS)
    websocket  websockets:8000/mqtt
"""
import asyncio
import json
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import paho.mqtt.client as mqtt

from ..exceptions import (
    InvalidInputError,
    MqttError,
    ConnectionTimeoutError,
    ConnackTimeoutError,
    ConnectionRefusedByBrokerError,
    MqttPublishError,
)
from ..logging_config import get_logger
from ..utils import generate_client_id, isoformat_utc, normalize_broker_host, parse_json_text, utcnow
from .sensor_simulator import generate_sensor_data, simulation_topic

logger = get_logger(__name__)

TRANSPORTS = ("tcp", "tls", "websocket")
MIN_TIMEOUT_MS = 1000
MAX_TIMEOUT_MS = 8000


@dataclass(frozen=True)
class TransportCandidate:
    """One way of reaching a broker"""
    transport: str  # paho transport name: "tcp" or "websockets"
    port: int
    path: Optional[str] = None
    tls: bool = False

    @property
    def label(self) -> str:
        if self.transport == "websockets":
            return "websocket"
        return "tls" if self.tls else "tcp"


@dataclass
class AttemptOutcome:
    candidate: TransportCandidate
    success: bool
    error: Optional[str] = None
    error_code: Optional[str] = None


@dataclass
class PublishOutcome:
    success: bool
    message: str
    host: str
    topic: str
    qos: int
    timestamp: str
    candidate: Optional[TransportCandidate] = None
    message_id: Optional[int] = None
    error: Optional[str] = None
    attempts: List[AttemptOutcome] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "host": self.host,
            "topic": self.topic,
            "qos": self.qos,
            "port": self.candidate.port if self.candidate else None,
            "transport": self.candidate.label if self.candidate else None,
            "message_id": self.message_id,
            "error": self.error,
            "timestamp": self.timestamp,
            "attempts": [
                {
                    "transport": a.candidate.label,
                    "port": a.candidate.port,
                    "path": a.candidate.path,
                    "tls": a.candidate.tls,
                    "success": a.success,
                    "error": a.error,
                    "error_code": a.error_code,
                }
                for a in self.attempts
            ],
        }


def _paho_client(client_id: str, transport: str):
    return mqtt.Client(
        mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        transport=transport,
        protocol=mqtt.MQTTv311,
        clean_session=True,
        reconnect_on_failure=False,
    )


def _is_failure(reason_code) -> bool:
    is_failure = getattr(reason_code, "is_failure", None)
    if is_failure is not None:
        return bool(is_failure)
    return reason_code != 0


class MqttGateway:
    """Best-effort broker verification"""

    def __init__(
        self,
        default_port: int = 1883,
        tls_port: int = 8883,
        ws_port: int = 8000,
        ws_path: str = "/mqtt",
        timeout_ms: int = 5000,
        client_factory: Optional[Callable[..., Any]] = None,
    ):
        self.default_port = default_port
        self.tls_port = tls_port
        self.ws_port = ws_port
        self.ws_path = ws_path
        self.timeout_ms = timeout_ms
        self.client_factory = client_factory or _paho_client

    def candidates_for(self, transport: Optional[str]) -> List[TransportCandidate]:
        """Ordered candidates for a requested transport (None = default policy)"""
        plain = TransportCandidate("tcp", self.default_port)
        tls = TransportCandidate("tcp", self.tls_port, tls=True)
        websocket = TransportCandidate("websockets", self.ws_port, path=self.ws_path)

        policy = {
            None: [plain, websocket],
            "tcp": [plain],
            "tls": [tls],
            "websocket": [websocket],
        }
        if transport not in policy:
            raise InvalidInputError("transport", f"must be one of {', '.join(TRANSPORTS)}")
        return policy[transport]

    async def publish(
        self,
        host: str,
        topic: str,
        payload: str,
        qos: int = 0,
        transport: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        client_prefix: str = "publisher",
    ) -> PublishOutcome:
        """
        Connect, publish once, disconnect

        Connection failures are reported in the outcome; only bad input raises.

        Raises:
            InvalidInputError: missing host/topic, bad qos or transport
            InvalidPayloadError: payload is not valid JSON
        """
        bare_host = normalize_broker_host(host)
        if not bare_host:
            raise InvalidInputError("brokerUrl", "is required")
        if not topic:
            raise InvalidInputError("topic", "is required")
        if qos not in (0, 1, 2):
            raise InvalidInputError("qos", "must be 0, 1 or 2")
        parse_json_text(payload, field="payload")

        candidates = self.candidates_for(transport)
        timeout = self._timeout_seconds(timeout_ms)

        return await asyncio.to_thread(
            self._run, bare_host, topic, payload, qos, candidates, timeout, client_prefix
        )

    async def test(
        self,
        host: str,
        topic: str,
        payload: str,
        transport: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ) -> PublishOutcome:
        """Connectivity test: a QoS 0 publish"""
        return await self.publish(
            host, topic, payload, qos=0, transport=transport, timeout_ms=timeout_ms, client_prefix="tester"
        )

    async def simulate(
        self,
        host: str,
        sensor_id: str,
        data_type: str = "generic",
        qos: int = 0,
        transport: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ) -> Tuple[Dict[str, Any], PublishOutcome]:
        """
        Publish one generated reading to sensors/<sensor_id>/data

        Returns:
            (reading, outcome)
        """
        reading = generate_sensor_data(sensor_id, data_type)
        outcome = await self.publish(
            host,
            simulation_topic(sensor_id),
            json.dumps(reading, ensure_ascii=False),
            qos=qos,
            transport=transport,
            timeout_ms=timeout_ms,
            client_prefix="simulator",
        )
        return reading, outcome

    def _timeout_seconds(self, timeout_ms: Optional[int]) -> float:
        value = timeout_ms if timeout_ms is not None else self.timeout_ms
        return min(max(value, MIN_TIMEOUT_MS), MAX_TIMEOUT_MS) / 1000.0

    def _run(
        self,
        host: str,
        topic: str,
        payload: str,
        qos: int,
        candidates: List[TransportCandidate],
        timeout: float,
        client_prefix: str,
    ) -> PublishOutcome:
        attempts: List[AttemptOutcome] = []

        for candidate in candidates:
            try:
                message_id = self._publish_once(host, candidate, topic, payload, qos, timeout, client_prefix)
            except MqttPublishError as e:
                # Connected but the publish did not complete; no retry of the publish
                attempts.append(AttemptOutcome(candidate, False, e.message, e.error_code))
                logger.warning("mqtt_publish_failed", host=host, port=candidate.port, topic=topic, error=e.message)
                break
            except MqttError as e:
                attempts.append(AttemptOutcome(candidate, False, e.message, e.error_code))
                logger.warning(
                    "mqtt_candidate_failed",
                    host=host,
                    transport=candidate.label,
                    port=candidate.port,
                    error=e.message,
                )
                continue

            attempts.append(AttemptOutcome(candidate, True))
            logger.info("mqtt_published", host=host, transport=candidate.label, port=candidate.port, topic=topic, qos=qos)
            return PublishOutcome(
                success=True,
                message=f"MQTT publish successful to {host}:{candidate.port}",
                host=host,
                topic=topic,
                qos=qos,
                timestamp=isoformat_utc(utcnow()),
                candidate=candidate,
                message_id=message_id,
                attempts=attempts,
            )

        last = attempts[-1]
        return PublishOutcome(
            success=False,
            message=f"MQTT publish to {host} failed",
            host=host,
            topic=topic,
            qos=qos,
            timestamp=isoformat_utc(utcnow()),
            error=last.error,
            attempts=attempts,
        )

    def _publish_once(
        self,
        host: str,
        candidate: TransportCandidate,
        topic: str,
        payload: str,
        qos: int,
        timeout: float,
        client_prefix: str,
    ) -> Optional[int]:
        """Single candidate: returns the message id, raises MqttError on failure"""
        client = self.client_factory(client_id=generate_client_id(client_prefix), transport=candidate.transport)
        client.connect_timeout = timeout
        if candidate.tls:
            client.tls_set()
        if candidate.path:
            client.ws_set_options(path=candidate.path)

        connack = threading.Event()
        state: Dict[str, Any] = {}

        def on_connect(client, userdata, flags, reason_code, properties):
            state["reason_code"] = reason_code
            connack.set()

        client.on_connect = on_connect

        try:
            try:
                client.connect(host, candidate.port, keepalive=60)
            except (OSError, ValueError) as e:
                raise ConnectionTimeoutError(host, candidate.port, reason=str(e) or type(e).__name__)

            client.loop_start()
            if not connack.wait(timeout):
                raise ConnackTimeoutError(host, candidate.port)
            if _is_failure(state["reason_code"]):
                raise ConnectionRefusedByBrokerError(host, candidate.port, str(state["reason_code"]))

            try:
                info = client.publish(topic, payload, qos=qos, retain=False)
                info.wait_for_publish(timeout=timeout)
            except (RuntimeError, ValueError) as e:
                raise MqttPublishError(topic, str(e))
            if not info.is_published():
                raise MqttPublishError(topic, "timed out waiting for the broker")
            return info.mid
        finally:
            client.disconnect()
            client.loop_stop()
