"""
Tests for the one-shot MQTT gateway

FakeBroker (conftest) replaces paho's Client; it decides which
(transport, port) pairs accept a connection and whether CONNACK and
publish acknowledgements arrive.
"""
import json

import pytest

from sensor_manager.exceptions import InvalidInputError, InvalidPayloadError
from sensor_manager.services.mqtt_gateway import MqttGateway, TransportCandidate

from .conftest import FakeBroker


def _gateway(broker, timeout_ms=1000):
    return MqttGateway(client_factory=broker.client_factory, timeout_ms=timeout_ms)


class TestTransportPolicy:

    def test_candidates(self):
        gateway = MqttGateway()

        assert gateway.candidates_for(None) == [
            TransportCandidate("tcp", 1883),
            TransportCandidate("websockets", 8000, path="/mqtt"),
        ]
        assert gateway.candidates_for("tcp") == [TransportCandidate("tcp", 1883)]
        assert gateway.candidates_for("tls") == [TransportCandidate("tcp", 8883, tls=True)]
        assert gateway.candidates_for("websocket") == [TransportCandidate("websockets", 8000, path="/mqtt")]

    def test_unknown_transport(self):
        with pytest.raises(InvalidInputError):
            MqttGateway().candidates_for("udp")

    def test_labels(self):
        assert TransportCandidate("tcp", 1883).label == "tcp"
        assert TransportCandidate("tcp", 8883, tls=True).label == "tls"
        assert TransportCandidate("websockets", 8000, path="/mqtt").label == "websocket"

    @pytest.mark.parametrize("requested,expected", [(None, 1.0), (50, 1.0), (2500, 2.5), (20000, 8.0)])
    def test_timeout_is_clamped(self, requested, expected):
        assert MqttGateway(timeout_ms=1000)._timeout_seconds(requested) == expected


class TestPublish:

    @pytest.mark.asyncio
    async def test_first_candidate_succeeds(self, gateway, broker):
        outcome = await gateway.publish("broker.example.com", "sensors/t", '{"value": 1}', qos=1)

        assert outcome.success is True
        assert outcome.candidate.port == 1883
        assert outcome.message_id == 1
        assert broker.connect_attempts == [("tcp", 1883, False)]
        assert broker.published == [
            {
                "topic": "sensors/t",
                "payload": '{"value": 1}',
                "qos": 1,
                "retain": False,
                "client_id": broker.clients[0].client_id,
            }
        ]

    @pytest.mark.asyncio
    async def test_falls_back_to_websocket(self):
        broker = FakeBroker(reachable=(("websockets", 8000),))

        outcome = await _gateway(broker).publish("broker.example.com", "sensors/t", "{}")

        assert outcome.success is True
        assert outcome.candidate.label == "websocket"
        assert broker.connect_attempts == [("tcp", 1883, False), ("websockets", 8000, False)]
        assert broker.clients[1].ws_path == "/mqtt"
        assert [a.success for a in outcome.attempts] == [False, True]
        assert outcome.attempts[0].error_code == "CONNECTION_TIMEOUT"

    @pytest.mark.asyncio
    async def test_fails_only_when_every_candidate_fails(self):
        broker = FakeBroker(reachable=())

        outcome = await _gateway(broker).publish("broker.example.com", "sensors/t", "{}")

        assert outcome.success is False
        assert len(outcome.attempts) == 2
        assert outcome.error == outcome.attempts[-1].error
        assert outcome.message_id is None
        assert broker.published == []

    @pytest.mark.asyncio
    async def test_tls(self):
        broker = FakeBroker(reachable=(("tcp", 8883),))

        outcome = await _gateway(broker).publish("broker.example.com", "t", "{}", transport="tls")

        assert outcome.success is True
        assert broker.clients[0].tls is True
        assert broker.connect_attempts == [("tcp", 8883, True)]

    @pytest.mark.asyncio
    async def test_explicit_transport_has_no_fallback(self):
        broker = FakeBroker(reachable=(("websockets", 8000),))

        outcome = await _gateway(broker).publish("broker.example.com", "t", "{}", transport="tcp")

        assert outcome.success is False
        assert broker.connect_attempts == [("tcp", 1883, False)]

    @pytest.mark.asyncio
    async def test_connack_timeout(self, gateway, broker):
        broker.send_connack = False

        outcome = await gateway.publish("broker.example.com", "t", "{}", transport="tcp")

        assert outcome.success is False
        assert outcome.attempts[0].error_code == "CONNACK_TIMEOUT"

    @pytest.mark.asyncio
    async def test_connection_refused(self, gateway, broker):
        broker.reason_code = 5

        outcome = await gateway.publish("broker.example.com", "t", "{}", transport="tcp")

        assert outcome.success is False
        assert outcome.attempts[0].error_code == "CONNECTION_REFUSED"
        assert broker.published == []

    @pytest.mark.asyncio
    async def test_publish_failure_is_not_retried(self, gateway, broker):
        broker.publish_completes = False

        outcome = await gateway.publish("broker.example.com", "t", "{}")

        assert outcome.success is False
        assert len(broker.published) == 1
        assert len(outcome.attempts) == 1
        assert outcome.attempts[0].error_code == "PUBLISH_FAILED"

    @pytest.mark.asyncio
    async def test_clients_always_torn_down(self):
        broker = FakeBroker(reachable=(("websockets", 8000),))
        broker.publish_completes = False

        await _gateway(broker).publish("broker.example.com", "t", "{}")

        assert len(broker.clients) == 2
        for client in broker.clients:
            assert client.disconnected is True
            assert client.loop_stopped is True

    @pytest.mark.asyncio
    async def test_host_is_normalized(self, gateway, broker):
        outcome = await gateway.publish("mqtt://broker.example.com:1883", "t", "{}")

        assert outcome.host == "broker.example.com"
        assert broker.clients[0].connected_to == ("broker.example.com", 1883)

    @pytest.mark.asyncio
    async def test_websocket_url_with_path(self, gateway, broker):
        outcome = await gateway.publish("ws://broker.example.com:8000/mqtt", "t", "{}")

        assert outcome.host == "broker.example.com"
        assert broker.clients[0].connected_to == ("broker.example.com", 1883)

    @pytest.mark.asyncio
    async def test_connect_timeout_applied(self):
        broker = FakeBroker()

        await _gateway(broker).publish("broker.example.com", "t", "{}", timeout_ms=3000)

        assert broker.clients[0].connect_timeout == 3.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", ["42", '"text"', "[1, 2]", "null"])
    async def test_any_json_value_accepted(self, gateway, payload):
        assert (await gateway.publish("broker.example.com", "t", payload)).success is True


class TestPublishValidation:

    @pytest.mark.asyncio
    async def test_invalid_json(self, gateway, broker):
        with pytest.raises(InvalidPayloadError):
            await gateway.publish("broker.example.com", "t", "{not json")

        assert broker.clients == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("host,topic,qos", [("", "t", 0), ("mqtt://", "t", 0), ("b", "", 0), ("b", "t", 3)])
    async def test_bad_input(self, gateway, broker, host, topic, qos):
        with pytest.raises(InvalidInputError):
            await gateway.publish(host, topic, "{}", qos=qos)

        assert broker.clients == []


class TestConnectivityTest:

    @pytest.mark.asyncio
    async def test_forces_qos_zero(self, gateway, broker):
        outcome = await gateway.test("broker.example.com", "t", "{}")

        assert outcome.success is True
        assert outcome.qos == 0
        assert broker.published[0]["qos"] == 0
        assert broker.clients[0].client_id.startswith("tester_")

    @pytest.mark.asyncio
    async def test_result_dict(self, gateway):
        result = (await gateway.test("broker.example.com", "t", "{}")).to_dict()

        assert result["success"] is True
        assert result["port"] == 1883
        assert result["transport"] == "tcp"
        assert result["timestamp"].endswith("Z")
        assert result["attempts"][0]["transport"] == "tcp"


class TestSimulate:

    @pytest.mark.asyncio
    async def test_publishes_generated_reading(self, gateway, broker):
        reading, outcome = await gateway.simulate("broker.example.com", "temp-01", "temperature")

        assert outcome.success is True
        assert outcome.topic == "sensors/temp-01/data"
        published = broker.published[0]
        assert published["topic"] == "sensors/temp-01/data"
        assert json.loads(published["payload"]) == reading
        assert reading["unit"] == "°C"
        assert broker.clients[0].client_id.startswith("simulator_")

    @pytest.mark.asyncio
    async def test_unknown_type_publishes_nothing(self, gateway, broker):
        with pytest.raises(InvalidInputError):
            await gateway.simulate("broker.example.com", "temp-01", "voltage")

        assert broker.clients == []
