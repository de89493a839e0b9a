"""
MQTT Router - one-shot publish, connectivity test and simulated readings

Broker failures come back as {"success": false, ...} with 200; only bad
input is an HTTP error.
"""
from fastapi import APIRouter, Depends

from ..dependencies import get_mqtt_gateway
from ..schemas import MqttPublishRequest, MqttResultResponse, MqttSimulateRequest, MqttSimulateResponse
from ..services import MqttGateway

router = APIRouter(prefix="/mqtt", tags=["mqtt"])


@router.post("/publish", response_model=MqttResultResponse)
async def publish_message(body: MqttPublishRequest, gateway: MqttGateway = Depends(get_mqtt_gateway)):
    """Publish one message with the requested QoS"""
    outcome = await gateway.publish(
        host=body.host,
        topic=body.topic,
        payload=body.payload,
        qos=body.qos,
        transport=body.transport,
        timeout_ms=body.timeout_ms,
    )
    return MqttResultResponse(**outcome.to_dict())


@router.post("/test", response_model=MqttResultResponse)
async def test_connection(body: MqttPublishRequest, gateway: MqttGateway = Depends(get_mqtt_gateway)):
    """Connect and publish at QoS 0 to prove the broker is reachable"""
    outcome = await gateway.test(
        host=body.host,
        topic=body.topic,
        payload=body.payload,
        transport=body.transport,
        timeout_ms=body.timeout_ms,
    )
    return MqttResultResponse(**outcome.to_dict())


@router.post("/simulate", response_model=MqttSimulateResponse)
async def simulate_reading(body: MqttSimulateRequest, gateway: MqttGateway = Depends(get_mqtt_gateway)):
    """Publish one synthetic reading to sensors/<sensorId>/data"""
    reading, outcome = await gateway.simulate(
        host=body.host,
        sensor_id=body.sensor_id,
        data_type=body.data_type,
        qos=body.qos,
        transport=body.transport,
        timeout_ms=body.timeout_ms,
    )
    return MqttSimulateResponse(reading=reading, **outcome.to_dict())
