"""
Custom exceptions for the sensor manager
Each exception carries the HTTP status it maps to at the API boundary
"""
from typing import Optional, Any


class SensorManagerException(Exception):
    """Base exception for all sensor manager errors"""

    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert exception to dictionary for API responses"""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details
        }

# ============================================================
# Validation Exceptions
# ============================================================

class InvalidInputError(SensorManagerException):
    """Missing or malformed request input"""

    def __init__(self, field: str, message: str, error_code: str = "INVALID_INPUT"):
        super().__init__(
            message=f"Invalid {field}: {message}",
            error_code=error_code,
            details={"field": field, "error": message}
        )
        self.field = field


class InvalidPayloadError(InvalidInputError):
    """Sample payload is not acceptable JSON"""

    def __init__(self, message: str, field: str = "samplePayload"):
        super().__init__(field, message, error_code="INVALID_PAYLOAD")

# ============================================================
# Record Exceptions
# ============================================================

class RecordNotFoundError(SensorManagerException):
    """Record not found in database"""

    http_status = 404

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            error_code="RECORD_NOT_FOUND",
            details={"resource": resource, "identifier": str(identifier)}
        )


class SensorNotFoundError(RecordNotFoundError):
    """Sensor not found"""

    def __init__(self, sensor_id: str):
        super().__init__("Sensor", sensor_id)
        self.sensor_id = sensor_id


class DuplicateSensorError(SensorManagerException):
    """A sensor with this id is already registered"""

    http_status = 409

    def __init__(self, sensor_id: str):
        super().__init__(
            message=f"Sensor already exists: {sensor_id}",
            error_code="DUPLICATE_RESOURCE",
            details={"resource": "Sensor", "identifier": sensor_id}
        )
        self.sensor_id = sensor_id

# ============================================================
# Node-RED Exceptions
# ============================================================

class NodeRedError(SensorManagerException):
    """Node-RED rejected a request or returned something unusable"""

    http_status = 502

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        error_code: str = "NODE_RED_ERROR"
    ):
        details = {}
        if status_code is not None:
            details["upstream_status"] = status_code
        if body:
            details["upstream_body"] = body
        super().__init__(message=message, error_code=error_code, details=details)
        self.status_code = status_code
        self.body = body


class UpstreamUnavailableError(NodeRedError):
    """Node-RED is not reachable"""

    http_status = 503

    def __init__(self, base_url: str):
        super().__init__(
            message=f"Node-RED is not running at {base_url}. Start it first, then try again.",
            error_code="UPSTREAM_UNAVAILABLE"
        )
        self.details["url"] = base_url


class FlowRevisionConflictError(NodeRedError):
    """Flow document changed since it was read (stale rev)"""

    def __init__(self, rev: Optional[str], body: Optional[str] = None):
        super().__init__(
            message=f"Flow revision {rev} is stale",
            status_code=409,
            body=body,
            error_code="FLOW_REVISION_CONFLICT"
        )
        self.rev = rev


def _wrap_upstream(cls_message: str, cause: NodeRedError, error_code: str) -> dict:
    return {
        "message": f"{cls_message}: {cause.message}",
        "status_code": cause.status_code,
        "body": cause.body,
        "error_code": error_code,
    }


class FlowDeployFailedError(NodeRedError):
    """Deploying a new sensor flow failed"""

    def __init__(self, cause: NodeRedError):
        super().__init__(**_wrap_upstream("Failed to deploy Node-RED flow", cause, "FLOW_DEPLOY_FAILED"))


class UpstreamUpdateFailedError(NodeRedError):
    """Toggling a sensor flow tab failed"""

    def __init__(self, cause: NodeRedError):
        super().__init__(**_wrap_upstream("Failed to update Node-RED flow state", cause, "UPSTREAM_UPDATE_FAILED"))


class UpstreamDeleteFailedError(NodeRedError):
    """Removing a sensor flow failed"""

    def __init__(self, cause: NodeRedError):
        super().__init__(**_wrap_upstream("Failed to delete Node-RED flow", cause, "UPSTREAM_DELETE_FAILED"))

# ============================================================
# MQTT Exceptions
# ============================================================
# Raised inside the gateway and reported as failed results, never as HTTP errors.

class MqttError(SensorManagerException):
    """MQTT broker interaction failed"""
    pass


class ConnectionTimeoutError(MqttError):
    """Socket to the broker could not be opened in time"""

    def __init__(self, host: str, port: int, reason: str = "Connection timeout"):
        super().__init__(
            message=f"{reason} ({host}:{port})",
            error_code="CONNECTION_TIMEOUT",
            details={"host": host, "port": port}
        )


class ConnackTimeoutError(MqttError):
    """Broker accepted the socket but never acknowledged the CONNECT"""

    def __init__(self, host: str, port: int):
        super().__init__(
            message=f"No CONNACK from {host}:{port}",
            error_code="CONNACK_TIMEOUT",
            details={"host": host, "port": port}
        )


class ConnectionRefusedByBrokerError(MqttError):
    """Broker answered the CONNECT with a failure reason code"""

    def __init__(self, host: str, port: int, reason: str):
        super().__init__(
            message=f"Connection refused by {host}:{port}: {reason}",
            error_code="CONNECTION_REFUSED",
            details={"host": host, "port": port, "reason": reason}
        )


class MqttPublishError(MqttError):
    """Publish was not completed"""

    def __init__(self, topic: str, reason: str):
        super().__init__(
            message=f"Publish to {topic} failed: {reason}",
            error_code="PUBLISH_FAILED",
            details={"topic": topic}
        )
