"""
Utility functions used across the application
Keep these pure functions without side effects
"""
import json
import re
import uuid
from datetime import datetime, timezone
from typing import Any

from .exceptions import InvalidPayloadError

# ============================================================
# ID Generation
# ============================================================

def generate_request_id() -> str:
    """Generate unique request ID for tracing"""
    return f"req_{uuid.uuid4().hex[:12]}"


def generate_client_id(prefix: str) -> str:
    """Random MQTT client id, e.g. tester_3f9a0c21b4d7"""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"

# ============================================================
# Time
# ============================================================

def utcnow() -> datetime:
    """
    Current UTC time as a naive datetime

    Stored naive so SQLite and PostgreSQL TIMESTAMP columns round-trip the
    same value.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat_utc(dt: datetime) -> str:
    """ISO-8601 with a Z suffix"""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.isoformat(timespec="milliseconds") + "Z"

# ============================================================
# String Manipulation
# ============================================================

_SCHEME_RE = re.compile(r"^(mqtts?|wss?|tcp|ssl)://", re.IGNORECASE)
_PORT_RE = re.compile(r":\d+$")


def normalize_broker_host(broker_url: str) -> str:
    """
    Reduce a broker URL to a bare hostname

    Examples:
        "mqtt://broker.example.com:1883" -> "broker.example.com"
        "broker.example.com:8883" -> "broker.example.com"
        "ws://broker.example.com:8000/mqtt" -> "broker.example.com"
        "broker.example.com" -> "broker.example.com"
    """
    if not broker_url:
        return ""
    host = _SCHEME_RE.sub("", broker_url.strip())
    host = host.partition("/")[0]
    return _PORT_RE.sub("", host)

# ============================================================
# JSON Validation
# ============================================================

def parse_json_text(text: str, field: str = "samplePayload", require_object: bool = False) -> Any:
    """
    Parse JSON text, raising InvalidPayloadError on failure

    With require_object=True, only a JSON object is accepted; bare numbers,
    strings, arrays and null are rejected.
    """
    try:
        value = json.loads(text)
    except (TypeError, ValueError) as e:
        raise InvalidPayloadError(f"Invalid JSON payload ({e})", field=field)

    if require_object and not isinstance(value, dict):
        raise InvalidPayloadError("Payload must be a JSON object", field=field)

    return value
