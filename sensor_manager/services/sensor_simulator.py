"""
Synthetic sensor readings for broker and flow checks

One reading per call; publishing on an interval is left to the caller.

    temperature  10-50 °C (0.1 steps)
    humidity     0-100 %  (whole numbers)
    pressure     900-1100 hPa (0.1 steps)
    generic      0-100 units (0.1 steps)
"""
import random
from typing import Any, Dict, Optional

from ..exceptions import InvalidInputError
from ..utils import isoformat_utc, utcnow

# data type -> (low, high, unit, decimals)
READING_RANGES = {
    "temperature": (10.0, 50.0, "°C", 1),
    "humidity": (0.0, 100.0, "%", 0),
    "pressure": (900.0, 1100.0, "hPa", 1),
    "generic": (0.0, 100.0, "units", 1),
}
DATA_TYPES = tuple(READING_RANGES)


def simulation_topic(sensor_id: str) -> str:
    return f"sensors/{sensor_id}/data"


def generate_sensor_data(
    sensor_id: str,
    data_type: str = "generic",
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """
    Build one reading for a sensor

    Returns:
        {"sensorId", "timestamp", "value", "unit", "type"}

    Raises:
        InvalidInputError: empty sensor_id or unknown data_type
    """
    if not sensor_id:
        raise InvalidInputError("sensorId", "is required")
    if data_type not in READING_RANGES:
        raise InvalidInputError("dataType", f"must be one of {', '.join(DATA_TYPES)}")

    low, high, unit, decimals = READING_RANGES[data_type]
    value = (rng or random).uniform(low, high)
    value = round(value) if decimals == 0 else round(value, decimals)

    return {
        "sensorId": sensor_id,
        "timestamp": isoformat_utc(utcnow()),
        "value": value,
        "unit": unit,
        "type": data_type,
    }
