"""API routers"""

from .sensors import router as sensors_router
from .node_red import router as node_red_router
from .mqtt import router as mqtt_router
from .health import router as health_router

__all__ = ["sensors_router", "node_red_router", "mqtt_router", "health_router"]
