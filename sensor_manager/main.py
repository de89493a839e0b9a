"""
IoT Sensor Manager - Main Application
FastAPI application coordinating sensor records, Node-RED flows and MQTT
broker checks
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, Callable, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import Settings, get_settings
from .core.database import Database
from .exceptions import SensorManagerException
from .logging_config import configure_logging
from .middleware import RequestIDMiddleware
from .node_red_client import NodeRedClient
from .routers import sensors_router, node_red_router, mqtt_router, health_router
from .services import FlowCoordinator, MqttGateway, SensorStore

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    node_red_transport: Optional[httpx.AsyncBaseTransport] = None,
    mqtt_client_factory: Optional[Callable[..., Any]] = None,
) -> FastAPI:
    """
    Build the application

    Args:
        settings: Settings to use (defaults to environment)
        node_red_transport: httpx transport for Node-RED calls (tests use MockTransport)
        mqtt_client_factory: replaces the paho client constructor (tests use a fake)
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open external handles on startup, close them on shutdown"""
        logger.info(f">> Starting {settings.app_name} v{settings.app_version}")

        database = Database(
            settings.database_url,
            echo=settings.debug,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_pool_max_overflow,
        )
        await database.open()
        app.state.database = database
        logger.info("[OK] Database initialized")

        node_red = NodeRedClient(
            settings.node_red_base_url,
            timeout=settings.node_red_timeout,
            health_timeout=settings.node_red_health_timeout,
            api_token=settings.node_red_api_token,
            transport=node_red_transport,
        )
        await node_red.connect()
        app.state.node_red = node_red

        store = SensorStore(database)
        app.state.store = store
        app.state.coordinator = FlowCoordinator(
            store,
            node_red,
            max_attempts=settings.flow_deploy_max_attempts,
            backoff_base=settings.flow_deploy_backoff_base,
        )
        app.state.mqtt_gateway = MqttGateway(
            default_port=settings.mqtt_default_port,
            tls_port=settings.mqtt_tls_port,
            ws_port=settings.mqtt_ws_port,
            ws_path=settings.mqtt_ws_path,
            timeout_ms=settings.mqtt_timeout_ms,
            client_factory=mqtt_client_factory,
        )

        try:
            yield
        finally:
            logger.info("Shutting down application")
            await node_red.disconnect()
            await database.close()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="IoT sensor registry with Node-RED flow provisioning and MQTT broker checks",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins or ["*"],
        # Credentials only with an explicit origin list
        allow_credentials=bool(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    app.include_router(health_router)
    app.include_router(sensors_router)
    app.include_router(node_red_router)
    app.include_router(mqtt_router)

    register_exception_handlers(app)

    @app.get("/", tags=["system"])
    async def root():
        return {
            "app": settings.app_name,
            "version": settings.app_version,
            "status": "online",
            "node_red": settings.node_red_base_url,
        }

    return app

# ============================================================
# Exception Handlers
# ============================================================

def register_exception_handlers(app: FastAPI):

    @app.exception_handler(SensorManagerException)
    async def sensor_manager_exception_handler(request: Request, exc: SensorManagerException):
        """Handle domain exceptions with their mapped status"""
        if exc.http_status >= 500:
            logger.warning(f"{exc.error_code}: {exc.message}")
        return JSONResponse(
            status_code=exc.http_status,
            content=exc.to_dict()
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle Pydantic validation errors"""
        return JSONResponse(
            status_code=400,
            content={
                "error": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": jsonable_encoder(exc.errors())
            }
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "INTERNAL_SERVER_ERROR",
                "message": "An unexpected error occurred"
            }
        )


def _build_default_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level, json_logs=settings.json_logs, app_version=settings.app_version)
    return create_app(settings)


app = _build_default_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("sensor_manager.main:app", host="0.0.0.0", port=8000, log_config=None)
