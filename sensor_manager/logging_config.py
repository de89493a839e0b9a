"""
Structured logging configuration using structlog
JSON logs in production, colored console logs in development; stdlib
loggers are routed through the same formatter
"""
import logging
import structlog
import os
from typing import Any, Optional

APP_NAME = "iot-sensor-manager"

_app_context = {"app": APP_NAME}


def add_app_context(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Add application-level context to all log entries"""
    event_dict.update(_app_context)
    event_dict['environment'] = os.getenv('ENVIRONMENT', 'production')
    return event_dict


def drop_color_message_key(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Uvicorn adds 'color_message' for its own console output; JSON logs don't need it"""
    event_dict.pop('color_message', None)
    return event_dict


def configure_logging(log_level: str = "INFO", json_logs: bool = True, app_version: Optional[str] = None):
    """
    Configure structured logging for the application

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: If True, output JSON logs. If False, use human-readable format
        app_version: Stamped on every entry when given

    Returns:
        Configured structlog logger
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    if app_version:
        _app_context["version"] = app_version

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        add_app_context,
        drop_color_message_key,
    ]

    if json_logs:
        renderer = structlog.processors.JSONRenderer()
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[structlog.stdlib.filter_by_level]
        + shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    # Uvicorn installs its own handlers; let its records reach ours
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = []
        uvicorn_logger.propagate = True

    return structlog.get_logger()


def get_logger(name: Optional[str] = None):
    """
    Get a structlog logger

    Usage:
        logger = get_logger(__name__)
        logger.info("sensor_registered", sensor_id="temp-01")
    """
    if name:
        return structlog.get_logger(name)
    return structlog.get_logger()
