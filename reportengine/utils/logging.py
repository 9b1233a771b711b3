"""
Structured logging configuration using structlog.
Provides request-scoped logging with automatic context injection.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from reportengine.config import get_settings


SERVICE_NAME = "reportengine"


def add_severity(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add severity level for structured logging."""
    event_dict["severity"] = method_name.upper()
    return event_dict


def add_service_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Tag every event with the service and, when missing, the engine component.

    Engine classes bind ``component`` themselves (block_evaluator,
    formula_combiner, metric_engine); other events fall back to the
    top-level module of the logger name, e.g. ``routers`` or ``catalog``.
    """
    event_dict.setdefault("service", SERVICE_NAME)
    if "component" not in event_dict:
        name = event_dict.get("logger") or ""
        parts = name.split(".")
        if len(parts) > 1 and parts[0] == SERVICE_NAME:
            event_dict["component"] = parts[1]
    return event_dict


def configure_logging() -> None:
    """
    Configure structured logging for the application.
    Uses JSON format in production, console format in development.
    """
    settings = get_settings()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )

    if settings.log_format == "json" and not settings.dev_mode:
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=not settings.testing)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_severity,
            add_service_context,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)
