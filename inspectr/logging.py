"""
Structured logging configuration using structlog.

Standardized log format:
{
    "ts": "2025-02-14T00:00:00.123456Z",
    "level": "info",
    "service": "inspectr",
    "correlation_id": "uuid-v4",
    "event": "subscriber.connected",
    "module": "inspectr.streaming.hub",
    "function": "connect",
    "line": 42,
    ...additional context...
}

Transaction summaries (see inspectr.capture.summary) go through the same
logger, so with the console renderer they read as plain colored lines.
"""
import structlog
import logging
from typing import Any

SERVICE_NAME = "inspectr"


def add_module_info(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Add module, function, and line number to log entries."""
    frame = structlog._frames._find_first_app_frame_and_name()[0]
    if frame:
        event_dict["module"] = frame.f_globals.get("__name__", "unknown")
        event_dict["function"] = frame.f_code.co_name
        event_dict["line"] = frame.f_lineno
    return event_dict


def setup_logging(json_output: bool = True, service_name: str = SERVICE_NAME):
    """
    Configure structured logging with standardized fields.

    Args:
        json_output: If True, output JSON logs. If False, use console format.
        service_name: Name reported in the "service" field.
    """
    def add_service_name(logger: Any, method_name: str, event_dict: dict) -> dict:
        """Add service name to all log entries."""
        event_dict.setdefault("service", service_name)
        return event_dict

    shared_processors = [
        # Includes correlation_id bound by CorrelationIdMiddleware
        structlog.contextvars.merge_contextvars,
        add_service_name,
        structlog.processors.TimeStamper(fmt="iso", key="ts"),
        structlog.processors.add_log_level,
        add_module_info,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors = shared_processors + [structlog.processors.JSONRenderer()]
    else:
        processors = shared_processors + [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=logging.INFO,
    )

    # Silence uvicorn's default access log; captured exchanges are summarized instead
    logging.getLogger("uvicorn.access").handlers = []


def get_logger():
    """Get a configured structlog logger."""
    return structlog.get_logger()
