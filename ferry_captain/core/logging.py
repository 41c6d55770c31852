"""Structured logging for the captain service.

Every event is rendered as one JSON line carrying the request's correlation
id and the service name, so a captain action can be followed from the HTTP
request through the transition and its background reconciliation.
"""

import contextvars
import logging
import sys
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from ferry_captain.core.settings import get_settings

SERVICE_NAME = "ferry-captain"
REQUEST_ID_HEADER = "X-Request-ID"

# Libraries that log every outbound request at INFO
NOISY_LOGGERS = ("httpx", "httpcore")

correlation_id_var = contextvars.ContextVar[str]("correlation_id", default="-")


def add_service_context(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Stamp the correlation id and service name on every event."""
    event_dict["correlation_id"] = correlation_id_var.get()
    event_dict["service"] = SERVICE_NAME
    return event_dict


def _processors() -> list[Any]:
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_service_context,
        structlog.processors.JSONRenderer(),
    ]


def _configure_root_logger(level: int) -> None:
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
    # Applied on every call so a later setup_logging can change the level
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def setup_logging(log_level: str | None = None) -> None:
    """Configure structlog over the standard library root logger."""
    level_name = (log_level or get_settings().log_level).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=_processors(),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _configure_root_logger(level)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a correlation id to each request and log its start and end."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        correlation_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        correlation_id_var.set(correlation_id)
        request.state.correlation_id = correlation_id

        logger = get_logger("request")
        logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
            correlation_id=correlation_id,
        )
        started = time.monotonic()

        response = await call_next(request)

        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=int((time.monotonic() - started) * 1000),
            correlation_id=correlation_id,
        )
        response.headers[REQUEST_ID_HEADER] = correlation_id
        return response


def install_middlewares(app: FastAPI) -> None:
    app.add_middleware(RequestContextMiddleware)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_with_context(
    logger: structlog.stdlib.BoundLogger, **context: Any
) -> structlog.stdlib.BoundLogger:
    """Return ``logger`` with ``context`` bound to every later event."""
    return logger.bind(**context)
