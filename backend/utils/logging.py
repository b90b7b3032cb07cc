"""
Structured logging for the HITL node processes (API, reporter, dashboard).

All three share one structlog pipeline on top of stdlib logging so records
from uvicorn, httpx and our own code come out in the same shape.
"""

import logging
import sys
import time
import uuid
from typing import Any, Dict, Optional

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

# Polled by load balancers and dashboards every few seconds
QUIET_PATHS = frozenset({"/health", "/health-detailed"})


def configure_logging(
    service_name: str = "hitl-node",
    log_level: str = "INFO",
    enable_json: bool = True
) -> None:
    """
    Set up structlog and the stdlib root logger for one node process.

    Args:
        service_name: Bound as `service` on every record
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        enable_json: JSON lines for journald/CloudWatch, or coloured console output
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer() if enable_json else structlog.dev.ConsoleRenderer(colors=True),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=service_name)

    # httpx logs every request at INFO; the reporter and dashboard poll constantly
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_instance_context(instance_id: str, availability_zone: str) -> None:
    """Tag all subsequent records of this process with the node identity."""
    structlog.contextvars.bind_contextvars(instance_id=instance_id, availability_zone=availability_zone)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Correlates each request with an X-Request-ID and logs its outcome.

    Successful health checks are logged at DEBUG so they don't drown out
    the review API traffic.
    """

    def __init__(self, app, service_name: str = "node-api"):
        super().__init__(app)
        self.service_name = service_name
        self.logger = get_logger("request")

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        path = request.url.path

        # Keep process-wide bindings (instance identity), replace per-request ones
        structlog.contextvars.unbind_contextvars("request_id", "method", "path", "client_ip")
        structlog.contextvars.bind_contextvars(
            service=self.service_name,
            request_id=request_id,
            method=request.method,
            path=path,
            client_ip=request.client.host if request.client else "unknown",
        )

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            self.logger.error(
                "Request failed",
                exc_info=True,
                exception_type=type(exc).__name__,
            )
            raise

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        log = self.logger.debug if path in QUIET_PATHS and response.status_code < 400 else self.logger.info
        log("Request completed", status_code=response.status_code, response_time_ms=elapsed_ms)

        response.headers["X-Request-ID"] = request_id
        return response


def log_external_api_call(
    service: str,
    endpoint: str,
    method: str = "GET",
    status_code: Optional[int] = None,
    duration_ms: Optional[float] = None,
    logger: Optional[structlog.stdlib.BoundLogger] = None
) -> None:
    """Debug record for a call to another service (metadata service, node endpoints)."""
    (logger or get_logger("external_api")).debug(
        f"External API call to {service}",
        service_called=service,
        endpoint=endpoint,
        method=method,
        status_code=status_code,
        duration_ms=duration_ms,
    )


def log_system_state_change(
    component: str,
    state: str,
    details: Dict[str, Any],
    logger: Optional[structlog.stdlib.BoundLogger] = None
) -> None:
    """INFO record for a status transition, e.g. a node going healthy -> degraded."""
    (logger or get_logger("system")).info(
        f"System state change: {component}",
        component=component,
        new_state=state,
        **details
    )
