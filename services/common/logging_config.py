"""
structlog setup shared by the meetings MCP bridge.

Every entry carries the HTTP request ID and, for protocol traffic, the MCP
session ID taken from context variables. Bearer credentials are scrubbed
before rendering, whatever key they were logged under.

Usage:
    from services.common.logging_config import get_logger, setup_service_logging

    setup_service_logging("meetings-mcp", log_level="INFO", log_format="text")
    logger = get_logger(__name__)
"""

import logging
import re
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Callable, Dict, List

import structlog
from fastapi import Request, Response

request_id_var: ContextVar[str] = ContextVar("request_id", default="uninitialized")
session_id_var: ContextVar[str] = ContextVar("session_id", default="none")

MCP_SESSION_HEADER = "mcp-session-id"
REQUEST_ID_HEADER = "X-Request-Id"

REDACTED = "***"
_SENSITIVE_KEYS = {"authorization", "credential", "token", "access_token"}
_BEARER_RE = re.compile(r"(?i)\bbearer\s+[^\s,;\"']+")

# Libraries whose INFO output drowns out the bridge's own lines
_NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "mcp.server.lowlevel.server",
    "mcp.server.streamable_http",
    "sse_starlette",
)


def add_request_context(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Attach request and session IDs unless the caller set them explicitly."""
    request_id = request_id_var.get()
    if request_id != "uninitialized":
        event_dict["request_id"] = request_id

    session_id = session_id_var.get()
    if session_id != "none":
        event_dict.setdefault("session_id", session_id)
    return event_dict


def add_service_context(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Derive ``service`` from a ``services.<name>.*`` logger name."""
    prefix, _, rest = event_dict.get("logger", "").partition(".")
    if prefix == "services" and rest:
        event_dict["service"] = rest.split(".", 1)[0]
    return event_dict


def redact_credentials(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Mask credential-bearing keys and inline ``Bearer <token>`` strings."""
    for key, value in list(event_dict.items()):
        if key.lower() in _SENSITIVE_KEYS and value:
            event_dict[key] = REDACTED
        elif isinstance(value, str) and "earer" in value:
            event_dict[key] = _BEARER_RE.sub(f"Bearer {REDACTED}", value)
    return event_dict


class EnhancedTextRenderer:
    """Single-line human readable output for local runs."""

    _LEVEL_MARKS = {
        "DEBUG": "🔍 ",
        "INFO": "ℹ️ ",
        "WARNING": "⚠️ ",
        "ERROR": "❌ ",
        "CRITICAL": "❌ ",
    }
    _HEADER_KEYS = frozenset(
        {"timestamp", "level", "logger", "event", "service", "request_id", "session_id"}
    )
    _MAX_VALUE_LEN = 150

    def __init__(self, service_name: str):
        self.service_name = service_name

    def _header(self, event_dict: structlog.types.EventDict) -> List[str]:
        level = str(event_dict.get("level", "info")).upper()
        logger_name = event_dict.get("logger", "")
        if logger_name.startswith("services."):
            logger_name = logger_name[len("services.") :]

        request_id = event_dict.get("request_id", "")
        message = str(event_dict.get("event", ""))
        session_id = event_dict.get("session_id", "")
        if session_id:
            message = f"{message} | Session: {session_id[:8]}"

        return [
            event_dict.get("timestamp", ""),
            self._LEVEL_MARKS.get(level, ""),
            f"[{event_dict.get('service', self.service_name)}]",
            f"[{level}]",
            f"[{request_id[-4:]}]" if request_id else "",
            logger_name,
            f"- {message}",
        ]

    def _format_value(self, value: Any) -> str:
        if isinstance(value, (str, int, float, bool)):
            return str(value)
        return f"{str(value)[: self._MAX_VALUE_LEN]}..."

    def __call__(
        self,
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> str:
        parts = self._header(event_dict)
        extras = [
            f"{key}={self._format_value(value)}"
            for key, value in event_dict.items()
            if key not in self._HEADER_KEYS
        ]
        if extras:
            parts.append(f" | {', '.join(extras)}")
        return " ".join(part for part in parts if part)


def _build_processors(service_name: str, log_format: str) -> List[Any]:
    processors: List[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_request_context,
        add_service_context,
        redact_credentials,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(EnhancedTextRenderer(service_name))
    return processors


def setup_service_logging(
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        service_name: Shown when an entry has no ``service`` of its own
        log_level: DEBUG, INFO, WARNING or ERROR
        log_format: "json" for machine output, anything else for text
    """
    structlog.configure(
        processors=_build_processors(service_name, log_format),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Lines arrive fully rendered
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        handlers=[handler],
        force=True,
    )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    get_logger(__name__).info(
        "Logging configured",
        service=service_name,
        log_level=log_level,
        log_format=log_format,
    )


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _is_event_stream(request: Request) -> bool:
    return request.method == "GET" and "text/event-stream" in request.headers.get(
        "accept", ""
    )


def create_request_logging_middleware() -> Callable:
    """
    Build the ``app.middleware("http")`` function that logs each request.

    It seeds ``request_id_var`` from ``X-Request-Id`` (or a fresh UUID) and
    ``session_id_var`` from the ``mcp-session-id`` header before the route runs.
    For SSE streams the completion line reports when headers were sent, not
    when the stream closed.
    """

    async def log_requests(request: Request, call_next: Callable) -> Response:
        request_id_var.set(request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4()))
        session_id_var.set(request.headers.get(MCP_SESSION_HEADER) or "none")

        logger = get_logger("http.requests")
        route = f"{request.method} {request.url.path}"
        request_fields: Dict[str, Any] = {
            "method": request.method,
            "client_ip": _client_host(request),
            "content_type": request.headers.get("content-type"),
        }
        if _is_event_stream(request):
            request_fields["stream"] = "sse"

        logger.info(f"→ {route}", **request_fields)
        started = time.perf_counter()

        response = await call_next(request)

        elapsed = time.perf_counter() - started
        failed = response.status_code >= 400
        logger.log(
            logging.WARNING if failed else logging.INFO,
            f"{'❌' if failed else '✅'} {route} → {response.status_code} ({elapsed:.3f}s)",
            status_code=response.status_code,
            process_time=elapsed,
            method=request.method,
        )
        return response

    return log_requests


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def log_service_startup(service_name: str, **kwargs: Any) -> None:
    """Log the service banner together with its effective configuration."""
    get_logger("startup").info(f"Starting {service_name}", service=service_name, **kwargs)


def log_service_shutdown(service_name: str) -> None:
    get_logger("startup").info(f"{service_name} shutting down", service=service_name)
