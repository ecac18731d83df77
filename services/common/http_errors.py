"""
Error types shared by the meetings MCP bridge.

Every error raised on purpose derives from ``MeetingsAPIException``. It knows
three ways of presenting itself:

- as an ``ErrorResponse`` body for plain HTTP routes (``/health`` and friends),
- as a JSON-RPC error envelope for rejections on the MCP endpoint,
- through its ``message`` for tool results that the model reads.

Error codes:
    VALIDATION_FAILED / INVALID_* / PAST_TIMESTAMP   bad tool input (422)
    AUTH_FAILED / MISSING_CREDENTIAL                 no usable bearer token (401)
    INVALID_SESSION                                  nothing to route to (400)
    SERVICE_* / BACKEND_UNREACHABLE                  transport failures (5xx)
    PROVIDER_ERROR / BACKEND_REJECTED                backend answered non-2xx

Usage:
    app = FastAPI()
    register_exception_handlers(app)

    raise ValidationError("Data inválida", field="dataHora", value=raw)
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from services.common.logging_config import get_logger, request_id_var

logger = get_logger(__name__)

# JSON-RPC "server error" range, used for transport level rejections
JSONRPC_SERVER_ERROR = -32000


class ErrorCode(str, Enum):
    VALIDATION_FAILED = "VALIDATION_FAILED"
    INVALID_TIMESTAMP = "INVALID_TIMESTAMP"
    INVALID_RANGE = "INVALID_RANGE"
    PAST_TIMESTAMP = "PAST_TIMESTAMP"

    AUTH_FAILED = "AUTH_FAILED"
    MISSING_CREDENTIAL = "MISSING_CREDENTIAL"

    INVALID_SESSION = "INVALID_SESSION"

    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_ERROR = "SERVICE_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    BACKEND_UNREACHABLE = "BACKEND_UNREACHABLE"

    PROVIDER_ERROR = "PROVIDER_ERROR"
    BACKEND_REJECTED = "BACKEND_REJECTED"


class ErrorResponse(BaseModel):
    """JSON body returned by the FastAPI exception handlers."""

    type: str
    message: str
    details: Optional[Dict[str, Any]] = None
    timestamp: str
    request_id: str


def _current_request_id() -> str:
    request_id = request_id_var.get()
    return request_id if request_id != "uninitialized" else str(uuid.uuid4())


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _compact(details: Optional[Dict[str, Any]], **extra: Any) -> Dict[str, Any]:
    """Merge ``extra`` into a copy of ``details``, skipping empty values."""
    merged = dict(details or {})
    merged.update({key: value for key, value in extra.items() if value not in (None, "")})
    return merged


class MeetingsAPIException(Exception):
    """
    Base class for errors this service raises deliberately.

    Subclasses set ``error_type``, ``error_code`` and ``status_code`` as class
    defaults; constructor arguments override them per instance. The request ID
    is captured when the exception is created, so it survives leaving the
    request context.
    """

    error_type: str = "internal_error"
    error_code: Optional[ErrorCode] = None
    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_type: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})
        if error_type is not None:
            self.error_type = error_type
        if error_code is not None:
            self.error_code = error_code
        if status_code is not None:
            self.status_code = status_code
        self.timestamp = _utc_now()
        self.request_id = request_id or _current_request_id()

    def to_error_response(self) -> ErrorResponse:
        details = dict(self.details)
        if self.error_code is not None:
            details["code"] = self.error_code.value
        return ErrorResponse(
            type=self.error_type,
            message=self.message,
            details=details or None,
            timestamp=self.timestamp,
            request_id=self.request_id,
        )

    def to_jsonrpc_error(self, message: Optional[str] = None) -> Dict[str, Any]:
        """JSON-RPC envelope for rejections that never reach a session."""
        return {
            "jsonrpc": "2.0",
            "error": {"code": JSONRPC_SERVER_ERROR, "message": message or self.message},
            "id": None,
        }


class ValidationError(MeetingsAPIException):
    """Tool input that cannot be used as given."""

    error_type = "validation_error"
    error_code = ErrorCode.VALIDATION_FAILED
    status_code = 422

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
    ):
        super().__init__(
            message,
            details=_compact(
                details, field=field, value=None if value is None else str(value)
            ),
            error_code=code,
        )
        self.field = field
        self.value = value


class AuthError(MeetingsAPIException):
    error_type = "auth_error"
    error_code = ErrorCode.AUTH_FAILED
    status_code = 401

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.AUTH_FAILED,
        status_code: int = 401,
    ):
        super().__init__(
            message, details=details, error_code=code, status_code=status_code
        )


class ServiceError(MeetingsAPIException):
    """A downstream call could not be completed (connect failure, timeout)."""

    error_type = "service_error"
    error_code = ErrorCode.SERVICE_ERROR
    status_code = 502

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.SERVICE_ERROR,
        status_code: int = 502,
    ):
        super().__init__(
            message, details=details, error_code=code, status_code=status_code
        )


class ProviderError(MeetingsAPIException):
    """A downstream provider answered, but with an error."""

    error_type = "provider_error"
    error_code = ErrorCode.PROVIDER_ERROR
    status_code = 502

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.PROVIDER_ERROR,
        status_code: int = 502,
        response_body: Optional[str] = None,
    ):
        super().__init__(
            message,
            details=_compact(details, provider=provider, response_body=response_body),
            error_code=code,
            status_code=status_code,
        )
        self.provider = provider
        self.response_body = response_body


def exception_to_response(exc: Exception) -> ErrorResponse:
    """
    Build an ``ErrorResponse`` for any exception.

    Unknown exceptions only expose their class name; their message may carry
    request data and is left to the logs.
    """
    if isinstance(exc, MeetingsAPIException):
        return exc.to_error_response()

    if isinstance(exc, HTTPException):
        if isinstance(exc.detail, dict):
            details = exc.detail
        else:
            details = {"message": str(exc.detail)}
        return ErrorResponse(
            type="http_error",
            message=details.get("message", "HTTP error"),
            details=details,
            timestamp=_utc_now(),
            request_id=_current_request_id(),
        )

    return ErrorResponse(
        type="internal_error",
        message="Internal server error",
        details={"error_type": type(exc).__name__},
        timestamp=_utc_now(),
        request_id=_current_request_id(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install JSON error handlers for our exceptions, HTTPException and the rest."""

    def _respond(exc: Exception, status_code: int) -> JSONResponse:
        return JSONResponse(
            status_code=status_code, content=exception_to_response(exc).model_dump()
        )

    @app.exception_handler(MeetingsAPIException)
    async def meetings_api_exception_handler(
        request: Request, exc: MeetingsAPIException
    ) -> JSONResponse:
        logger.info(
            f"{request.method} {request.url.path} failed",
            error_type=exc.error_type,
            status_code=exc.status_code,
        )
        return _respond(exc, exc.status_code)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        return _respond(exc, exc.status_code)

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
        return _respond(exc, 500)
