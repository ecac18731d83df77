"""Exceptions raised by the Meetings MCP bridge."""

import json
from typing import Any, Dict, Optional

from services.common.http_errors import (
    AuthError,
    ErrorCode,
    MeetingsAPIException,
    ProviderError,
    ServiceError,
    ValidationError,
)

NO_VALID_SESSION_MESSAGE = "Bad Request: No valid session ID provided"
INVALID_SESSION_TEXT = "Invalid or missing session ID"


class InvalidSessionError(MeetingsAPIException):
    """Raised when an HTTP request cannot be routed to a live MCP session."""

    error_type = "session_error"
    error_code = ErrorCode.INVALID_SESSION
    status_code = 400

    def __init__(
        self, session_id: Optional[str] = None, message: str = INVALID_SESSION_TEXT
    ):
        super().__init__(
            message, details={"session_id": session_id} if session_id else None
        )
        self.session_id = session_id

    def to_jsonrpc_error(self, message: Optional[str] = None) -> Dict[str, Any]:
        return super().to_jsonrpc_error(message or NO_VALID_SESSION_MESSAGE)


class MissingCredentialError(AuthError):
    """Raised when an operation that needs a bearer token was called without one."""

    def __init__(self, operation: Optional[str] = None):
        super().__init__(
            message="Token não recebido pelo MCP Server.",
            details={"operation": operation} if operation else None,
            code=ErrorCode.MISSING_CREDENTIAL,
        )


class InvalidTimestampError(ValidationError):
    """Raised when a date/time string has no recognizable shape."""

    def __init__(self, value: Any, message: Optional[str] = None):
        super().__init__(
            message
            or (
                f"Data/hora inválida: {value!r}. Use YYYY-MM-DDTHH:mm:ssZ "
                "ou YYYY-MM-DDTHH:mm:ss-03:00"
            ),
            value=value,
            code=ErrorCode.INVALID_TIMESTAMP,
        )


class InvalidRangeError(ValidationError):
    """Raised when a range starts after it ends."""

    def __init__(self, start: str, end: str):
        super().__init__(
            "Intervalo inválido: start > end.",
            details={"start": start, "end": end},
            code=ErrorCode.INVALID_RANGE,
        )


class PastTimestampError(ValidationError):
    """Raised when a timestamp that must be in the future is not."""

    def __init__(self, value: str):
        super().__init__(
            f"Data/hora precisa estar no futuro: {value}",
            value=value,
            code=ErrorCode.PAST_TIMESTAMP,
        )


class BackendUnreachableError(ServiceError):
    """Raised when every attempt to reach the backend failed at the transport level."""

    def __init__(self, message: str, attempts: int, url: Optional[str] = None):
        super().__init__(
            message,
            details={"attempts": attempts, **({"url": url} if url else {})},
            code=ErrorCode.BACKEND_UNREACHABLE,
            status_code=503,
        )
        self.attempts = attempts


class BackendRejectedError(ProviderError):
    """Raised when the backend answered with a non-success HTTP status."""

    def __init__(self, status_code: int, body: Any):
        if isinstance(body, str):
            body_text = body
        else:
            body_text = json.dumps(body, ensure_ascii=False)
        super().__init__(
            f"Backend recusou (HTTP {status_code}): {body_text}",
            provider="meetings-backend",
            details={"backend_status": status_code},
            code=ErrorCode.BACKEND_REJECTED,
            status_code=status_code if status_code >= 400 else 502,
            response_body=body_text,
        )
        self.backend_status = status_code
        self.body = body


class PayloadTooLargeError(MeetingsAPIException):
    """Raised when a request body exceeds the configured limit."""

    error_type = "validation_error"
    error_code = ErrorCode.VALIDATION_FAILED
    status_code = 413

    def __init__(self, limit: int):
        super().__init__("Payload too large", details={"limit_bytes": limit})
        self.limit = limit
