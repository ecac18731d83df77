"""
HTTP client for the upstream meetings backend.

Each attempt, body included, must finish within ``HTTP_TIMEOUT_MS``. A call is
retried immediately up to ``HTTP_MAX_RETRIES`` times, but only after a
transport-level failure (connection refused, deadline exceeded, network error). A response with an error
status is a valid backend decision and is returned as-is.
"""

import types
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type

import anyio
import httpx

from services.common.logging_config import get_logger, request_id_var
from services.meetings_mcp.exceptions import (
    BackendRejectedError,
    BackendUnreachableError,
    MissingCredentialError,
)
from services.meetings_mcp.settings import get_settings

logger = get_logger(__name__)


@dataclass
class BackendResult:
    """Outcome of one logical backend call, after retries."""

    ok: bool
    status_code: Optional[int] = None
    payload: Any = None
    error: Optional[str] = None
    attempts: int = 0
    url: str = ""

    @property
    def unreachable(self) -> bool:
        """True when no HTTP response was ever received."""
        return self.status_code is None

    def raise_for_outcome(self) -> Any:
        """Return the payload, or raise the typed failure for this result."""
        if self.ok:
            return self.payload
        if self.unreachable:
            raise BackendUnreachableError(
                f"Backend indisponível após {self.attempts} tentativa(s): {self.error}",
                attempts=self.attempts,
                url=self.url,
            )
        raise BackendRejectedError(self.status_code or 0, self.payload)


def _parse_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


class BackendClient:
    """Async client for the meetings backend, usable as an async context manager."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        max_retries: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.meetings_base).rstrip("/")
        timeout_ms = settings.http_timeout_ms if timeout_ms is None else timeout_ms
        self.timeout_seconds = timeout_ms / 1000
        self.timeout = httpx.Timeout(self.timeout_seconds)
        self.max_retries = max(
            0, settings.http_max_retries if max_retries is None else max_retries
        )
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "BackendClient":
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[types.TracebackType],
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _build_headers(
        self, headers: Optional[Dict[str, str]], credential: Optional[str]
    ) -> Dict[str, str]:
        request_headers = dict(headers or {})
        if credential:
            request_headers["Authorization"] = credential

        # Propagate request ID for distributed tracing
        request_id = request_id_var.get()
        if request_id and request_id != "uninitialized":
            request_headers["X-Request-Id"] = request_id
        return request_headers

    async def call(
        self,
        method: str,
        path: str = "",
        *,
        headers: Optional[Dict[str, str]] = None,
        json_body: Any = None,
        params: Optional[Dict[str, str]] = None,
        credential: Optional[str] = None,
        require_credential: bool = True,
        operation: Optional[str] = None,
    ) -> BackendResult:
        """
        Perform one logical call against ``{base_url}{path}``.

        Raises:
            MissingCredentialError: when ``require_credential`` is set and no
                credential was given. Raised before any network activity.
        """
        if require_credential and not credential:
            raise MissingCredentialError(operation)

        url = f"{self.base_url}{path}"
        request_headers = self._build_headers(headers, credential)
        if json_body is not None:
            request_headers.setdefault("Content-Type", "application/json")

        if self._client is None:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await self._send_with_retry(
                    client, method, url, request_headers, json_body, params
                )
        return await self._send_with_retry(
            self._client, method, url, request_headers, json_body, params
        )

    async def _send_with_retry(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        headers: Dict[str, str],
        json_body: Any,
        params: Optional[Dict[str, str]],
    ) -> BackendResult:
        max_attempts = 1 + self.max_retries
        last_error: Optional[Exception] = None

        for attempt in range(1, max_attempts + 1):
            try:
                # httpx limits each phase; this bounds the attempt as a whole
                with anyio.fail_after(self.timeout_seconds):
                    response = await client.request(
                        method,
                        url,
                        headers=headers,
                        json=json_body,
                        params=params,
                        timeout=self.timeout,
                    )
            except (httpx.TransportError, TimeoutError) as e:
                if isinstance(e, httpx.TransportError):
                    last_error = e
                else:
                    last_error = TimeoutError(
                        f"attempt exceeded {self.timeout_seconds * 1000:.0f} ms"
                    )
                logger.warning(
                    f"Backend transport failure on attempt {attempt}/{max_attempts}",
                    method=method,
                    url=url,
                    error_type=type(last_error).__name__,
                    error=str(last_error),
                )
                continue

            if response.is_error:
                logger.warning(
                    f"Backend answered {response.status_code} for {method} {url}",
                    status_code=response.status_code,
                    attempt=attempt,
                )
            return BackendResult(
                ok=response.is_success,
                status_code=response.status_code,
                payload=_parse_body(response),
                attempts=attempt,
                url=str(response.request.url),
            )

        logger.error(
            f"Backend unreachable after {max_attempts} attempt(s)",
            method=method,
            url=url,
        )
        return BackendResult(
            ok=False,
            error=f"{type(last_error).__name__}: {last_error}",
            attempts=max_attempts,
            url=url,
        )
