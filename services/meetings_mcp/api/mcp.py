"""
HTTP ingress for the MCP streamable HTTP endpoint.

Mounted as a raw ASGI route because the transport writes its own responses
(including long-lived SSE streams) straight to the ASGI ``send`` channel.
"""

from starlette.responses import JSONResponse, PlainTextResponse
from starlette.types import Receive, Scope, Send

from services.common.logging_config import get_logger
from services.meetings_mcp.exceptions import InvalidSessionError, PayloadTooLargeError
from services.meetings_mcp.services.session_multiplexer import (
    SessionTransportMultiplexer,
)

logger = get_logger(__name__)

ALLOWED_METHODS = ("GET", "POST", "DELETE")


class MCPEndpoint:
    """Dispatches POST, GET and DELETE on the MCP path to the multiplexer."""

    def __init__(self, multiplexer: SessionTransportMultiplexer):
        self.multiplexer = multiplexer

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        method = scope["method"]
        try:
            if method == "POST":
                await self.multiplexer.handle_client_message(scope, receive, send)
            elif method == "GET":
                await self.multiplexer.handle_server_stream(scope, receive, send)
            elif method == "DELETE":
                await self.multiplexer.handle_session_termination(scope, receive, send)
            else:
                response = PlainTextResponse(
                    "Method Not Allowed",
                    status_code=405,
                    headers={"Allow": ", ".join(ALLOWED_METHODS)},
                )
                await response(scope, receive, send)
        except InvalidSessionError as e:
            logger.warning(
                f"Rejected {method} without a valid MCP session",
                session_id=e.session_id,
            )
            if method == "POST":
                response = JSONResponse(
                    e.to_jsonrpc_error(), status_code=e.status_code
                )
            else:
                response = PlainTextResponse(e.message, status_code=e.status_code)
            await response(scope, receive, send)
        except PayloadTooLargeError as e:
            logger.warning("Rejected oversized MCP request", limit_bytes=e.limit)
            response = JSONResponse(e.to_jsonrpc_error(), status_code=e.status_code)
            await response(scope, receive, send)
