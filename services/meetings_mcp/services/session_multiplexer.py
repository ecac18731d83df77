"""
Session transport multiplexer for the MCP streamable HTTP endpoint.

One MCP session owns exactly one ``StreamableHTTPServerTransport`` and one
protocol ``Server`` running inside the multiplexer's task group. The registry
mapping session IDs to sessions is the only shared mutable state; every read
and write goes through a single ``anyio.Lock`` that is never held across I/O.
"""

import json
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import (
    Any,
    AsyncIterator,
    Callable,
    Dict,
    List,
    Optional,
    Protocol,
    Tuple,
)

import anyio
import mcp.types as mcp_types
from anyio.abc import TaskGroup
from mcp.server.streamable_http import (
    MCP_SESSION_ID_HEADER,
    StreamableHTTPServerTransport,
)
from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.types import Message, Receive, Scope, Send

from services.common.logging_config import get_logger, session_id_var
from services.meetings_mcp.exceptions import (
    NO_VALID_SESSION_MESSAGE,
    InvalidSessionError,
    PayloadTooLargeError,
)

logger = get_logger(__name__)


class SessionTransport(Protocol):
    """The slice of ``StreamableHTTPServerTransport`` the multiplexer relies on."""

    mcp_session_id: Optional[str]

    @property
    def is_terminated(self) -> bool: ...

    def connect(self) -> Any: ...

    async def handle_request(
        self, scope: Scope, receive: Receive, send: Send
    ) -> None: ...

    async def terminate(self) -> None: ...


@dataclass
class Session:
    session_id: str
    transport: SessionTransport
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def new_session_id() -> str:
    # uuid4 draws from os.urandom
    return str(uuid.uuid4())


def is_initialize_request(body: Any) -> bool:
    """True when ``body`` is a single JSON-RPC ``initialize`` request."""
    if not isinstance(body, dict):
        return False
    try:
        message = mcp_types.JSONRPCMessage.model_validate(body)
    except PydanticValidationError:
        return False
    return (
        isinstance(message.root, mcp_types.JSONRPCRequest)
        and message.root.method == "initialize"
    )


def _status_recorder(send: Send) -> Tuple[Send, Callable[[], Optional[int]]]:
    """Wrap ``send`` so the response status can be read once it was sent."""
    status: List[int] = []

    async def recording_send(message: Message) -> None:
        if message["type"] == "http.response.start" and not status:
            status.append(message["status"])
        await send(message)

    return recording_send, lambda: status[0] if status else None


def _replay_receive(body: bytes, receive: Receive) -> Receive:
    """Hand the already-read body to the transport, then defer to the client."""
    delivered = False

    async def replay() -> Message:
        nonlocal delivered
        if not delivered:
            delivered = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay


class SessionTransportMultiplexer:
    """
    Routes MCP HTTP requests to the transport of their session.

    Args:
        server_factory: builds a fresh protocol server for every new session
        json_response: answer POSTs with JSON instead of an SSE stream
        max_body_bytes: largest POST body accepted
        transport_factory: builds the transport bound to a new session ID
        session_id_generator: returns a new, unguessable session ID
    """

    def __init__(
        self,
        server_factory: Callable[[], Any],
        *,
        json_response: bool = False,
        max_body_bytes: int = 1024 * 1024,
        transport_factory: Optional[Callable[[str], SessionTransport]] = None,
        session_id_generator: Callable[[], str] = new_session_id,
    ):
        self._server_factory = server_factory
        self.json_response = json_response
        self.max_body_bytes = max_body_bytes
        self._transport_factory = transport_factory or self._default_transport
        self._new_session_id = session_id_generator
        self._sessions: Dict[str, Session] = {}
        self._lock = anyio.Lock()
        self._task_group: Optional[TaskGroup] = None

    def _default_transport(self, session_id: str) -> SessionTransport:
        return StreamableHTTPServerTransport(
            mcp_session_id=session_id,
            is_json_response_enabled=self.json_response,
        )

    @property
    def active_sessions(self) -> int:
        return len(self._sessions)

    def get_session(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    @asynccontextmanager
    async def run(self) -> AsyncIterator["SessionTransportMultiplexer"]:
        """Own the task group that session servers run in."""
        if self._task_group is not None:
            raise RuntimeError("Session multiplexer is already running")

        async with anyio.create_task_group() as task_group:
            self._task_group = task_group
            logger.info("Session multiplexer started")
            try:
                yield self
            finally:
                with anyio.CancelScope(shield=True):
                    await self._terminate_all()
                task_group.cancel_scope.cancel()
                self._task_group = None
                logger.info("Session multiplexer stopped")

    async def _terminate_all(self) -> None:
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            try:
                await session.transport.terminate()
            except Exception:
                logger.exception(
                    "Failed to terminate transport", session_id=session.session_id
                )

    # Registry ---------------------------------------------------------------

    async def _lookup(self, session_id: Optional[str]) -> Optional[Session]:
        if not session_id:
            return None
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.transport.is_terminated:
                return None
            return session

    async def _register(self, session: Session) -> None:
        async with self._lock:
            if session.session_id in self._sessions:
                raise RuntimeError(f"Session ID collision: {session.session_id}")
            self._sessions[session.session_id] = session

    async def _unregister(self, session_id: str, transport: SessionTransport) -> bool:
        """Remove ``session_id`` only if it still belongs to ``transport``."""
        async with self._lock:
            current = self._sessions.get(session_id)
            if current is None or current.transport is not transport:
                return False
            del self._sessions[session_id]
            return True

    # Session lifecycle ------------------------------------------------------

    async def _create_session(self) -> Session:
        if self._task_group is None:
            raise RuntimeError("Session multiplexer is not running")

        session_id = self._new_session_id()
        session = Session(
            session_id=session_id, transport=self._transport_factory(session_id)
        )
        await self._register(session)
        try:
            await self._task_group.start(self._run_session, session)
        except BaseException:
            await self._unregister(session_id, session.transport)
            raise

        logger.info(
            "MCP session created",
            session_id=session_id,
            active_sessions=self.active_sessions,
        )
        return session

    async def _run_session(
        self, session: Session, *, task_status: Any = anyio.TASK_STATUS_IGNORED
    ) -> None:
        session_id_var.set(session.session_id)
        server = self._server_factory()
        try:
            async with session.transport.connect() as (read_stream, write_stream):
                task_status.started()
                await server.run(
                    read_stream,
                    write_stream,
                    server.create_initialization_options(),
                    stateless=False,
                )
        except Exception:
            logger.exception(
                "MCP session server crashed", session_id=session.session_id
            )
        finally:
            with anyio.CancelScope(shield=True):
                removed = await self._unregister(session.session_id, session.transport)
            if removed:
                logger.info(
                    "MCP session closed",
                    session_id=session.session_id,
                    active_sessions=self.active_sessions,
                )

    async def _discard_session(self, session: Session, status: Optional[int]) -> None:
        removed = await self._unregister(session.session_id, session.transport)
        try:
            await session.transport.terminate()
        except Exception:
            logger.exception(
                "Failed to terminate transport", session_id=session.session_id
            )
        if removed:
            logger.warning(
                "MCP session discarded after rejected initialize",
                session_id=session.session_id,
                status_code=status,
                active_sessions=self.active_sessions,
            )

    # Request routing --------------------------------------------------------

    async def _read_body(self, request: Request) -> bytes:
        chunks = []
        size = 0
        async for chunk in request.stream():
            size += len(chunk)
            if size > self.max_body_bytes:
                raise PayloadTooLargeError(self.max_body_bytes)
            chunks.append(chunk)
        return b"".join(chunks)

    async def _require_session(self, scope: Scope) -> Session:
        session_id = Headers(scope=scope).get(MCP_SESSION_ID_HEADER)
        session = await self._lookup(session_id)
        if session is None:
            raise InvalidSessionError(session_id)
        return session

    async def handle_client_message(
        self, scope: Scope, receive: Receive, send: Send
    ) -> None:
        """POST: route to the session's transport, or open a session on initialize."""
        request = Request(scope, receive)
        body = await self._read_body(request)
        replay = _replay_receive(body, receive)
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)

        if session_id:
            session = await self._lookup(session_id)
            if session is None:
                raise InvalidSessionError(session_id, NO_VALID_SESSION_MESSAGE)
            await session.transport.handle_request(scope, replay, send)
            return

        try:
            message = json.loads(body) if body else None
        except ValueError:
            message = None
        if not is_initialize_request(message):
            raise InvalidSessionError(message=NO_VALID_SESSION_MESSAGE)

        session = await self._create_session()
        recording_send, sent_status = _status_recorder(send)
        try:
            await session.transport.handle_request(scope, replay, recording_send)
        finally:
            status = sent_status()
            if status is None or not 200 <= status < 300:
                with anyio.CancelScope(shield=True):
                    await self._discard_session(session, status)

    async def handle_server_stream(
        self, scope: Scope, receive: Receive, send: Send
    ) -> None:
        """GET: attach the server-to-client SSE stream of an existing session."""
        session = await self._require_session(scope)
        await session.transport.handle_request(scope, receive, send)

    async def handle_session_termination(
        self, scope: Scope, receive: Receive, send: Send
    ) -> None:
        """DELETE: terminate an existing session."""
        session = await self._require_session(scope)
        await session.transport.handle_request(scope, receive, send)
        if session.transport.is_terminated and await self._unregister(
            session.session_id, session.transport
        ):
            logger.info(
                "MCP session terminated by client", session_id=session.session_id
            )
