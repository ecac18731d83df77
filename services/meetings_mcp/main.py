from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.routing import Route

from services.common.http_errors import register_exception_handlers
from services.common.logging_config import (
    create_request_logging_middleware,
    get_logger,
    log_service_shutdown,
    log_service_startup,
    setup_service_logging,
)
from services.meetings_mcp.api import MCPEndpoint
from services.meetings_mcp.api.mcp import ALLOWED_METHODS
from services.meetings_mcp.services.backend_client import BackendClient
from services.meetings_mcp.services.session_multiplexer import (
    SessionTransportMultiplexer,
)
from services.meetings_mcp.settings import Settings, get_settings
from services.meetings_mcp.tools import make_meetings_mcp_server

SERVICE_NAME = "meetings-mcp"
SERVICE_VERSION = "1.0.0"

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        setup_service_logging(
            service_name=SERVICE_NAME,
            log_level=settings.log_level,
            log_format=settings.log_format,
        )
        log_service_startup(
            SERVICE_NAME,
            version=SERVICE_VERSION,
            mcp_endpoint=f"http://{settings.mcp_host}:{settings.mcp_port}{settings.mcp_path}",
            backend=settings.meetings_base,
        )

        async with BackendClient(
            base_url=settings.meetings_base,
            timeout_ms=settings.http_timeout_ms,
            max_retries=settings.http_max_retries,
        ) as backend:
            app.state.backend_client = backend
            async with app.state.multiplexer.run():
                yield

        log_service_shutdown(SERVICE_NAME)

    app = FastAPI(
        title="Meetings MCP Bridge",
        version=SERVICE_VERSION,
        description="MCP streamable HTTP front end for the meetings backend.",
        lifespan=lifespan,
    )

    multiplexer = SessionTransportMultiplexer(
        server_factory=lambda: make_meetings_mcp_server(
            app.state.backend_client, settings.default_offset
        ),
        json_response=settings.mcp_json_response,
        max_body_bytes=settings.max_body_bytes,
    )
    app.state.multiplexer = multiplexer

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=[*ALLOWED_METHODS, "OPTIONS"],
        allow_headers=[
            "content-type",
            "mcp-session-id",
            "mcp-protocol-version",
            "authorization",
        ],
        expose_headers=["mcp-session-id"],
    )

    # Add request logging middleware
    app.middleware("http")(create_request_logging_middleware())

    register_exception_handlers(app)

    app.router.routes.append(
        Route(
            settings.mcp_path,
            endpoint=MCPEndpoint(multiplexer),
            methods=list(ALLOWED_METHODS),
            include_in_schema=False,
        )
    )

    @app.get("/")
    def root() -> dict:
        logger.info("Root endpoint accessed")
        return {
            "message": "Welcome to the Meetings MCP Bridge",
            "mcp_path": settings.mcp_path,
        }

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "active_sessions": multiplexer.active_sessions}

    return app


# For uvicorn compatibility, we need an app variable at module level
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        app,
        host=settings.mcp_host,
        port=settings.mcp_port,
        log_level=settings.log_level.lower(),
        access_log=False,  # request logging happens in middleware
    )
