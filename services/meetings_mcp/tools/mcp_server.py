"""
Builds the MCP protocol server for one session.

The bearer token arrives as the ``Authorization`` header of the HTTP request
that carried the ``tools/call`` message. It is read here, once, and handed to
the operation handlers as an explicit argument.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type

import mcp.types as types
from mcp.server.lowlevel import Server
from pydantic import BaseModel

from services.common.logging_config import get_logger
from services.meetings_mcp.schemas import (
    AgendarInput,
    AlterarDataInput,
    BuscarPorDataInput,
    BuscarPorPeriodoInput,
    CheckInput,
    DeletarInput,
)
from services.meetings_mcp.services.backend_client import BackendClient
from services.meetings_mcp.services.datetime_normalizer import DEFAULT_OFFSET
from services.meetings_mcp.tools.operations import MeetingOperations

logger = get_logger(__name__)

SERVER_NAME = "meetings-mcp-server"
SERVER_VERSION = "1.0.0"


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    title: str
    description: str
    input_model: Type[BaseModel]
    handler_name: str

    def to_tool(self) -> types.Tool:
        schema = self.input_model.model_json_schema()
        schema.pop("title", None)
        return types.Tool(
            name=self.name,
            title=self.title,
            description=self.description,
            inputSchema=schema,
        )


TOOL_DEFINITIONS = (
    ToolDefinition(
        name="agendar",
        title="Agendar reunião",
        description="Cria uma nova reunião",
        input_model=AgendarInput,
        handler_name="agendar",
    ),
    ToolDefinition(
        name="buscarPorData",
        title="Buscar por data",
        description="Lista reuniões de um dia (YYYY-MM-DD ou ISO com offset)",
        input_model=BuscarPorDataInput,
        handler_name="buscar_por_data",
    ),
    ToolDefinition(
        name="buscarPorPeriodo",
        title="Buscar por período",
        description=(
            "Lista reuniões entre start e end (YYYY-MM-DD ou ISO completo com offset)"
        ),
        input_model=BuscarPorPeriodoInput,
        handler_name="buscar_por_periodo",
    ),
    ToolDefinition(
        name="alterarData",
        title="Alterar data/hora",
        description="Altera data/hora de uma reunião existente",
        input_model=AlterarDataInput,
        handler_name="alterar_data",
    ),
    ToolDefinition(
        name="deletar",
        title="Deletar reunião",
        description="Remove uma reunião pelo ID",
        input_model=DeletarInput,
        handler_name="deletar",
    ),
    ToolDefinition(
        name="check",
        title="Verificar status do backend",
        description=(
            "Realiza uma requisição GET no endpoint /check para confirmar "
            "se o sistema está online."
        ),
        input_model=CheckInput,
        handler_name="check",
    ),
)


def extract_credential(request: Any) -> Optional[str]:
    """Return the Authorization header of the HTTP request behind a message."""
    headers = getattr(request, "headers", None)
    if headers is None:
        return None
    return headers.get("authorization") or None


def make_meetings_mcp_server(
    backend: BackendClient, default_offset: str = DEFAULT_OFFSET
) -> Server:
    """Create an MCP server exposing the meetings tools."""
    server: Server = Server(SERVER_NAME, version=SERVER_VERSION)
    operations = MeetingOperations(backend, default_offset)
    handlers = {
        definition.name: getattr(operations, definition.handler_name)
        for definition in TOOL_DEFINITIONS
    }

    @server.list_tools()
    async def list_tools() -> List[types.Tool]:
        return [definition.to_tool() for definition in TOOL_DEFINITIONS]

    @server.call_tool()
    async def call_tool(
        name: str, arguments: Optional[Dict[str, Any]]
    ) -> List[types.TextContent]:
        handler = handlers.get(name)
        if handler is None:
            logger.warning("Unknown tool requested", tool=name)
            return [
                types.TextContent(
                    type="text", text=f"❌ Ferramenta desconhecida: {name}"
                )
            ]

        request = getattr(server.request_context, "request", None)
        return await handler(arguments or {}, extract_credential(request))

    return server
