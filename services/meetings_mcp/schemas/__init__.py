"""
Meetings MCP tool schemas.
"""

from services.meetings_mcp.schemas.meetings import (
    AgendarInput,
    AlterarDataInput,
    BuscarPorDataInput,
    BuscarPorPeriodoInput,
    CheckInput,
    DeletarInput,
)

__all__ = [
    "AgendarInput",
    "AlterarDataInput",
    "BuscarPorDataInput",
    "BuscarPorPeriodoInput",
    "CheckInput",
    "DeletarInput",
]
