"""Input schemas for the meetings MCP tools."""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Seconds are optional; an explicit offset or Z is not
OFFSET_DATETIME_PATTERN = (
    r"^\d{4}-\d{2}-\d{2}[Tt ]\d{2}:\d{2}(:\d{2}(\.\d+)?)?([Zz]|[+-]\d{2}:?\d{2})$"
)
PHONE_PATTERN = r"^\+?\d{10,15}$"

DEFAULT_CHIEF_NAME = "Ezequias"


class AgendarInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    clienteNome: str = Field(..., min_length=1, description="Nome do cliente")
    clienteNumero: str = Field(
        ...,
        pattern=PHONE_PATTERN,
        description="Telefone do cliente em E.164 (ex: 5531987654321)",
    )
    dataHora: str = Field(
        ...,
        pattern=OFFSET_DATETIME_PATTERN,
        description="Data/hora ISO com offset (ex: 2025-09-25T19:00:00-03:00)",
    )
    chefeNome: str = Field(DEFAULT_CHIEF_NAME, description="Nome do responsável")
    turma_nome: str = Field(..., min_length=1, description="Nome da turma")
    cidadeOpcional: Optional[str] = None
    empresaNome: Optional[str] = None
    endereco: Optional[str] = None
    referidoPor: Optional[str] = None
    funcionarios: Optional[Union[int, float]] = None
    faturamento: Optional[str] = None
    observacoes: Optional[str] = None
    instagram: Optional[str] = None


class BuscarPorDataInput(BaseModel):
    day: str = Field(
        ..., min_length=1, description="Dia (YYYY-MM-DD) ou data/hora ISO com offset"
    )


class BuscarPorPeriodoInput(BaseModel):
    start: str = Field(
        ..., min_length=1, description="Início (YYYY-MM-DD ou ISO com offset)"
    )
    end: str = Field(
        ..., min_length=1, description="Fim (YYYY-MM-DD ou ISO com offset)"
    )


class AlterarDataInput(BaseModel):
    id: str = Field(..., min_length=1, description="ID da reunião")
    novaDataHora: str = Field(
        ...,
        pattern=OFFSET_DATETIME_PATTERN,
        description="Nova data/hora ISO com offset",
    )


class DeletarInput(BaseModel):
    id: str = Field(..., min_length=1, description="ID da reunião")


class CheckInput(BaseModel):
    pass
