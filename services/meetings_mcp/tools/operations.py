"""
Meeting operations exposed as MCP tools.

Every handler takes the raw tool arguments plus the caller's bearer
credential, validates and normalizes the input, calls the meetings backend
and returns MCP text content. Failures never escape as protocol errors: they
come back as a text payload starting with ``❌``. Validation failures use the
``❌ Validação:`` prefix so callers can tell them apart from backend failures.
"""

import json
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import quote

from mcp.types import TextContent
from pydantic import ValidationError as PydanticValidationError

from services.common.http_errors import ValidationError
from services.common.logging_config import get_logger
from services.meetings_mcp.exceptions import (
    BackendRejectedError,
    BackendUnreachableError,
    MissingCredentialError,
)
from services.meetings_mcp.schemas import (
    AgendarInput,
    AlterarDataInput,
    BuscarPorDataInput,
    BuscarPorPeriodoInput,
    DeletarInput,
)
from services.meetings_mcp.services.backend_client import BackendClient
from services.meetings_mcp.services.datetime_normalizer import (
    DEFAULT_OFFSET,
    ensure_future,
    ensure_ordered,
    expand_range_bound,
    normalize_phone,
    normalize_to_offset_iso,
    to_day_key,
)

logger = get_logger(__name__)

VALIDATION_PREFIX = "❌ Validação:"
BACKEND_UNREACHABLE_PREFIX = "❌ Backend indisponível:"


def _format_validation_errors(exc: PydanticValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc']) or 'input'}: {error['msg']}"
        for error in exc.errors()
    )


def _text(text: str) -> List[TextContent]:
    return [TextContent(type="text", text=text)]


def _path_segment(value: str) -> str:
    return "/" + quote(value, safe="")


class MeetingOperations:
    """Handlers for the meetings tools, bound to one backend client."""

    def __init__(self, backend: BackendClient, default_offset: str = DEFAULT_OFFSET):
        self.backend = backend
        self.default_offset = default_offset

    async def _run(
        self,
        operation: str,
        failure_text: str,
        action: Callable[[], Awaitable[Any]],
    ) -> List[TextContent]:
        try:
            payload = await action()
        except PydanticValidationError as e:
            logger.info(f"{operation} rejected invalid input", errors=e.errors())
            return _text(f"{VALIDATION_PREFIX} {_format_validation_errors(e)}")
        except ValidationError as e:
            logger.info(f"{operation} rejected invalid input", error=e.message)
            return _text(f"{VALIDATION_PREFIX} {e.message}")
        except MissingCredentialError as e:
            logger.warning(f"{operation} called without credential")
            return _text(f"❌ {e.message}")
        except BackendUnreachableError as e:
            logger.error(f"{operation} failed: backend unreachable", error=e.message)
            return _text(f"{BACKEND_UNREACHABLE_PREFIX} {e.message}")
        except BackendRejectedError as e:
            logger.warning(
                f"{operation} rejected by backend",
                backend_status=e.backend_status,
                body=e.response_body,
            )
            return _text(f"❌ {e.message}")
        except Exception:
            logger.exception(f"{operation} failed unexpectedly")
            return _text(f"❌ {failure_text}")

        logger.info(f"{operation} succeeded", response=payload)
        return _text(json.dumps(payload, ensure_ascii=False))

    async def agendar(
        self, arguments: Dict[str, Any], credential: Optional[str]
    ) -> List[TextContent]:
        logger.info("agendar input", arguments=arguments)

        async def action() -> Any:
            params = AgendarInput.model_validate(arguments)
            data_hora = normalize_to_offset_iso(params.dataHora, self.default_offset)
            ensure_future(data_hora)

            body = params.model_dump(exclude_none=True)
            body["clienteNumero"] = normalize_phone(params.clienteNumero)
            body["dataHora"] = data_hora

            result = await self.backend.call(
                "POST",
                json_body=body,
                credential=credential,
                operation="agendar",
            )
            return result.raise_for_outcome()

        return await self._run("agendar", "Erro ao agendar.", action)

    async def buscar_por_data(
        self, arguments: Dict[str, Any], credential: Optional[str]
    ) -> List[TextContent]:
        logger.info("buscarPorData input", arguments=arguments)

        async def action() -> Any:
            params = BuscarPorDataInput.model_validate(arguments)
            day = to_day_key(params.day, self.default_offset)
            result = await self.backend.call(
                "GET",
                "/",
                params={"day": day},
                credential=credential,
                operation="buscarPorData",
            )
            return result.raise_for_outcome()

        return await self._run("buscarPorData", "Erro ao buscar por data.", action)

    async def buscar_por_periodo(
        self, arguments: Dict[str, Any], credential: Optional[str]
    ) -> List[TextContent]:
        logger.info("buscarPorPeriodo input", arguments=arguments)

        async def action() -> Any:
            params = BuscarPorPeriodoInput.model_validate(arguments)
            start = normalize_to_offset_iso(
                expand_range_bound(params.start, "start", self.default_offset),
                self.default_offset,
            )
            end = normalize_to_offset_iso(
                expand_range_bound(params.end, "end", self.default_offset),
                self.default_offset,
            )
            ensure_ordered(start, end)

            result = await self.backend.call(
                "GET",
                "/",
                params={"start": start, "end": end},
                credential=credential,
                operation="buscarPorPeriodo",
            )
            return result.raise_for_outcome()

        return await self._run(
            "buscarPorPeriodo", "Erro ao buscar por período.", action
        )

    async def alterar_data(
        self, arguments: Dict[str, Any], credential: Optional[str]
    ) -> List[TextContent]:
        logger.info("alterarData input", arguments=arguments)

        async def action() -> Any:
            params = AlterarDataInput.model_validate(arguments)
            nova = normalize_to_offset_iso(params.novaDataHora, self.default_offset)
            ensure_future(nova)

            result = await self.backend.call(
                "PATCH",
                _path_segment(params.id),
                json_body={"novaDataHora": nova},
                credential=credential,
                operation="alterarData",
            )
            return result.raise_for_outcome()

        return await self._run("alterarData", "Erro ao alterar data.", action)

    async def deletar(
        self, arguments: Dict[str, Any], credential: Optional[str]
    ) -> List[TextContent]:
        logger.info("deletar input", arguments=arguments)

        async def action() -> Any:
            params = DeletarInput.model_validate(arguments)
            result = await self.backend.call(
                "DELETE",
                _path_segment(params.id),
                credential=credential,
                operation="deletar",
            )
            return result.raise_for_outcome()

        return await self._run("deletar", "Erro ao deletar.", action)

    async def check(
        self, arguments: Dict[str, Any], credential: Optional[str]
    ) -> List[TextContent]:
        logger.info("check started")

        async def action() -> Any:
            # /check is public; forward the token only when we have one
            result = await self.backend.call(
                "GET",
                "/check",
                credential=credential,
                require_credential=False,
                operation="check",
            )
            return result.raise_for_outcome()

        return await self._run("check", "Erro ao verificar backend.", action)
