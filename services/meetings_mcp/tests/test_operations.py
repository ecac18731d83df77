"""
End-to-end tests for the meetings tool handlers against a mocked backend.

Each test drives a handler with raw tool arguments and inspects both the
text returned to the MCP client and the request the backend received.
"""

import json

import httpx
import respx

from services.meetings_mcp.services.backend_client import BackendClient
from services.meetings_mcp.tests.meetings_mcp_test_base import (
    BACKEND_BASE,
    BaseMeetingsMCPTest,
)
from services.meetings_mcp.tools.operations import (
    BACKEND_UNREACHABLE_PREFIX,
    VALIDATION_PREFIX,
    MeetingOperations,
)

TOKEN = "Bearer test-token"


def _text(result):
    assert len(result) == 1
    assert result[0].type == "text"
    return result[0].text


class BaseOperationsTest(BaseMeetingsMCPTest):
    def setup_method(self, method=None):
        super().setup_method(method)
        self.backend = BackendClient(base_url=BACKEND_BASE, timeout_ms=1000, max_retries=1)
        self.operations = MeetingOperations(self.backend)


class TestAgendar(BaseOperationsTest):
    def setup_method(self, method=None):
        super().setup_method(method)
        self.arguments = {
            "clienteNome": "Maria",
            "clienteNumero": "5531987654321",
            "dataHora": "2099-01-01T10:00:00-03:00",
            "chefeNome": "Ezequias",
            "turma_nome": "Turma A",
        }

    @respx.mock
    async def test_creates_meeting(self):
        route = respx.post(BACKEND_BASE).mock(
            return_value=httpx.Response(201, json={"id": "m-1", "status": "agendada"})
        )

        text = _text(await self.operations.agendar(self.arguments, TOKEN))

        assert json.loads(text) == {"id": "m-1", "status": "agendada"}
        request = route.calls.last.request
        assert request.headers["Authorization"] == TOKEN
        body = json.loads(request.content)
        assert body["clienteNumero"] == "5531987654321"
        assert body["dataHora"] == "2099-01-01T10:00:00-03:00"
        assert body["turma_nome"] == "Turma A"
        assert "instagram" not in body

    @respx.mock
    async def test_normalizes_timestamp_and_defaults_chief(self):
        route = respx.post(BACKEND_BASE).mock(return_value=httpx.Response(201, json={}))
        arguments = dict(self.arguments, dataHora="2099-01-01T10:00Z")
        del arguments["chefeNome"]

        await self.operations.agendar(arguments, TOKEN)

        body = json.loads(route.calls.last.request.content)
        assert body["dataHora"] == "2099-01-01T10:00:00Z"
        assert body["chefeNome"] == "Ezequias"

    @respx.mock
    async def test_optional_fields_are_forwarded(self):
        route = respx.post(BACKEND_BASE).mock(return_value=httpx.Response(201, json={}))
        arguments = dict(self.arguments, funcionarios=12, instagram="@empresa")

        await self.operations.agendar(arguments, TOKEN)

        body = json.loads(route.calls.last.request.content)
        assert body["funcionarios"] == 12
        assert body["instagram"] == "@empresa"

    @respx.mock
    async def test_past_date_is_rejected_without_calling_backend(self):
        route = respx.post(BACKEND_BASE).mock(return_value=httpx.Response(201, json={}))
        arguments = dict(self.arguments, dataHora="2000-01-01T10:00:00-03:00")

        text = _text(await self.operations.agendar(arguments, TOKEN))

        assert text.startswith(VALIDATION_PREFIX)
        assert "futuro" in text
        assert route.call_count == 0

    @respx.mock
    async def test_invalid_phone_is_rejected(self):
        route = respx.post(BACKEND_BASE).mock(return_value=httpx.Response(201, json={}))
        arguments = dict(self.arguments, clienteNumero="123")

        text = _text(await self.operations.agendar(arguments, TOKEN))

        assert text.startswith(VALIDATION_PREFIX)
        assert "clienteNumero" in text
        assert route.call_count == 0

    @respx.mock
    async def test_missing_offset_is_rejected(self):
        arguments = dict(self.arguments, dataHora="2099-01-01T10:00:00")

        text = _text(await self.operations.agendar(arguments, TOKEN))

        assert text.startswith(VALIDATION_PREFIX)
        assert "dataHora" in text

    @respx.mock
    async def test_missing_credential(self):
        route = respx.post(BACKEND_BASE).mock(return_value=httpx.Response(201, json={}))

        text = _text(await self.operations.agendar(self.arguments, None))

        assert text == "❌ Token não recebido pelo MCP Server."
        assert route.call_count == 0

    @respx.mock
    async def test_backend_rejection_is_reported(self):
        respx.post(BACKEND_BASE).mock(
            return_value=httpx.Response(409, json={"error": "horário ocupado"})
        )

        text = _text(await self.operations.agendar(self.arguments, TOKEN))

        assert text.startswith("❌ Backend recusou (HTTP 409)")
        assert "horário ocupado" in text

    @respx.mock
    async def test_backend_unreachable_is_reported(self):
        route = respx.post(BACKEND_BASE).mock(
            side_effect=httpx.ConnectError("connection refused")
        )

        text = _text(await self.operations.agendar(self.arguments, TOKEN))

        assert text.startswith(BACKEND_UNREACHABLE_PREFIX)
        assert route.call_count == 2


class TestBuscarPorData(BaseOperationsTest):
    @respx.mock
    async def test_bare_day(self):
        route = respx.get(f"{BACKEND_BASE}/").mock(
            return_value=httpx.Response(200, json=[{"id": "m-1"}])
        )

        text = _text(await self.operations.buscar_por_data({"day": "2025-09-25"}, TOKEN))

        assert json.loads(text) == [{"id": "m-1"}]
        assert route.calls.last.request.url.params["day"] == "2025-09-25"

    @respx.mock
    async def test_timestamp_is_reduced_to_its_day(self):
        route = respx.get(f"{BACKEND_BASE}/").mock(return_value=httpx.Response(200, json=[]))

        await self.operations.buscar_por_data({"day": "2025-09-25T22:00-03:00"}, TOKEN)

        assert route.calls.last.request.url.params["day"] == "2025-09-25"

    async def test_garbage_day_is_rejected(self):
        text = _text(await self.operations.buscar_por_data({"day": "amanhã"}, TOKEN))

        assert text.startswith(VALIDATION_PREFIX)

    async def test_missing_day_is_rejected(self):
        text = _text(await self.operations.buscar_por_data({}, TOKEN))

        assert text.startswith(VALIDATION_PREFIX)
        assert "day" in text


class TestBuscarPorPeriodo(BaseOperationsTest):
    @respx.mock
    async def test_same_bare_day_covers_the_whole_day(self):
        route = respx.get(f"{BACKEND_BASE}/").mock(return_value=httpx.Response(200, json=[]))

        text = _text(
            await self.operations.buscar_por_periodo(
                {"start": "2025-01-01", "end": "2025-01-01"}, TOKEN
            )
        )

        assert json.loads(text) == []
        params = route.calls.last.request.url.params
        assert params["start"] == "2025-01-01T00:00:00-03:00"
        assert params["end"] == "2025-01-01T23:59:59-03:00"

    @respx.mock
    async def test_mixed_bounds(self):
        route = respx.get(f"{BACKEND_BASE}/").mock(return_value=httpx.Response(200, json=[]))

        await self.operations.buscar_por_periodo(
            {"start": "2025-01-01T08:30Z", "end": "2025-01-03"}, TOKEN
        )

        params = route.calls.last.request.url.params
        assert params["start"] == "2025-01-01T08:30:00Z"
        assert params["end"] == "2025-01-03T23:59:59-03:00"

    @respx.mock
    async def test_reversed_range_is_rejected(self):
        route = respx.get(f"{BACKEND_BASE}/").mock(return_value=httpx.Response(200, json=[]))

        text = _text(
            await self.operations.buscar_por_periodo(
                {"start": "2025-02-01", "end": "2025-01-01"}, TOKEN
            )
        )

        assert text == f"{VALIDATION_PREFIX} Intervalo inválido: start > end."
        assert route.call_count == 0


class TestAlterarData(BaseOperationsTest):
    @respx.mock
    async def test_patches_meeting(self):
        route = respx.patch(f"{BACKEND_BASE}/m-1").mock(
            return_value=httpx.Response(200, json={"id": "m-1"})
        )

        text = _text(
            await self.operations.alterar_data(
                {"id": "m-1", "novaDataHora": "2099-05-05T15:00-0300"}, TOKEN
            )
        )

        assert json.loads(text) == {"id": "m-1"}
        assert json.loads(route.calls.last.request.content) == {
            "novaDataHora": "2099-05-05T15:00:00-03:00"
        }

    @respx.mock
    async def test_past_date_is_rejected(self):
        route = respx.patch(f"{BACKEND_BASE}/m-1").mock(return_value=httpx.Response(200))

        text = _text(
            await self.operations.alterar_data(
                {"id": "m-1", "novaDataHora": "2001-05-05T15:00:00-03:00"}, TOKEN
            )
        )

        assert text.startswith(VALIDATION_PREFIX)
        assert route.call_count == 0

    @respx.mock
    async def test_unknown_meeting(self):
        respx.patch(f"{BACKEND_BASE}/nope").mock(
            return_value=httpx.Response(404, text="Reunião não encontrada")
        )

        text = _text(
            await self.operations.alterar_data(
                {"id": "nope", "novaDataHora": "2099-05-05T15:00:00Z"}, TOKEN
            )
        )

        assert text == "❌ Backend recusou (HTTP 404): Reunião não encontrada"


class TestDeletar(BaseOperationsTest):
    @respx.mock
    async def test_deletes_meeting(self):
        route = respx.delete(f"{BACKEND_BASE}/42").mock(
            return_value=httpx.Response(200, json={"deleted": True})
        )

        text = _text(await self.operations.deletar({"id": "42"}, TOKEN))

        assert json.loads(text) == {"deleted": True}
        assert route.calls.last.request.headers["Authorization"] == TOKEN

    @respx.mock
    async def test_empty_response_body(self):
        respx.delete(f"{BACKEND_BASE}/42").mock(return_value=httpx.Response(204))

        text = _text(await self.operations.deletar({"id": "42"}, TOKEN))

        assert text == "null"

    async def test_missing_credential(self):
        text = _text(await self.operations.deletar({"id": "42"}, ""))

        assert text == "❌ Token não recebido pelo MCP Server."


class TestCheck(BaseOperationsTest):
    @respx.mock
    async def test_works_without_credential(self):
        route = respx.get(f"{BACKEND_BASE}/check").mock(
            return_value=httpx.Response(200, json={"status": "online"})
        )

        text = _text(await self.operations.check({}, None))

        assert json.loads(text) == {"status": "online"}
        assert "Authorization" not in route.calls.last.request.headers

    @respx.mock
    async def test_forwards_credential_when_present(self):
        route = respx.get(f"{BACKEND_BASE}/check").mock(
            return_value=httpx.Response(200, json={})
        )

        await self.operations.check({}, TOKEN)

        assert route.calls.last.request.headers["Authorization"] == TOKEN

    @respx.mock
    async def test_unreachable_backend(self):
        respx.get(f"{BACKEND_BASE}/check").mock(side_effect=httpx.ConnectTimeout("slow"))

        text = _text(await self.operations.check({}, None))

        assert text.startswith(BACKEND_UNREACHABLE_PREFIX)
        assert "2 tentativa(s)" in text
