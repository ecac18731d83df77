"""
Base classes for Meetings MCP bridge tests.

Provides the environment every test runs under (a fake backend URL, short
timeouts, JSON responses on the MCP endpoint) and an app-level base that
builds a fresh application with a TestClient.
"""

import os

from services.common.test_utils import BaseSelectiveHTTPIntegrationTest
from services.meetings_mcp.settings import Settings, reset_settings

BACKEND_BASE = "http://backend.test/api/meetings"

TEST_ENV = {
    "MEETINGS_BASE": f"{BACKEND_BASE}/",
    "HTTP_TIMEOUT_MS": "1000",
    "HTTP_MAX_RETRIES": "1",
    "MCP_JSON_RESPONSE": "true",
    "MAX_BODY_BYTES": "4096",
    "LOG_LEVEL": "INFO",
    "LOG_FORMAT": "json",
}

# Accept both so the transport never answers 406
MCP_ACCEPT = "application/json, text/event-stream"
MCP_PROTOCOL_VERSION = "2025-03-26"


class BaseMeetingsMCPTest:
    """Sets the test environment and clears cached settings around each test."""

    def setup_method(self, method=None):
        self._saved_env = {key: os.environ.get(key) for key in TEST_ENV}
        os.environ.update(TEST_ENV)
        reset_settings()

    def teardown_method(self, method=None):
        for key, value in self._saved_env.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
        reset_settings()


class BaseMeetingsMCPIntegrationTest(BaseSelectiveHTTPIntegrationTest):
    """Full application behind a TestClient, with external HTTP calls blocked."""

    def setup_method(self, method=None):
        super().setup_method(method)
        self._env = BaseMeetingsMCPTest()
        self._env.setup_method(method)

        from services.meetings_mcp.main import create_app

        self.settings = Settings()
        self.app = create_app(self.settings)
        self.client = self.create_test_client(self.app)

    def teardown_method(self, method=None):
        self._env.teardown_method(method)
        super().teardown_method(method)

    def mcp_headers(self, session_id=None, **extra):
        headers = {
            "Accept": MCP_ACCEPT,
            "Content-Type": "application/json",
            "mcp-protocol-version": MCP_PROTOCOL_VERSION,
        }
        if session_id:
            headers["mcp-session-id"] = session_id
        headers.update(extra)
        return headers

    def initialize_payload(self, request_id=1):
        return {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": "initialize",
            "params": {
                "protocolVersion": MCP_PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": "test-client", "version": "1.0"},
            },
        }
