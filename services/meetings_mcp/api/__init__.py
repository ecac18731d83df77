from services.meetings_mcp.api.mcp import MCPEndpoint  # noqa: F401
