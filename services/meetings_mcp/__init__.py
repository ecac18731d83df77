"""
Meetings MCP bridge: exposes meeting scheduling tools over the MCP
streamable HTTP transport and forwards them to the meetings backend.
"""
