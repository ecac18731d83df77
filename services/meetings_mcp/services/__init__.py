"""
Business services for the Meetings MCP bridge.
"""
