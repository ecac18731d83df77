from services.meetings_mcp.tools.mcp_server import (  # noqa: F401
    TOOL_DEFINITIONS,
    make_meetings_mcp_server,
)
from services.meetings_mcp.tools.operations import MeetingOperations  # noqa: F401
