"""
Common utilities and configurations shared by the meetings MCP bridge.
"""

from services.common.http_errors import (
    ErrorCode,
    MeetingsAPIException,
    register_exception_handlers,
)
from services.common.logging_config import get_logger, setup_service_logging

__all__ = [
    "ErrorCode",
    "MeetingsAPIException",
    "register_exception_handlers",
    "get_logger",
    "setup_service_logging",
]
