"""Standard response envelope shared by the CLI and the MCP tool surface."""

from stagegate.core.responses.builders import error_response, success_response
from stagegate.core.responses.types import ErrorCode, ErrorType, ToolResponse

__all__ = [
    "ErrorCode",
    "ErrorType",
    "ToolResponse",
    "error_response",
    "success_response",
]
