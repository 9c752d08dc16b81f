"""작업공간 샌드박스 도구 모듈."""

from skill_agent.tools.runtime import (
    TOOL_DEFINITIONS,
    ToolRuntime,
    normalize_allowed_tool_name,
)
from skill_agent.tools.types import ToolCallRequest, ToolDefinition, ToolResult
from skill_agent.tools.workspace import (
    FileExistsToolError,
    PathEscapeError,
    ShellCommandError,
    ShellTimeoutError,
    ToolError,
    UnknownToolError,
    Workspace,
)

__all__ = [
    "TOOL_DEFINITIONS",
    "ToolRuntime",
    "normalize_allowed_tool_name",
    "ToolCallRequest",
    "ToolDefinition",
    "ToolResult",
    "ToolError",
    "PathEscapeError",
    "FileExistsToolError",
    "ShellCommandError",
    "ShellTimeoutError",
    "UnknownToolError",
    "Workspace",
]
