"""
Tool Integration Layer.

Functions the model can request through ToolUse directives, kept in a
process-wide registry that the tool-call pipeline dispatches against.
"""

from rhine.tools.base import ToolCall, ToolDefinition, ToolResult
from rhine.tools.registry import ToolRegistry, get_tool_registry

__all__ = [
    "ToolCall",
    "ToolDefinition",
    "ToolRegistry",
    "ToolResult",
    "get_tool_registry",
]
