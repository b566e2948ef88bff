"""
Schema helpers: JSON Schema derivation for structured answers and the
tool-use directive syntax.
"""

from rhine.schema.json_schema import json_schema_for, parse_json_as, response_format_for
from rhine.schema.tool_schema import (
    TOOL_USE_CLOSE,
    TOOL_USE_OPEN,
    extract_tool_uses,
    strip_tool_uses,
    wrap_tool_use,
)

__all__ = [
    "TOOL_USE_CLOSE",
    "TOOL_USE_OPEN",
    "extract_tool_uses",
    "json_schema_for",
    "parse_json_as",
    "response_format_for",
    "strip_tool_uses",
    "wrap_tool_use",
]
