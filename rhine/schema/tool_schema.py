"""
Tool-use directives embedded in model text.

The model requests a tool by wrapping free-form call text in a fixed tag pair:

    Let me check. <ToolUse>roll 2d6 for damage</ToolUse> Done.

Matching is a literal, non-greedy tag match. Unbalanced or malformed tags
simply don't match and are left in the text untouched.
"""

import re

TOOL_USE_OPEN = "<ToolUse>"
TOOL_USE_CLOSE = "</ToolUse>"

_TOOL_USE_PATTERN = re.compile(
    re.escape(TOOL_USE_OPEN) + r"(.*?)" + re.escape(TOOL_USE_CLOSE),
    re.DOTALL,
)


def extract_tool_uses(text: str) -> list[str]:
    """Call texts of every directive, in order of appearance."""
    return _TOOL_USE_PATTERN.findall(text)


def strip_tool_uses(text: str) -> str:
    """Remove every directive (tags included), keeping the surrounding text as is."""
    return _TOOL_USE_PATTERN.sub("", text)


def wrap_tool_use(call_text: str) -> str:
    return f"{TOOL_USE_OPEN}{call_text}{TOOL_USE_CLOSE}"
