"""
Prompt assembly from the packaged text templates.

Templates use ``{placeholder}`` markers that are filled with str.replace
rather than str.format, since the inserted JSON is full of braces.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from rhine.errors import AssembleOutputDescriptionError
from rhine.schema.tool_schema import wrap_tool_use

TEMPLATE_DIR = Path(__file__).parent


@lru_cache(maxsize=None)
def load_template(name: str) -> str:
    """Read ``<name>.txt`` from the prompts package."""
    return (TEMPLATE_DIR / f"{name}.txt").read_text(encoding="utf-8").strip()


def assemble_output_description(schema: dict[str, Any]) -> str:
    """
    System-message instruction describing the expected output shape.

    Raises:
        AssembleOutputDescriptionError: If the schema is not JSON-serializable
    """
    try:
        rendered = json.dumps(schema, indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        err = AssembleOutputDescriptionError()
        err.add_note(f"Failed to serialize schema: {schema!r}")
        raise err from e
    return load_template("output_description").replace("{schema}", rendered)


def _tool_function(tool: dict[str, Any]) -> dict[str, Any]:
    # OpenAI wraps the definition in {"type": "function", "function": {...}}
    function = tool.get("function")
    return function if isinstance(function, dict) else tool


def assemble_tools_prompt(tools_schema: list[dict[str, Any]]) -> str:
    """System-message instruction listing the tools and the ToolUse directive syntax."""
    lines = []
    for tool in tools_schema:
        function = _tool_function(tool)
        name = function.get("name", "<unnamed>")
        description = function.get("description") or "No description"
        lines.append(f"- {name}: {description}")

    if tools_schema:
        first = _tool_function(tools_schema[0]).get("name", "tool_name")
        example = json.dumps({"name": first, "arguments": {}})
    else:
        example = "describe the call here"

    return (
        load_template("tools_prompt")
        .replace("{example_directive}", wrap_tool_use(example))
        .replace("{tool_list}", "\n".join(lines) or "(none)")
        .replace("{tools_schema}", json.dumps(tools_schema, indent=2, ensure_ascii=False))
    )
