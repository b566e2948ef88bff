"""
Base types for tools the model can call.

A tool is a plain function that takes the JSON arguments object the model
produced and returns something JSON-serializable, or raises. Functions may
be sync or async. When an ``args_model`` is given, the raw dict is validated
into that pydantic model first and the model instance is passed instead,
and the tool's parameter schema is derived from it.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict

from rhine.errors import DeserializeArguments

ToolFunction = Callable[[Any], Any] | Callable[[Any], Awaitable[Any]]

_EMPTY_PARAMETERS: dict[str, Any] = {"type": "object", "properties": {}}


@dataclass(frozen=True)
class ToolDefinition:
    """A registered tool: its name, description, callable and argument model."""

    name: str
    description: str
    func: ToolFunction
    args_model: type[BaseModel] | None = None

    def parameters_schema(self) -> dict[str, Any]:
        """JSON schema for the tool's arguments object."""
        if self.args_model is None:
            return dict(_EMPTY_PARAMETERS)
        return self.args_model.model_json_schema()

    def parse_arguments(self, arguments: dict[str, Any]) -> Any:
        """Validate raw arguments. Without an args model the dict is passed through."""
        if self.args_model is None:
            return arguments
        return self.args_model.model_validate(arguments)

    def to_openai_schema(self) -> dict[str, Any]:
        """
        Tool definition in the OpenAI function-calling format.

        Example:
            {"type": "function",
             "function": {"name": "roll_dice", "description": "...", "parameters": {...}}}
        """
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters_schema(),
            },
        }


class ToolCall(BaseModel):
    """A resolved call: the function name and its raw JSON arguments string."""

    name: str
    raw_arguments: str

    model_config = ConfigDict(frozen=True)

    def arguments(self) -> dict[str, Any]:
        """
        Parse ``raw_arguments``.

        Raises:
            DeserializeArguments: If it is not JSON or not a JSON object
        """
        try:
            parsed = json.loads(self.raw_arguments)
        except json.JSONDecodeError as e:
            err = DeserializeArguments(str(e))
            err.add_note(
                f"Failed to deserialize arguments for function '{self.name}': {self.raw_arguments}"
            )
            raise err from e

        if not isinstance(parsed, dict):
            err = DeserializeArguments(f"expected a JSON object, got {type(parsed).__name__}")
            err.add_note(
                f"Failed to deserialize arguments for function '{self.name}': {self.raw_arguments}"
            )
            raise err
        return parsed


class ToolResult(BaseModel):
    """Outcome of one tool call. Failures are data, not exceptions."""

    ok: bool
    payload: str

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return self.payload
