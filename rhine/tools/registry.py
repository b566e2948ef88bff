"""
Process-wide registry of functions the model may call.

The registry is filled at startup and then frozen; dispatch tasks read it
concurrently without locking. Invocation never raises for a missing tool or
a failing function: both come back as a ToolResult with ``ok=False`` and a
readable message.
"""

from __future__ import annotations

import asyncio
import inspect
import json
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel

from rhine.config.logging import get_logger
from rhine.errors import FunctionExecution, FunctionNotFound, SerializeResult
from rhine.tools.base import ToolDefinition, ToolFunction, ToolResult

logger = get_logger(__name__)


class ToolRegistry:
    """Mapping from tool name to ToolDefinition."""

    def __init__(self):
        self._tools: dict[str, ToolDefinition] = {}
        self._frozen = False

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Make the registry read-only."""
        self._frozen = True

    def register(self, definition: ToolDefinition) -> None:
        """Register a tool. Re-registering a name replaces the old definition."""
        if self._frozen:
            raise RuntimeError(f"Tool registry is frozen; cannot register '{definition.name}'")
        if definition.name in self._tools:
            logger.warning(f"Replacing already registered tool '{definition.name}'")
        self._tools[definition.name] = definition

    def tool(
        self,
        name: str | None = None,
        description: str | None = None,
        args_model: type[BaseModel] | None = None,
    ) -> Callable[[ToolFunction], ToolFunction]:
        """
        Decorator form of ``register``.

        Example:
            @registry.tool(description="Roll dice", args_model=RollDiceArgs)
            def roll_dice(args: RollDiceArgs) -> dict: ...
        """

        def decorator(func: ToolFunction) -> ToolFunction:
            self.register(
                ToolDefinition(
                    name=name or func.__name__,
                    description=description or inspect.getdoc(func) or "",
                    func=func,
                    args_model=args_model,
                )
            )
            return func

        return decorator

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def tool_schemas(self) -> list[dict[str, Any]]:
        """OpenAI-format definitions of every registered tool."""
        return [definition.to_openai_schema() for definition in self._tools.values()]

    async def invoke(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """
        Call tool ``name`` with parsed JSON ``arguments``.

        Returns:
            ToolResult with the pretty-printed JSON return value, or ok=False
            with a description when the tool is unknown or fails.

        Raises:
            SerializeResult: If the tool returned something that isn't JSON-serializable
        """
        try:
            definition = self._lookup(name)
            logger.info(f"Calling function named: {name}")
            result = await _call(definition, arguments)
        except (FunctionNotFound, FunctionExecution) as e:
            logger.info(str(e))
            return ToolResult(ok=False, payload=str(e))

        try:
            serialized = json.dumps(_jsonable(result), indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            err = SerializeResult()
            err.add_note(f"Failed to serialize result for function '{name}': {e!r}")
            raise err from e

        logger.info(f"Calling function succeeded: {serialized}")
        return ToolResult(ok=True, payload=serialized)

    def _lookup(self, name: str) -> ToolDefinition:
        definition = self._tools.get(name)
        if definition is None:
            raise FunctionNotFound(name)
        return definition


async def _call(definition: ToolDefinition, arguments: dict[str, Any]) -> Any:
    try:
        parsed = definition.parse_arguments(arguments)
        if inspect.iscoroutinefunction(definition.func):
            return await definition.func(parsed)
        # Sync tools are assumed to block on I/O; keep them off the event loop
        result = await asyncio.to_thread(definition.func, parsed)
        if inspect.isawaitable(result):
            result = await result
        return result
    except Exception as e:
        raise FunctionExecution(definition.name, str(e) or type(e).__name__) from e


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


_tool_registry: ToolRegistry | None = None


def get_tool_registry() -> ToolRegistry:
    """Get or create the process-wide tool registry."""
    global _tool_registry
    if _tool_registry is None:
        _tool_registry = ToolRegistry()
    return _tool_registry
