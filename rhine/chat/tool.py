"""
Secondary model invocations used by SingleChat.

Both run on a fresh, non-streaming session bound to a ``tool_use`` capable
API at the low ``json_temperature``:

- ``get_json``: reformat a free-form answer into a JSON schema
  (``response_format`` constraint) and deserialize it.
- ``get_function``: turn free-form call text into a single function call
  (``tools`` on the request) and return ``{"name", "arguments"}``.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from rhine.chat.base import BaseChat
from rhine.chat.message import Role
from rhine.config.logging import get_logger
from rhine.config.settings import LLMSettings, ModelCapability
from rhine.errors import ChatError, GetFunctionError, GetJsonError
from rhine.prompts.assembler import load_template
from rhine.schema.json_schema import parse_json_as, response_format_for

logger = get_logger(__name__)


def add_response_format(request_body: dict[str, Any], response_format: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``request_body`` constrained to ``response_format``."""
    return {**request_body, "response_format": response_format}


def add_tools(request_body: dict[str, Any], tools_schema: list[dict[str, Any]]) -> dict[str, Any]:
    """Return a copy of ``request_body`` offering ``tools_schema`` to the model."""
    return {**request_body, "tools": tools_schema}


def _helper_session(character_prompt: str, settings: LLMSettings) -> BaseChat:
    return BaseChat.with_model_capability(
        ModelCapability.TOOL_USE,
        character_prompt,
        False,
        settings=settings,
        temperature=settings.json_temperature,
    )


class ChatTool:
    """Namespace for the one-shot helper sessions."""

    @staticmethod
    async def get_json(
        text_answer: str,
        output_type: Any,
        json_schema: dict[str, Any],
        settings: LLMSettings,
    ) -> Any:
        """
        Re-express ``text_answer`` as JSON matching ``json_schema`` and deserialize it.

        Raises:
            GetJsonError: Transport, payload or deserialization failure
        """
        base = _helper_session(load_template("reformat_json"), settings)
        base.add_message(Role.USER, text_answer)

        request_body = add_response_format(
            base.build_request_body(),
            response_format_for(output_type, json_schema),
        )

        try:
            json_answer = await base.exchange(request_body)
        except ChatError as e:
            err = GetJsonError()
            err.add_note(f"Failed to reformat answer into JSON: {text_answer}")
            raise err from e

        logger.info(f"Get LLM API Answer: {json_answer}")

        try:
            return parse_json_as(output_type, json_answer)
        except ValidationError as e:
            err = GetJsonError()
            err.add_note(f"Failed to deserialize JSON: {json_answer}")
            raise err from e

    @staticmethod
    async def get_function(
        text_call: str,
        tools_schema: list[dict[str, Any]],
        settings: LLMSettings,
    ) -> dict[str, Any]:
        """
        Ask the model to resolve ``text_call`` into one of ``tools_schema``.

        Returns:
            The first tool call's ``function`` object, e.g.
            {"name": "roll_dice", "arguments": "{\"notation\": \"2d6\"}"}

        Raises:
            GetFunctionError: Transport failure or no tool call in the response
        """
        base = _helper_session(load_template("resolve_function"), settings)
        base.add_message(Role.USER, text_call)

        request_body = add_tools(base.build_request_body(), tools_schema)

        try:
            response = await base.get_response(request_body)
        except ChatError as e:
            err = GetFunctionError()
            err.add_note(f"Failed to send request for call: {text_call}")
            raise err from e

        try:
            function = response["choices"][0]["message"]["tool_calls"][0]["function"]
        except (KeyError, IndexError, TypeError) as e:
            err = GetFunctionError()
            err.add_note(f"No tool call in response: {response}")
            raise err from e

        if not isinstance(function, dict):
            err = GetFunctionError()
            err.add_note(f"Tool call function is not an object: {function!r}")
            raise err
        return function
