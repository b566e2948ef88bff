"""
SingleChat - a user talking to one character, with structured output and tools.

Structured answers (``get_json_answer``) are two-pass by default: the model
answers freely with an output description in its context, then a separate
low-temperature session reformats that answer into the JSON schema. The
``single_pass`` mode sends the schema constraint on the main request instead.

Tool answers (``get_tool_answer``) run as fan-out/fan-in:

    answer ──extract──> [call text 1, call text 2, ...]
      │                      │ one task per directive, concurrently:
      │                      │   resolve → {name, arguments} → registry.invoke
      │                      ▼
    strip directives    gather(return_exceptions=True), launch order kept
      │                      │
      └──> (clean_answer, [ToolResult 1, ToolResult 2, ...])

The unit of failure is one call. Unknown tools and failing tools come back
as ``ok=False`` results; a call whose resolution itself fails contributes an
error placeholder at its position. The batch as a whole always completes.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

from rhine.chat.base import BaseChat
from rhine.chat.message import Role
from rhine.chat.store import ConversationPath
from rhine.chat.tool import ChatTool, add_response_format
from rhine.config.logging import get_logger
from rhine.config.settings import ApiSettings, LLMSettings, ModelCapability, get_settings
from rhine.errors import (
    ChatError,
    ExtractFunctionCall,
    GetJsonError,
    MissingField,
    ParseFunctionCall,
    ToolCallError,
)
from rhine.prompts.assembler import assemble_output_description, assemble_tools_prompt
from rhine.schema.json_schema import json_schema_for, parse_json_as, response_format_for
from rhine.schema.tool_schema import extract_tool_uses, strip_tool_uses
from rhine.tools.base import ToolCall, ToolResult
from rhine.tools.registry import ToolRegistry, get_tool_registry

logger = get_logger(__name__)


class SingleChat:
    """
    Chat session between the user and one model-backed character.

    Args:
        api: Endpoint to talk to
        character_prompt: System prompt for the character
        need_stream: Stream answers (fixed for the session)
        settings: LLM settings (default: global settings)
        registry: Tool registry for ``get_tool_answer`` (default: process-wide registry)
    """

    def __init__(
        self,
        api: ApiSettings,
        character_prompt: str,
        need_stream: bool = False,
        *,
        settings: LLMSettings | None = None,
        registry: ToolRegistry | None = None,
    ):
        self.settings = settings or get_settings().llm
        self.base = BaseChat(api, character_prompt, need_stream, settings=self.settings)
        self.need_stream = need_stream
        self.registry = registry if registry is not None else get_tool_registry()
        self.tools_schema: list[dict[str, Any]] = []

    @classmethod
    def with_api_name(cls, api_name: str, character_prompt: str, need_stream: bool = False, **kwargs) -> SingleChat:
        settings = kwargs.pop("settings", None) or get_settings().llm
        return cls(settings.get_api(api_name), character_prompt, need_stream, settings=settings, **kwargs)

    @classmethod
    def with_model_capability(
        cls,
        capability: ModelCapability,
        character_prompt: str,
        need_stream: bool = False,
        **kwargs,
    ) -> SingleChat:
        settings = kwargs.pop("settings", None) or get_settings().llm
        return cls(
            settings.get_api_for_capability(capability),
            character_prompt,
            need_stream,
            settings=settings,
            **kwargs,
        )

    @property
    def usage(self) -> int:
        """
        Tokens spent by this session's own exchanges.

        The reformat and call-resolution passes run on separate helper
        sessions and are not included.
        """
        return self.base.usage

    @property
    def message_path(self) -> ConversationPath:
        return self.base.store.active_path

    # ------------------------------------------------------------------
    # Plain answers
    # ------------------------------------------------------------------

    async def _process_request(
        self,
        request_body: dict[str, Any],
        parent: ConversationPath | None = None,
    ) -> str:
        return await self.base.exchange(request_body, Role.ASSISTANT, parent)

    async def get_answer(self, user_input: str) -> str:
        """Answer ``user_input`` on the active path."""
        return await self.get_answer_with_end_path(self.message_path, user_input)

    async def get_answer_with_end_path(self, end_path: ConversationPath, user_input: str) -> str:
        """
        Answer ``user_input`` as a continuation of ``end_path``.

        When ``end_path`` is not the latest leaf this starts a new branch;
        the existing continuation stays in the store.
        """
        user_path = self.base.add_message(Role.USER, user_input, parent=end_path)
        request_body = self.base.build_request_body(user_path)
        return await self._process_request(request_body, parent=user_path)

    async def get_answer_again(self, end_path: ConversationPath) -> str:
        """
        Regenerate: answer the history at ``end_path`` again without new input.

        The new reply becomes another child of ``end_path``; earlier replies
        remain reachable through their own paths.
        """
        request_body = self.base.build_request_body(end_path)
        return await self._process_request(request_body, parent=end_path)

    # ------------------------------------------------------------------
    # Structured answers
    # ------------------------------------------------------------------

    async def get_json_answer(self, user_input: str, output_type: Any) -> Any:
        """
        Answer ``user_input`` and return it deserialized into ``output_type``.

        Raises:
            AssembleOutputDescriptionError: If the output description can't be built
            GetJsonError: If reformatting or deserialization fails
            ChatError: Transport/payload failures of the main exchange
        """
        schema = json_schema_for(output_type)
        output_description = assemble_output_description(schema)
        self.base.add_message(Role.SYSTEM, output_description)

        if self.settings.structured_output_mode == "single_pass":
            return await self._get_json_single_pass(user_input, output_type, schema)

        answer = await self.get_answer(user_input)

        try:
            return await ChatTool.get_json(answer, output_type, schema, self.settings)
        except GetJsonError as e:
            e.add_note(f"Failed to parse answer as JSON: {answer}")
            raise

    async def _get_json_single_pass(self, user_input: str, output_type: Any, schema: dict[str, Any]) -> Any:
        user_path = self.base.add_message(Role.USER, user_input)
        request_body = add_response_format(
            self.base.build_request_body(user_path),
            response_format_for(output_type, schema),
        )
        answer = await self._process_request(request_body, parent=user_path)

        try:
            return parse_json_as(output_type, answer)
        except ValueError as e:
            err = GetJsonError()
            err.add_note(f"Failed to deserialize JSON: {answer}")
            raise err from e

    get_structured = get_json_answer

    # ------------------------------------------------------------------
    # Tool answers
    # ------------------------------------------------------------------

    def set_tools(self, tools_schema: list[dict[str, Any]]) -> None:
        """Offer ``tools_schema`` to the model via a system message."""
        self.tools_schema = list(tools_schema)
        self.base.add_message(Role.SYSTEM, assemble_tools_prompt(self.tools_schema))

    async def _resolve_call(self, text_call: str) -> ToolCall:
        if self.settings.tool_call_resolution == "local":
            function_call = _parse_local_call(text_call)
        else:
            try:
                function_call = await ChatTool.get_function(text_call, self.tools_schema, self.settings)
            except ChatError as e:
                err = ParseFunctionCall()
                err.add_note(f"Failed to parse function call from text: {text_call}")
                raise err from e

        logger.info(f"function_call: {json.dumps(function_call, ensure_ascii=False, default=str)}")

        name = function_call.get("name")
        if not isinstance(name, str):
            err = MissingField("name")
            err.add_note(f"Function call missing 'name' field: {function_call}")
            raise err

        raw_arguments = function_call.get("arguments")
        if not isinstance(raw_arguments, str):
            err = MissingField("arguments")
            err.add_note(f"Function call missing 'arguments' field for function: {name}")
            raise err

        return ToolCall(name=name, raw_arguments=raw_arguments)

    async def process_tool_call(self, text_call: str) -> ToolResult:
        """Resolve one directive and run it against the registry."""
        call = await self._resolve_call(text_call)
        return await self.registry.invoke(call.name, call.arguments())

    async def get_tool_answer(self, user_input: str) -> tuple[str, list[ToolResult]]:
        """
        Answer ``user_input`` and execute any tools the answer asks for.

        Returns:
            (clean_answer, results) - the answer without directives, and one
            ToolResult per directive in order of appearance.

        Raises:
            ExtractFunctionCall: If the answer itself could not be obtained
        """
        try:
            answer_with_text_calls = await self.get_answer(user_input)
        except ChatError as e:
            err = ExtractFunctionCall(f"Failed to get answer for tool call: {e}")
            err.add_note(f"User input: {user_input}")
            raise err from e

        text_calls = extract_tool_uses(answer_with_text_calls)
        logger.info(f"text_calls: {text_calls}")

        if not text_calls:
            logger.info("No function calls found, returning original answer")
            return answer_with_text_calls, []

        clean_answer = strip_tool_uses(answer_with_text_calls)
        logger.info(f"clean_answer: {clean_answer}")

        tasks = [asyncio.create_task(self.process_tool_call(text_call)) for text_call in text_calls]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        results: list[ToolResult] = []
        errors: list[str] = []
        for i, outcome in enumerate(outcomes):
            if isinstance(outcome, ToolResult):
                results.append(outcome)
                continue

            if isinstance(outcome, ToolCallError):
                errors.append(f"Tool call #{i} failed: {outcome}")
                placeholder = f"Tool call failed with error: {outcome}"
            else:
                errors.append(f"Task execution failed for call #{i}: {outcome!r}")
                placeholder = f"Task execution failed: {outcome!r}"
            results.append(ToolResult(ok=False, payload=json.dumps({"error": placeholder}, ensure_ascii=False)))

        if errors:
            logger.info(f"Tool call errors occurred: {errors}")

        return clean_answer, results

    def add_tool_results(self, results: list[ToolResult]) -> ConversationPath:
        """Feed tool results back into the conversation as one user message."""
        lines = ["Tool results:"]
        for i, result in enumerate(results, start=1):
            status = "ok" if result.ok else "error"
            lines.append(f"[{i}] ({status}) {result.payload}")
        return self.base.add_message(Role.USER, "\n".join(lines))


def _parse_local_call(text_call: str) -> dict[str, Any]:
    """
    Parse a directive that is already a JSON function call.

    ``arguments`` may be given as an object; it is re-encoded to a string so
    both resolution modes produce the same shape.
    """
    try:
        parsed = json.loads(text_call)
    except json.JSONDecodeError as e:
        err = ParseFunctionCall()
        err.add_note(f"Directive is not a JSON function call: {text_call}")
        raise err from e

    if not isinstance(parsed, dict):
        err = ParseFunctionCall()
        err.add_note(f"Directive is not a JSON object: {text_call}")
        raise err

    arguments = parsed.get("arguments")
    if isinstance(arguments, dict):
        parsed = {**parsed, "arguments": json.dumps(arguments, ensure_ascii=False)}
    return parsed
