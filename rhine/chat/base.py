"""
Chat session core - conversation state plus one chat-completion endpoint.

Data flow for one exchange:

    store.resolve(path) → render(..., speaker) → request body
                                                     ↓
                                          LiteLLM acompletion()
                                                     ↓
                         response / stream → text + usage → store.append(reply)

Design decisions:
- LiteLLM is the transport. It owns HTTP, bearer auth and retries
  (``num_retries``); this layer never retries on its own.
- Every request starts with exactly one synthetic system message carrying
  the character prompt of whoever is speaking. It is never stored.
- Usage is a running total of ``total_tokens`` for the session. A response
  without usage data aborts the exchange before the reply is stored.
- A session has a single writer. Concurrent exchanges on one BaseChat are
  not supported; use one session per concurrent conversation.
"""

from __future__ import annotations

from typing import Any

import litellm
from litellm import acompletion

from rhine.chat.message import Role, render
from rhine.chat.response import (
    as_payload,
    collect_stream,
    content_from_response,
    usage_from_response,
)
from rhine.chat.store import ConversationPath, ConversationStore
from rhine.config.logging import get_logger
from rhine.config.settings import ApiSettings, LLMSettings, ModelCapability, get_settings
from rhine.errors import ChatError, HttpError, MissingUsageData, UnknownError

logger = get_logger(__name__)

# Transport-level faults that are not an HTTP status, even when LiteLLM gives them one
_CONNECTION_ERRORS: tuple[type[Exception], ...] = (
    litellm.APIConnectionError,
    litellm.Timeout,
)


def transport_error(exc: Exception, request_body: dict[str, Any]) -> ChatError:
    """Map a LiteLLM/transport exception onto HttpError or UnknownError."""
    status_code = getattr(exc, "status_code", None)
    if isinstance(exc, _CONNECTION_ERRORS) or isinstance(status_code, bool) or not isinstance(status_code, int):
        err: ChatError = UnknownError()
        err.add_note(f"Unknown Error occurred with request body: {request_body}")
    else:
        err = HttpError(status_code)
        err.add_note(f"HTTP Error: Status Code {status_code} with request body {request_body}")
    err.add_note(f"Transport error: {exc!r}")
    return err


class BaseChat:
    """
    One conversation with one model endpoint.

    Args:
        api: Endpoint to talk to (model string, base URL, bearer token)
        character_prompt: System prompt for the identity this session speaks as
        need_stream: Stream responses instead of waiting for the full body.
            Fixed for the lifetime of the session.
        settings: LLM settings for temperature/timeout/retries (default: global settings)
        speaker: Whose perspective requests are rendered from (default: Assistant)
        temperature: Overrides settings.temperature for this session
    """

    def __init__(
        self,
        api: ApiSettings,
        character_prompt: str,
        need_stream: bool = False,
        *,
        settings: LLMSettings | None = None,
        speaker: Role = Role.ASSISTANT,
        temperature: float | None = None,
    ):
        self.api = api
        self.character_prompt = character_prompt
        self.need_stream = need_stream
        self.settings = settings or get_settings().llm
        self.speaker = speaker
        self.temperature = self.settings.temperature if temperature is None else temperature
        self.store = ConversationStore()
        self.usage = 0

    @classmethod
    def with_api_name(
        cls,
        api_name: str,
        character_prompt: str,
        need_stream: bool = False,
        *,
        settings: LLMSettings | None = None,
        **kwargs,
    ) -> BaseChat:
        settings = settings or get_settings().llm
        return cls(settings.get_api(api_name), character_prompt, need_stream, settings=settings, **kwargs)

    @classmethod
    def with_model_capability(
        cls,
        capability: ModelCapability,
        character_prompt: str,
        need_stream: bool = False,
        *,
        settings: LLMSettings | None = None,
        **kwargs,
    ) -> BaseChat:
        settings = settings or get_settings().llm
        return cls(
            settings.get_api_for_capability(capability),
            character_prompt,
            need_stream,
            settings=settings,
            **kwargs,
        )

    @property
    def model(self) -> str:
        return self.api.model

    def add_message(self, role: Role, content: str, parent: ConversationPath | None = None) -> ConversationPath:
        return self.store.append(role, content, parent)

    def build_messages(
        self,
        end_path: ConversationPath | None = None,
        speaker: Role | None = None,
        character_prompt: str | None = None,
    ) -> list[dict[str, str]]:
        """Synthetic system prompt followed by the rendered history at ``end_path``."""
        prompt = self.character_prompt if character_prompt is None else character_prompt
        messages = [{"role": "system", "content": prompt}]
        messages.extend(render(self.store.resolve(end_path), speaker or self.speaker))
        return messages

    def build_request_body(
        self,
        end_path: ConversationPath | None = None,
        speaker: Role | None = None,
        character_prompt: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.api.model,
            "messages": self.build_messages(end_path, speaker, character_prompt),
            "stream": self.need_stream,
            "temperature": self.temperature,
        }
        if self.settings.max_tokens is not None:
            body["max_tokens"] = self.settings.max_tokens
        if self.need_stream:
            # Final chunk carries usage; without it the exchange can't be metered
            body["stream_options"] = {"include_usage": True}
        return body

    async def send_request(self, request_body: dict[str, Any]) -> Any:
        """
        Send a request through LiteLLM.

        Returns:
            The raw response object, or an async iterator of chunks when
            ``request_body["stream"]`` is true.

        Raises:
            HttpError: Endpoint answered with a non-2xx status
            UnknownError: Connection, DNS, timeout or any other transport fault
        """
        call_kwargs = dict(request_body)
        call_kwargs["api_key"] = self.api.api_key or None
        if self.api.base_url:
            call_kwargs["api_base"] = self.api.base_url
        call_kwargs["timeout"] = self.settings.timeout
        call_kwargs["num_retries"] = self.settings.num_retries

        try:
            return await acompletion(**call_kwargs)
        except Exception as e:
            err = transport_error(e, request_body)
            logger.warning(f"LLM request to {self.api.model} failed: {err}")
            raise err from e

    def _account(self, tokens: int) -> None:
        self.usage += tokens
        logger.debug(f"Usage +{tokens} tokens, session total {self.usage}")

    async def get_response(self, request_body: dict[str, Any]) -> dict[str, Any]:
        """Non-streaming request. Returns the JSON payload after usage accounting."""
        body = {key: value for key, value in request_body.items() if key != "stream_options"}
        body["stream"] = False
        payload = as_payload(await self.send_request(body))
        self._account(usage_from_response(payload))
        return payload

    async def get_stream_content(self, request_body: dict[str, Any]) -> str:
        """Streaming request. Returns the concatenated text after usage accounting."""
        body = {**request_body, "stream": True}
        body.setdefault("stream_options", {"include_usage": True})
        stream = await self.send_request(body)

        try:
            text, tokens = await collect_stream(stream)
        except ChatError:
            raise
        except Exception as e:
            # Connection dropped mid-stream
            err = transport_error(e, request_body)
            logger.warning(f"LLM stream from {self.api.model} failed: {err}")
            raise err from e

        if tokens is None:
            err = MissingUsageData()
            err.add_note("Stream finished without reporting usage.total_tokens")
            raise err
        self._account(tokens)
        return text

    @staticmethod
    def get_content_from_resp(payload: dict[str, Any]) -> str:
        return content_from_response(payload)

    async def exchange(
        self,
        request_body: dict[str, Any],
        reply_role: Role = Role.ASSISTANT,
        parent: ConversationPath | None = None,
    ) -> str:
        """
        Run one request and store the reply.

        The reply is appended under ``parent`` (default: the active path) as
        ``reply_role``. Nothing is stored when any step fails.
        """
        if self.need_stream:
            content = await self.get_stream_content(request_body)
        else:
            payload = await self.get_response(request_body)
            content = self.get_content_from_resp(payload)

        logger.info(f"GetLLMAPIAnswer: {content}")
        self.add_message(reply_role, content, parent)
        return content
