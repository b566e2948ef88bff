"""
Turn chat-completion payloads into text and token counts.

Non-streaming responses are a single JSON object:

    {"choices": [{"message": {"content": "..."}}], "usage": {"total_tokens": 42}}

Streaming responses are a sequence of chunk events whose
``choices[0].delta.content`` fragments are concatenated in arrival order.
Chunks may arrive as LiteLLM objects, plain dicts, or raw SSE lines
(``data: {...}`` / ``data: [DONE]``); anything that does not parse is
skipped so framing noise cannot abort an otherwise healthy stream.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from rhine.config.logging import get_logger
from rhine.errors import MissingUsageData, ParseResponseError

logger = get_logger(__name__)

STREAM_DONE = "[DONE]"


class _StreamDone(Exception):
    pass


def as_payload(raw: Any) -> dict[str, Any]:
    """Normalize a transport response into a JSON dict."""
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            err = ParseResponseError()
            err.add_note(f"Response body is not valid JSON: {raw[:500]!r}")
            raise err from e
        if not isinstance(payload, dict):
            err = ParseResponseError()
            err.add_note(f"Expected a JSON object, got {type(payload).__name__}")
            raise err
        return payload
    if hasattr(raw, "model_dump"):
        return raw.model_dump()

    err = ParseResponseError()
    err.add_note(f"Unsupported response type: {type(raw).__name__}")
    raise err


def _first_choice(payload: dict[str, Any]) -> dict[str, Any] | None:
    choices = payload.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return choices[0]
    return None


def content_from_response(payload: dict[str, Any]) -> str:
    """Read ``choices[0].message.content``."""
    choice = _first_choice(payload) or {}
    message = choice.get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str):
        err = ParseResponseError()
        err.add_note(f"No text content at choices[0].message.content in response: {payload}")
        raise err
    return content


def _total_tokens(payload: dict[str, Any]) -> int | None:
    usage = payload.get("usage")
    if not isinstance(usage, dict):
        return None
    total = usage.get("total_tokens")
    # bool is an int subclass; a flag is not a token count
    if isinstance(total, bool) or not isinstance(total, int):
        return None
    return total


def usage_from_response(payload: dict[str, Any]) -> int:
    """Read ``usage.total_tokens``. Unmetered responses are rejected."""
    total = _total_tokens(payload)
    if total is None:
        err = MissingUsageData()
        err.add_note(f"Missing usage data in response: {payload.get('usage')!r}")
        raise err
    return total


def _parse_chunk(chunk: Any) -> dict[str, Any] | None:
    """Parse one stream chunk; None means "skip this one"."""
    if isinstance(chunk, (bytes, bytearray)):
        chunk = chunk.decode("utf-8", errors="replace")

    if isinstance(chunk, str):
        text = chunk.strip()
        if text.startswith("data:"):
            text = text[len("data:"):].strip()
        if not text:
            return None
        if text == STREAM_DONE:
            raise _StreamDone
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            return None
        return parsed if isinstance(parsed, dict) else None

    try:
        return as_payload(chunk)
    except ParseResponseError:
        return None


async def iter_stream_payloads(chunks: AsyncIterable[Any]) -> AsyncIterator[dict[str, Any]]:
    """Yield parsed chunk payloads in receive order until the end marker."""
    async for chunk in chunks:
        try:
            payload = _parse_chunk(chunk)
        except _StreamDone:
            return
        if payload is None:
            logger.debug(f"Skipping unparsable stream chunk: {chunk!r}")
            continue
        yield payload


def _delta_content(payload: dict[str, Any]) -> str | None:
    choice = _first_choice(payload)
    if choice is None:
        return None
    delta = choice.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) else None


async def collect_stream(chunks: AsyncIterable[Any]) -> tuple[str, int | None]:
    """
    Concatenate a streamed answer.

    Returns:
        (text, total_tokens) where total_tokens comes from the last chunk that
        reported usage, or None when the stream never did.

    Raises:
        ParseResponseError: If not a single chunk could be parsed
    """
    fragments: list[str] = []
    usage: int | None = None
    parsed = 0

    async for payload in iter_stream_payloads(chunks):
        parsed += 1
        content = _delta_content(payload)
        if content:
            fragments.append(content)
        total = _total_tokens(payload)
        if total is not None:
            usage = total

    if parsed == 0:
        err = ParseResponseError()
        err.add_note("Stream ended before any chunk could be parsed")
        raise err

    return "".join(fragments), usage
