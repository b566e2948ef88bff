"""
Tests for the rhine CLI.

  rhine [--env-file F] [--log-level L] config
  rhine ask QUESTION [--api NAME] [--character PROMPT] [--stream] [--tools | --json]
  rhine chat [--api NAME] [--character PROMPT] [--stream]
"""

import json
from unittest.mock import patch

import pytest

from rhine.__main__ import DEFAULT_CHARACTER, cmd_ask, cmd_config, create_parser
from rhine.config.settings import ApiSettings, LLMSettings, Settings
from rhine.errors import HttpError
from rhine.tools.registry import ToolRegistry


def _make_response(text: str) -> dict:
    return {"choices": [{"message": {"content": text}}], "usage": {"total_tokens": 4}}


def _make_tool_call_response(name: str, arguments: dict) -> dict:
    function = {"name": name, "arguments": json.dumps(arguments)}
    return {
        "choices": [{"message": {"content": None, "tool_calls": [{"type": "function", "function": function}]}}],
        "usage": {"total_tokens": 4},
    }


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        llm=LLMSettings(apis=[ApiSettings(name="default", model="openai/test-model")]),
    )


class TestParser:
    """Parser-level tests."""

    def test_ask_defaults(self):
        args = create_parser().parse_args(["ask", "What is a d20?"])
        assert args.command == "ask"
        assert args.question == "What is a d20?"
        assert args.api is None
        assert args.character == DEFAULT_CHARACTER
        assert args.stream is False
        assert args.tools is False
        assert args.json is False

    def test_ask_tools_and_json_exclusive(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["ask", "Q?", "--tools", "--json"])

    def test_chat_options(self):
        args = create_parser().parse_args(["chat", "--api", "local", "--stream", "--character", "You are Bob"])
        assert args.command == "chat"
        assert args.api == "local"
        assert args.stream is True
        assert args.character == "You are Bob"

    def test_global_flags(self):
        args = create_parser().parse_args(["--log-level", "DEBUG", "config"])
        assert args.log_level == "DEBUG"
        assert args.command == "config"

    def test_invalid_log_level(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["--log-level", "LOUD", "config"])


class TestCommands:
    """Tests for command handlers."""

    def test_config(self, settings):
        assert cmd_config(settings) == 0

    @pytest.mark.asyncio
    async def test_ask(self, settings, capsys):
        args = create_parser().parse_args(["ask", "hi"])
        with patch("rhine.chat.base.acompletion", return_value=_make_response("Hello there")):
            exit_code = await cmd_ask(args, settings)

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "Hello there" in out
        assert "Tokens: 4" in out

    @pytest.mark.asyncio
    async def test_ask_unknown_api(self, settings):
        args = create_parser().parse_args(["ask", "hi", "--api", "missing"])
        assert await cmd_ask(args, settings) == 1

    @pytest.mark.asyncio
    async def test_ask_http_error(self, settings, capsys):
        args = create_parser().parse_args(["ask", "hi"])
        with patch("rhine.chat.base.acompletion", side_effect=HttpError(401)):
            exit_code = await cmd_ask(args, settings)

        assert exit_code == 1
        assert "401" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_ask_json(self, settings, capsys):
        async def fake_acompletion(**kwargs):
            if "response_format" in kwargs:
                return _make_response('{"answer": "Twenty sides", "confidence": 0.9, "key_points": []}')
            return _make_response("A d20 has twenty sides.")

        args = create_parser().parse_args(["ask", "What is a d20?", "--json"])
        with patch("rhine.chat.base.acompletion", side_effect=fake_acompletion):
            exit_code = await cmd_ask(args, settings)

        assert exit_code == 0
        assert '"answer": "Twenty sides"' in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_ask_tools(self, settings, capsys):
        async def fake_acompletion(**kwargs):
            if "tools" in kwargs:
                return _make_tool_call_response("roll_dice", {"notation": "2d6"})
            return _make_response("Rolling! <ToolUse>roll 2d6</ToolUse>")

        args = create_parser().parse_args(["ask", "Roll 2d6", "--tools"])
        with patch("rhine.__main__.get_tool_registry", return_value=ToolRegistry()):
            with patch("rhine.chat.base.acompletion", side_effect=fake_acompletion):
                exit_code = await cmd_ask(args, settings)

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "Rolling!" in out
        assert "<ToolUse>" not in out
        assert "[1] (ok)" in out
        assert '"notation": "2d6"' in out
