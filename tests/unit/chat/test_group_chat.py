"""
Unit tests for GroupChat.
"""

from unittest.mock import patch

import pytest

from rhine.chat.group import GroupChat
from rhine.chat.message import Role
from rhine.config.settings import ApiSettings, LLMSettings
from rhine.errors import InvalidPath


def _make_response(text: str, total_tokens: int = 8) -> dict:
    return {
        "choices": [{"index": 0, "message": {"role": "assistant", "content": text}}],
        "usage": {"total_tokens": total_tokens},
    }


@pytest.fixture
def settings():
    return LLMSettings(apis=[ApiSettings(name="default", model="openai/test-model")])


@pytest.fixture
def group(settings):
    return GroupChat(
        settings.apis[0],
        {"Alice": "You are Alice, a cheerful bard.", "Bob": "You are Bob, a grumpy dwarf."},
        settings=settings,
    )


class TestGroupChatSetup:
    """Tests for GroupChat construction and scripted lines."""

    def test_requires_characters(self, settings):
        with pytest.raises(ValueError):
            GroupChat(settings.apis[0], {}, settings=settings)

    def test_scripted_character_line(self, group):
        path = group.add_character_message("Bob", "hello")
        assert group.base.store.resolve(path)[-1].role == Role.character("Bob")

    def test_unknown_character(self, group):
        with pytest.raises(ValueError):
            group.add_character_message("Carol", "hi")


class TestCharacterAnswers:
    """Tests for get_character_answer."""

    @pytest.mark.asyncio
    async def test_renders_from_speaker_perspective(self, group):
        group.add_user_message("You enter the tavern.")
        group.add_character_message("Bob", "hello")
        group.add_character_message("Alice", "Well met!")

        with patch("rhine.chat.base.acompletion", return_value=_make_response("Hmph.")) as mock_call:
            answer = await group.get_character_answer("Bob")

        assert answer == "Hmph."
        assert mock_call.call_args.kwargs["messages"] == [
            {"role": "system", "content": "You are Bob, a grumpy dwarf."},
            {"role": "user", "content": "You enter the tavern."},
            {"role": "assistant", "content": "hello"},
            {"role": "user", "content": "Alice said: Well met!"},
        ]

    @pytest.mark.asyncio
    async def test_reply_stored_as_character(self, group):
        group.add_user_message("Introduce yourselves.")
        with patch("rhine.chat.base.acompletion", return_value=_make_response("I'm Alice!")):
            await group.get_character_answer("Alice")
        with patch("rhine.chat.base.acompletion", return_value=_make_response("Bob.")) as mock_call:
            await group.get_character_answer("Bob")

        messages = group.base.store.resolve()
        assert [m.role for m in messages] == [Role.USER, Role.character("Alice"), Role.character("Bob")]
        assert mock_call.call_args.kwargs["messages"][-1] == {"role": "user", "content": "Alice said: I'm Alice!"}
        assert group.usage == 16

    @pytest.mark.asyncio
    async def test_answer_at_earlier_path(self, group):
        first = group.add_user_message("Hello?")
        group.add_character_message("Alice", "Hi!")

        with patch("rhine.chat.base.acompletion", return_value=_make_response("What?")):
            await group.get_character_answer("Bob", end_path=first)

        assert group.message_path == (0, 1)
        assert group.base.store.alternatives(first) == 2

    @pytest.mark.asyncio
    async def test_unknown_character(self, group):
        with pytest.raises(ValueError):
            await group.get_character_answer("Carol")

    @pytest.mark.asyncio
    async def test_invalid_path(self, group):
        with pytest.raises(InvalidPath):
            await group.get_character_answer("Alice", end_path=(4,))
