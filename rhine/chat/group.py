"""
GroupChat - several named characters sharing one conversation.

Each character has its own prompt. When a character speaks, the shared
history is rendered from its perspective: its own past lines are
``assistant`` turns, everyone else's are ``"<name> said: ..."`` user turns.
"""

from __future__ import annotations

from rhine.chat.base import BaseChat
from rhine.chat.message import Role
from rhine.chat.store import ConversationPath
from rhine.config.logging import get_logger
from rhine.config.settings import ApiSettings, LLMSettings

logger = get_logger(__name__)


class GroupChat:
    """
    Args:
        api: Endpoint every character is generated with
        characters: Mapping of character name to its character prompt
        need_stream: Stream answers (fixed for the session)
        settings: LLM settings (default: global settings)
    """

    def __init__(
        self,
        api: ApiSettings,
        characters: dict[str, str],
        need_stream: bool = False,
        *,
        settings: LLMSettings | None = None,
    ):
        if not characters:
            raise ValueError("A group chat needs at least one character")
        self.characters = dict(characters)
        self.base = BaseChat(api, "", need_stream, settings=settings)

    @property
    def usage(self) -> int:
        return self.base.usage

    @property
    def message_path(self) -> ConversationPath:
        return self.base.store.active_path

    def add_user_message(self, content: str, end_path: ConversationPath | None = None) -> ConversationPath:
        return self.base.add_message(Role.USER, content, parent=end_path)

    def add_character_message(
        self,
        name: str,
        content: str,
        end_path: ConversationPath | None = None,
    ) -> ConversationPath:
        """Store a scripted line for a character without calling the model."""
        self._prompt_for(name)
        return self.base.add_message(Role.character(name), content, parent=end_path)

    def _prompt_for(self, name: str) -> str:
        try:
            return self.characters[name]
        except KeyError:
            raise ValueError(
                f"Unknown character {name!r} (known: {sorted(self.characters)})"
            ) from None

    async def get_character_answer(self, name: str, end_path: ConversationPath | None = None) -> str:
        """Generate the next line for character ``name`` and store it."""
        prompt = self._prompt_for(name)
        speaker = Role.character(name)
        path = self.message_path if end_path is None else tuple(end_path)

        logger.debug(f"Generating line for {name} at path {list(path)}")
        request_body = self.base.build_request_body(path, speaker=speaker, character_prompt=prompt)
        return await self.base.exchange(request_body, reply_role=speaker, parent=path)
