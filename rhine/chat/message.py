"""
Roles, messages and perspective-dependent rendering.

A stored history can be replayed to the model from the point of view of
any participant. Whoever is currently speaking is cast as ``assistant``;
everybody else's turns are recast as third-person ``user`` context:

    stored:   Character("Bob"): "hello"
    speaker:  Character("Alice")
    rendered: {"role": "user", "content": "Bob said: hello"}
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict


class RoleKind(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    CHARACTER = "character"


@dataclass(frozen=True)
class Role:
    """
    Who said a message.

    ``Role.SYSTEM``, ``Role.USER`` and ``Role.ASSISTANT`` are the fixed wire
    roles; ``Role.character(name)`` is a named simulated participant.
    """

    kind: RoleKind
    name: str | None = None

    SYSTEM: ClassVar[Role]
    USER: ClassVar[Role]
    ASSISTANT: ClassVar[Role]

    def __post_init__(self):
        if self.kind is RoleKind.CHARACTER and not self.name:
            raise ValueError("Character roles need a name")
        if self.kind is not RoleKind.CHARACTER and self.name is not None:
            raise ValueError(f"Role {self.kind.value!r} does not take a name")

    @classmethod
    def character(cls, name: str) -> Role:
        return cls(RoleKind.CHARACTER, name)

    @classmethod
    def from_str(cls, value: str) -> Role:
        """Map a wire role string to a Role; any other string names a character."""
        if value == "system":
            return cls.SYSTEM
        if value == "user":
            return cls.USER
        if value == "assistant":
            return cls.ASSISTANT
        return cls.character(value)

    @property
    def label(self) -> str:
        if self.kind is RoleKind.CHARACTER:
            return self.name
        return self.kind.value

    def __str__(self) -> str:
        return self.label


Role.SYSTEM = Role(RoleKind.SYSTEM)
Role.USER = Role(RoleKind.USER)
Role.ASSISTANT = Role(RoleKind.ASSISTANT)


class Message(BaseModel):
    """A single stored utterance. Immutable once created."""

    role: Role
    content: str

    model_config = ConfigDict(frozen=True)

    def to_api_format(self, current_speaker: Role) -> dict[str, str]:
        """Render this message as seen by ``current_speaker``."""
        kind = self.role.kind

        if kind is RoleKind.SYSTEM:
            return {"role": "system", "content": self.content}
        if kind is RoleKind.USER:
            return {"role": "user", "content": self.content}

        if self.role == current_speaker:
            return {"role": "assistant", "content": self.content}

        speaker_name = "Assistant" if kind is RoleKind.ASSISTANT else self.role.name
        return {"role": "user", "content": f"{speaker_name} said: {self.content}"}


def render(messages: Iterable[Message], current_speaker: Role) -> list[dict[str, str]]:
    """Render an ordered message sequence into wire-format role/content dicts."""
    return [message.to_api_format(current_speaker) for message in messages]
