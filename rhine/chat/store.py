"""
Append-only branching conversation store.

Messages live in an arena (a flat list) and point at their parent by index.
A ConversationPath is a tuple of child-selection indices: the first selector
picks a root, each following selector picks among the previous node's
children. Two paths that share a prefix share that part of the history:

    (0,)        -> [user "hi"]
    (0, 0)      -> [user "hi", assistant "hello"]
    (0, 1)      -> [user "hi", assistant "hey there"]   # regenerated reply

Nothing is ever deleted; "regenerate" and "edit" just add siblings.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from rhine.chat.message import Message, Role
from rhine.errors import InvalidPath

ConversationPath = tuple[int, ...]


@dataclass
class _Node:
    message: Message
    parent: int | None
    children: list[int] = field(default_factory=list)


class ConversationStore:
    """
    Holds every message of a session and resolves paths to linear histories.

    The store keeps an *active path*: the leaf that new messages attach to by
    default. Appending moves the active path to the new message; ``checkout``
    moves it back to an earlier point so the next append starts a new branch.

    Not safe for concurrent mutation: a session has a single writer.
    """

    def __init__(self):
        self._nodes: list[_Node] = []
        self._roots: list[int] = []
        self._active_path: ConversationPath = ()

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def active_path(self) -> ConversationPath:
        return self._active_path

    def _walk(self, path: ConversationPath) -> list[int]:
        """Return arena indices along ``path``, validating every selector."""
        path = tuple(path)
        indices: list[int] = []
        candidates = self._roots
        for depth, selector in enumerate(path):
            if selector < 0 or selector >= len(candidates):
                raise InvalidPath(path, depth)
            index = candidates[selector]
            indices.append(index)
            candidates = self._nodes[index].children
        return indices

    def _children_of(self, indices: list[int]) -> list[int]:
        return self._nodes[indices[-1]].children if indices else self._roots

    def append(self, role: Role, content: str, parent: ConversationPath | None = None) -> ConversationPath:
        """
        Add a message under ``parent`` (default: the active path).

        Returns:
            Path of the new message, which also becomes the active path.
        """
        parent_path = self._active_path if parent is None else tuple(parent)
        indices = self._walk(parent_path)
        siblings = self._children_of(indices)

        self._nodes.append(
            _Node(
                message=Message(role=role, content=content),
                parent=indices[-1] if indices else None,
            )
        )
        siblings.append(len(self._nodes) - 1)

        self._active_path = parent_path + (len(siblings) - 1,)
        return self._active_path

    def resolve(self, path: ConversationPath | None = None) -> list[Message]:
        """Ordered messages from the root to the leaf identified by ``path``."""
        if path is None:
            path = self._active_path
        return [self._nodes[index].message for index in self._walk(path)]

    def checkout(self, path: ConversationPath) -> None:
        """Make ``path`` the active path. The next append branches from there."""
        path = tuple(path)
        self._walk(path)
        self._active_path = path

    def alternatives(self, path: ConversationPath) -> int:
        """How many children the node at ``path`` has (roots for the empty path)."""
        return len(self._children_of(self._walk(path)))
