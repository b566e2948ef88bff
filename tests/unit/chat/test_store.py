"""
Unit tests for the branching conversation store.
"""

import pytest

from rhine.chat.message import Role
from rhine.chat.store import ConversationStore
from rhine.errors import InvalidPath


@pytest.fixture
def store():
    return ConversationStore()


def _contents(messages):
    return [message.content for message in messages]


class TestAppend:
    """Tests for ConversationStore.append."""

    def test_empty_store(self, store):
        assert len(store) == 0
        assert store.active_path == ()
        assert store.resolve() == []
        assert store.resolve(()) == []

    def test_first_message_is_root(self, store):
        path = store.append(Role.USER, "hi")
        assert path == (0,)
        assert store.active_path == (0,)

    def test_appends_follow_active_path(self, store):
        store.append(Role.USER, "hi")
        path = store.append(Role.ASSISTANT, "hello")

        assert path == (0, 0)
        assert _contents(store.resolve(path)) == ["hi", "hello"]

    def test_resolved_roles(self, store):
        store.append(Role.SYSTEM, "rules")
        path = store.append(Role.character("Alice"), "hello")

        roles = [message.role for message in store.resolve(path)]
        assert roles == [Role.SYSTEM, Role.character("Alice")]

    def test_sibling_branch(self, store):
        store.append(Role.USER, "hi")
        first = store.append(Role.ASSISTANT, "hello")
        second = store.append(Role.ASSISTANT, "hey there", parent=(0,))

        assert first == (0, 0)
        assert second == (0, 1)
        assert _contents(store.resolve(first)) == ["hi", "hello"]
        assert _contents(store.resolve(second)) == ["hi", "hey there"]

    def test_branching_preserves_existing_paths(self, store):
        store.append(Role.USER, "a")
        store.append(Role.ASSISTANT, "b")
        old = store.append(Role.USER, "c")
        before = _contents(store.resolve(old))

        store.append(Role.USER, "c-prime", parent=(0, 0))

        assert _contents(store.resolve(old)) == before
        assert len(store) == 4

    def test_second_root(self, store):
        store.append(Role.USER, "first conversation")
        path = store.append(Role.USER, "second conversation", parent=())

        assert path == (1,)
        assert _contents(store.resolve(path)) == ["second conversation"]

    def test_append_under_invalid_parent(self, store):
        store.append(Role.USER, "hi")
        with pytest.raises(InvalidPath):
            store.append(Role.ASSISTANT, "hello", parent=(3,))
        assert len(store) == 1
        assert store.active_path == (0,)

    def test_parent_accepts_list(self, store):
        store.append(Role.USER, "hi")
        path = store.append(Role.ASSISTANT, "hello", parent=[0])
        assert path == (0, 0)


class TestResolve:
    """Tests for path validation."""

    @pytest.mark.parametrize("path", [(1,), (0, 1), (0, 0, 0), (-1,)])
    def test_invalid_paths(self, store, path):
        store.append(Role.USER, "hi")
        store.append(Role.ASSISTANT, "hello")

        with pytest.raises(InvalidPath) as exc_info:
            store.resolve(path)
        assert exc_info.value.path == path

    def test_invalid_path_reports_depth(self, store):
        store.append(Role.USER, "hi")
        with pytest.raises(InvalidPath) as exc_info:
            store.resolve((0, 5))
        assert exc_info.value.depth == 1

    def test_prefix_resolves_to_prefix_history(self, store):
        store.append(Role.USER, "a")
        store.append(Role.ASSISTANT, "b")
        store.append(Role.USER, "c")

        assert _contents(store.resolve((0, 0))) == ["a", "b"]


class TestCheckoutAndAlternatives:
    """Tests for moving the active path and counting branches."""

    def test_checkout_redirects_next_append(self, store):
        store.append(Role.USER, "hi")
        store.append(Role.ASSISTANT, "hello")

        store.checkout((0,))
        path = store.append(Role.ASSISTANT, "hey")

        assert path == (0, 1)

    def test_checkout_invalid(self, store):
        with pytest.raises(InvalidPath):
            store.checkout((0,))
        assert store.active_path == ()

    def test_alternatives(self, store):
        store.append(Role.USER, "hi")
        store.append(Role.ASSISTANT, "one", parent=(0,))
        store.append(Role.ASSISTANT, "two", parent=(0,))
        store.append(Role.ASSISTANT, "three", parent=(0,))

        assert store.alternatives((0,)) == 3
        assert store.alternatives((0, 2)) == 0
        assert store.alternatives(()) == 1
