"""
Chat Layer.

Manages conversation state and exchanges with a chat-completion endpoint:

    ConversationStore.resolve(path)  →  ordered messages
                                            ↓
    render(messages, current_speaker) + character prompt  →  request body
                                            ↓
                                   LiteLLM acompletion()
                                            ↓
                    text  →  SingleChat: plain / structured / tool answers
                          →  GroupChat: next line for a named character

Key responsibilities:
- Keep a branching, append-only history addressed by paths
- Re-render that history from whichever character is speaking
- Extract text and meter token usage for streaming and one-shot responses
- Reformat answers into JSON schemas and dispatch tool directives concurrently
"""

from rhine.chat.base import BaseChat
from rhine.chat.group import GroupChat
from rhine.chat.message import Message, Role, RoleKind, render
from rhine.chat.single import SingleChat
from rhine.chat.store import ConversationPath, ConversationStore
from rhine.chat.tool import ChatTool

__all__ = [
    "BaseChat",
    "ChatTool",
    "ConversationPath",
    "ConversationStore",
    "GroupChat",
    "Message",
    "Role",
    "RoleKind",
    "SingleChat",
    "render",
]
