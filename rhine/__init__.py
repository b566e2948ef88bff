"""
Rhine - client-side orchestration for conversations with a chat-completion LLM.

This package keeps branching conversation state, renders it for whichever
character is speaking, and builds structured-output and concurrent tool-call
answers on top of plain model replies.
"""

__version__ = "0.1.7"
