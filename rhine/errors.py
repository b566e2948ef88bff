"""
Exception taxonomy for chat sessions and the tool-call pipeline.

Context is attached with PEP 678 notes (``exc.add_note(...)``) and the
underlying failure is chained with ``raise ... from ...``, so a traceback
shows the offending payload or field next to the error that surfaced.
"""

from __future__ import annotations


class ChatError(Exception):
    """Base class for session, transport and payload failures."""

    default_message = "Chat request failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class ParseResponseError(ChatError):
    default_message = "Failed to parse response"


class MissingUsageData(ChatError):
    default_message = "Missing usage data"


class HttpError(ChatError):
    """Non-2xx status returned by the endpoint."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"HTTP error with status code: {status_code}")


class UnknownError(ChatError):
    default_message = "Unknown error"


class AssembleOutputDescriptionError(ChatError):
    default_message = "Failed to assemble output description"


class GetJsonError(ChatError):
    default_message = "Failed to get json"


class GetFunctionError(ChatError):
    default_message = "Failed to get function"


class InvalidPath(ChatError):
    """A conversation path selector does not exist in the store."""

    def __init__(self, path: tuple[int, ...], depth: int):
        self.path = path
        self.depth = depth
        super().__init__(f"Invalid conversation path {list(path)}: selector #{depth} is out of range")


class ToolCallError(Exception):
    """Base class for failures inside the tool-call pipeline."""

    default_message = "Tool call failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class ParseFunctionCall(ToolCallError):
    default_message = "Failed to parse function call"


class FunctionNotFound(ToolCallError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Function '{name}' not found")


class FunctionExecution(ToolCallError):
    def __init__(self, name: str, detail: str | None = None):
        self.name = name
        message = f"Failed to execute function '{name}'"
        super().__init__(f"{message}: {detail}" if detail else message)


class SerializeResult(ToolCallError):
    default_message = "Failed to serialize function result"


class DeserializeArguments(ToolCallError):
    def __init__(self, detail: str):
        super().__init__(f"Failed to deserialize arguments: {detail}")


class ExtractFunctionCall(ToolCallError):
    def __init__(self, detail: str):
        super().__init__(f"Failed to extract function call from: {detail}")


class MissingField(ToolCallError):
    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing field: {field}")
