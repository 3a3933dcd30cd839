"""
Exceptions
==========

Error types raised inside the ChatBI pipeline.

Most pipeline failures are absorbed where they happen and turned into
empty or error-carrying results. Only ``ConnectionNotFoundError`` is meant
to reach the caller.
"""


class ChatBIError(Exception):
    """Base class for all ChatBI errors."""


class ConnectionNotFoundError(ChatBIError):
    """An explicitly requested connection id does not exist."""

    def __init__(self, connection_id: str) -> None:
        super().__init__(f"Database connection not found: {connection_id}")
        self.connection_id = connection_id


class ClauseError(ChatBIError, ValueError):
    """A semantic query clause is missing required fields or has the wrong shape."""


class SQLGenerationError(ChatBIError):
    """The SQL generator could not render a semantic query."""


class ConversationStateError(ChatBIError):
    """A turn was appended out of the user/assistant alternation."""


class LLMInvocationError(ChatBIError):
    """The language model call failed or timed out."""
