"""Error taxonomy for the chat pipeline.

On the chat path only ``RequestParseError``, ``IdentityError`` and
``ConfigurationError`` reach the HTTP layer. The others are turned into a
``StepResult`` by the component that owns the step. ``PersistenceError``
surfaces only from the read-only history endpoints.
"""

from __future__ import annotations


class ChatServiceError(Exception):
    """Base error with a machine-readable code and an HTTP status."""

    status_code: int = 500

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


class RequestParseError(ChatServiceError):
    status_code = 400


class IdentityError(ChatServiceError):
    status_code = 401


class ConfigurationError(ChatServiceError):
    status_code = 500


class RetrievalError(ChatServiceError):
    """Knowledge store unreachable or returned something unusable."""


class CompletionFailure(ChatServiceError):
    """Completion endpoint timed out or answered with a non-success status."""


class PersistenceError(ChatServiceError):
    """Conversation store unreachable while reading history."""
