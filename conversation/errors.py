"""Errors raised by the conversation core."""

from typing import Optional


class ConversationError(Exception):
    """Base class for conversation failures."""


class ChatConfigurationError(ConversationError):
    """The chat endpoint is not configured; nothing was sent."""


class ChatResponseError(ConversationError):
    """Could not get an assistant response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StreamError(ChatResponseError):
    """The transport failed while the reply was streaming."""


class SessionBusyError(ConversationError):
    """A request is already in flight for this session."""


class AmbiguousOutcomeError(ConversationError):
    """The reply carried both a feedback summary and a nursing assessment."""


class GatewayError(ConversationError):
    """The hosted chat-completion API refused or failed the request."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class UnknownCategoryError(ConversationError, ValueError):
    """The category is not one of the recognized topics."""

    def __init__(self, category: object):
        super().__init__(f"Unknown conversation category: {category!r}")
        self.category = category
