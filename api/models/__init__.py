"""API models."""

from api.models.session import (
    FeedbackSession,
    SessionMessage,
    SessionStatus,
)

__all__ = [
    "FeedbackSession",
    "SessionMessage",
    "SessionStatus",
]
