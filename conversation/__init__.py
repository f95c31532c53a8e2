"""Conversation core: session controller and stream assembly."""

from conversation.client import ChatClient
from conversation.controller import SessionController
from conversation.models import (
    Category,
    FeedbackOutcome,
    NursingOutcome,
    Role,
    SessionState,
    Turn,
)
from conversation.stream import StreamAssembler, assemble

__all__ = [
    "ChatClient",
    "SessionController",
    "StreamAssembler",
    "assemble",
    "Category",
    "Role",
    "SessionState",
    "Turn",
    "FeedbackOutcome",
    "NursingOutcome",
]
