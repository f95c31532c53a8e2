"""
In-memory session storage for demo.

Stands in for the hosted database: sessions and their messages live only as
long as the API process.
"""

from datetime import datetime
from functools import lru_cache
from typing import Optional

from api.models.session import FeedbackSession, SessionMessage, SessionStatus


class SessionStorage:
    """In-memory session storage for demo purposes."""

    def __init__(self):
        self._sessions: dict[str, FeedbackSession] = {}

    def create(self, session: FeedbackSession) -> None:
        """Store a new session."""
        self._sessions[session.session_id] = session

    def get(self, session_id: str) -> Optional[FeedbackSession]:
        """Retrieve a session by ID."""
        return self._sessions.get(session_id)

    def update(self, session: FeedbackSession) -> None:
        """Update an existing session."""
        if session.session_id not in self._sessions:
            raise KeyError(f"Session {session.session_id} not found")
        self._sessions[session.session_id] = session

    def add_message(self, session_id: str, message: SessionMessage) -> FeedbackSession:
        """Append a chat message to a session."""
        session = self._sessions.get(session_id)
        if session is None:
            raise KeyError(f"Session {session_id} not found")
        session.messages.append(message)
        return session

    def mark_completed(self, session: FeedbackSession) -> None:
        """Flag a session as completed now."""
        session.status = SessionStatus.COMPLETED
        session.completed_at = datetime.utcnow()
        self.update(session)

    def list_completed(self, nursing: Optional[bool] = None) -> list[FeedbackSession]:
        """
        List completed sessions, newest first.

        Args:
            nursing: True for nursing check-ins only, False for feedback
                only, None for both
        """
        sessions = [
            s
            for s in self._sessions.values()
            if s.status == SessionStatus.COMPLETED
            and (nursing is None or s.is_nursing_assessment == nursing)
        ]
        return sorted(sessions, key=lambda s: s.created_at, reverse=True)

    def count_by_status(self) -> dict[str, int]:
        """Count sessions by status."""
        counts = {status.value: 0 for status in SessionStatus}
        for session in self._sessions.values():
            counts[session.status.value] += 1
        return counts

    def clear(self) -> None:
        """Drop every session."""
        self._sessions.clear()


@lru_cache
def get_storage() -> SessionStorage:
    """Get the singleton storage instance."""
    return SessionStorage()
