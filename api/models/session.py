"""
Session models.

Persisted records of feedback conversations and nursing check-ins.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from conversation.models import Category, FeedbackOutcome, NursingOutcome, Role


class SessionStatus(str, Enum):
    """Session status enum."""

    IN_PROGRESS = "in_progress"  # Patient still talking to the assistant
    COMPLETED = "completed"  # Outcome recorded


class SessionMessage(BaseModel):
    """A single stored chat message."""

    role: Role
    content: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


class FeedbackSession(BaseModel):
    """Feedback conversation or nursing check-in."""

    session_id: str
    category: Category
    status: SessionStatus = SessionStatus.IN_PROGRESS
    user_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    messages: list[SessionMessage] = Field(default_factory=list)

    # Feedback outcome
    satisfaction_score: Optional[int] = None
    summary: Optional[str] = None

    # Nursing check-in
    is_nursing_assessment: bool = False
    patient_name: Optional[str] = None
    room_number: Optional[str] = None
    condition_summary: Optional[str] = None
    mood_assessment: Optional[str] = None
    immediate_needs: list[str] = Field(default_factory=list)
    priority_level: Optional[str] = None

    def apply_feedback(self, outcome: FeedbackOutcome) -> None:
        self.satisfaction_score = outcome.score
        self.summary = outcome.summary

    def apply_nursing(self, outcome: NursingOutcome) -> None:
        self.condition_summary = outcome.condition_summary
        self.mood_assessment = outcome.mood_assessment
        self.immediate_needs = list(outcome.immediate_needs)
        self.priority_level = outcome.priority_level
