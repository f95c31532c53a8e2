"""
Conversation models.

Turns, categories and the structured outcomes the assistant embeds in its
final reply.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Speaker of a turn."""

    USER = "user"
    ASSISTANT = "assistant"


class Category(str, Enum):
    """Conversation topics offered to patients."""

    POST_VISIT = "post_visit"
    TREATMENT_EXPERIENCE = "treatment_experience"
    SERVICE_QUALITY = "service_quality"
    NURSING_ASSESSMENT = "nursing_assessment"

    @property
    def is_nursing(self) -> bool:
        return self is Category.NURSING_ASSESSMENT


FEEDBACK_CATEGORIES = (
    Category.POST_VISIT,
    Category.TREATMENT_EXPERIENCE,
    Category.SERVICE_QUALITY,
)

CATEGORY_LABELS = {
    Category.POST_VISIT: "Post-Visit",
    Category.TREATMENT_EXPERIENCE: "Treatment",
    Category.SERVICE_QUALITY: "Service Quality",
    Category.NURSING_ASSESSMENT: "Nursing Check-In",
}


class SessionState(str, Enum):
    """Lifecycle of a conversation session."""

    EMPTY = "empty"
    AWAITING_FIRST_REPLY = "awaiting_first_reply"
    AWAITING_USER_INPUT = "awaiting_user_input"
    AWAITING_REPLY = "awaiting_reply"
    COMPLETED = "completed"


class MoodAssessment(str, Enum):
    """Mood vocabulary the nursing assistant is asked to use."""

    CALM = "calm"
    CONTENT = "content"
    ANXIOUS = "anxious"
    UNCOMFORTABLE = "uncomfortable"
    DISTRESSED = "distressed"


class PriorityLevel(str, Enum):
    """Priority vocabulary for nursing follow-up, lowest first."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return list(PriorityLevel).index(self)


class Turn(BaseModel):
    """One utterance in the dialogue."""

    role: Role
    content: str = ""


class FeedbackOutcome(BaseModel):
    """
    Satisfaction result of a feedback conversation.

    The score is kept exactly as the assistant produced it; range checks
    belong to whoever consumes the outcome.
    """

    score: int
    summary: str


class NursingOutcome(BaseModel):
    """Condition assessment produced by a nursing check-in."""

    condition_summary: str
    mood_assessment: str
    immediate_needs: list[str] = Field(default_factory=list)
    priority_level: str

    @property
    def mood(self) -> Optional[MoodAssessment]:
        """Mood mapped onto the known vocabulary, None if unrecognized."""
        try:
            return MoodAssessment(self.mood_assessment.strip().lower())
        except ValueError:
            return None

    @property
    def priority(self) -> Optional[PriorityLevel]:
        """Priority mapped onto the known vocabulary, None if unrecognized."""
        try:
            return PriorityLevel(self.priority_level.strip().lower())
        except ValueError:
            return None
