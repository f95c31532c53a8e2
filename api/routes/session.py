"""
Session management routes.

Persistence for feedback conversations and nursing check-ins: the patient
front end creates a session, logs messages as they are sent and records the
outcome once the assistant produces one.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, model_validator

from api.models.session import FeedbackSession, SessionMessage, SessionStatus
from conversation.models import Category, FeedbackOutcome, NursingOutcome, Role
from storage import get_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/sessions", tags=["sessions"])


class CreateSessionRequest(BaseModel):
    """Request to create a new session."""

    category: Category
    user_id: Optional[str] = None
    patient_name: Optional[str] = None
    room_number: Optional[str] = None

    @model_validator(mode="after")
    def require_patient_for_nursing(self) -> "CreateSessionRequest":
        if self.category is Category.NURSING_ASSESSMENT:
            if not (self.patient_name or "").strip() or not (self.room_number or "").strip():
                raise ValueError("Nursing check-ins require patient_name and room_number")
            self.patient_name = self.patient_name.strip()
            self.room_number = self.room_number.strip()
        return self


class CreateSessionResponse(BaseModel):
    """Response with new session ID."""

    session_id: str
    status: str
    created_at: datetime


class AddMessageRequest(BaseModel):
    """A chat message to store."""

    role: Role
    content: str = Field(..., min_length=1)


class CompleteSessionRequest(BaseModel):
    """Outcome extracted from the final assistant reply."""

    feedback: Optional[FeedbackOutcome] = None
    nursing: Optional[NursingOutcome] = None

    @model_validator(mode="after")
    def exactly_one_outcome(self) -> "CompleteSessionRequest":
        if (self.feedback is None) == (self.nursing is None):
            raise ValueError("Provide exactly one of feedback or nursing")
        return self


def _get_or_404(session_id: str) -> FeedbackSession:
    session = get_storage().get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


@router.post("", response_model=CreateSessionResponse)
def create_session(request: CreateSessionRequest):
    """Create a new feedback or nursing session."""
    storage = get_storage()

    session = FeedbackSession(
        session_id=str(uuid.uuid4()),
        category=request.category,
        status=SessionStatus.IN_PROGRESS,
        created_at=datetime.utcnow(),
        user_id=request.user_id,
        is_nursing_assessment=request.category is Category.NURSING_ASSESSMENT,
        patient_name=request.patient_name,
        room_number=request.room_number,
    )

    storage.create(session)
    logger.info("Created %s session %s", session.category.value, session.session_id)

    return CreateSessionResponse(
        session_id=session.session_id,
        status=session.status.value,
        created_at=session.created_at,
    )


@router.get("/{session_id}", response_model=FeedbackSession)
def get_session(session_id: str):
    """Get a session with its messages."""
    return _get_or_404(session_id)


@router.post("/{session_id}/messages", response_model=SessionMessage)
def add_message(session_id: str, request: AddMessageRequest):
    """Store one chat message."""
    _get_or_404(session_id)

    message = SessionMessage(role=request.role, content=request.content)
    get_storage().add_message(session_id, message)
    return message


@router.post("/{session_id}/complete", response_model=FeedbackSession)
def complete_session(session_id: str, request: CompleteSessionRequest):
    """
    Record the outcome of a conversation.

    The outcome kind must match the session: feedback for the feedback
    categories, nursing for check-ins.
    """
    storage = get_storage()
    session = _get_or_404(session_id)

    if session.status != SessionStatus.IN_PROGRESS:
        raise HTTPException(
            status_code=400,
            detail=f"Session is not in progress (status: {session.status.value})",
        )

    if session.is_nursing_assessment:
        if request.nursing is None:
            raise HTTPException(status_code=400, detail="Nursing session needs a nursing outcome")
        session.apply_nursing(request.nursing)
    else:
        if request.feedback is None:
            raise HTTPException(status_code=400, detail="Feedback session needs a feedback outcome")
        session.apply_feedback(request.feedback)

    storage.mark_completed(session)
    logger.info("Completed session %s", session_id)
    return session


@router.get("/stats/counts")
def get_session_counts():
    """Get counts of sessions by status."""
    storage = get_storage()
    return storage.count_by_status()
