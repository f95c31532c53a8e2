"""
Sentinel blocks embedded in assistant text.

The assistant signals the end of a conversation inline:

    [COMPLETE]
    [FEEDBACK_SUMMARY]{"score": 4, "summary": "..."}[/FEEDBACK_SUMMARY]
    [NURSING_ASSESSMENT]{"condition_summary": "...", ...}[/NURSING_ASSESSMENT]

This module is the only place that knows the markers. Everything else goes
through strip_sentinels() and extract_and_strip().
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from pydantic import ValidationError

from conversation.errors import AmbiguousOutcomeError
from conversation.models import FeedbackOutcome, NursingOutcome

logger = logging.getLogger(__name__)

COMPLETE_MARKER = "[COMPLETE]"

FEEDBACK_BLOCK = re.compile(r"\[FEEDBACK_SUMMARY\](.*?)\[/FEEDBACK_SUMMARY\]", re.DOTALL)
NURSING_BLOCK = re.compile(r"\[NURSING_ASSESSMENT\](.*?)\[/NURSING_ASSESSMENT\]", re.DOTALL)

FEEDBACK_OPEN = "[FEEDBACK_SUMMARY]"
NURSING_OPEN = "[NURSING_ASSESSMENT]"
MARKERS = (COMPLETE_MARKER, FEEDBACK_OPEN, NURSING_OPEN)

Outcome = Union[FeedbackOutcome, NursingOutcome]


class OutcomeKind(str, Enum):
    NONE = "none"
    FEEDBACK = "feedback"
    NURSING = "nursing"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class Extraction:
    """Text with sentinels removed plus whatever outcomes parsed."""

    rest: str
    feedback: Optional[FeedbackOutcome] = None
    nursing: Optional[NursingOutcome] = None

    @property
    def kind(self) -> OutcomeKind:
        if self.feedback is not None and self.nursing is not None:
            return OutcomeKind.CONFLICT
        if self.feedback is not None:
            return OutcomeKind.FEEDBACK
        if self.nursing is not None:
            return OutcomeKind.NURSING
        return OutcomeKind.NONE

    @property
    def outcome(self) -> Optional[Outcome]:
        """
        The single outcome carried by the text.

        Raises:
            AmbiguousOutcomeError: both a feedback and a nursing block parsed
        """
        if self.kind is OutcomeKind.CONFLICT:
            raise AmbiguousOutcomeError(
                "Reply contains both a feedback summary and a nursing assessment"
            )
        return self.feedback or self.nursing


def strip_sentinels(text: str) -> str:
    """Remove the completion marker and every well-formed outcome block."""
    text = text.replace(COMPLETE_MARKER, "")
    text = FEEDBACK_BLOCK.sub("", text)
    return NURSING_BLOCK.sub("", text)


def visible_text(text: str) -> str:
    """
    Display form of a reply that is still streaming.

    Like strip_sentinels(), but also hides an outcome block whose closing
    marker has not arrived yet and a trailing partial marker such as
    "[FEEDB".
    """
    text = strip_sentinels(text)
    openings = [i for i in (text.find(FEEDBACK_OPEN), text.find(NURSING_OPEN)) if i != -1]
    if openings:
        text = text[: min(openings)]

    start = text.rfind("[")
    if start != -1 and any(marker.startswith(text[start:]) for marker in MARKERS):
        text = text[:start]
    return text


def _parse_block(pattern: re.Pattern, model, text: str):
    match = pattern.search(text)
    if match is None:
        return None
    try:
        return model.model_validate_json(match.group(1).strip())
    except ValidationError as e:
        # A block we cannot read counts as no block at all
        logger.warning(
            "Ignoring unparsable %s block (%d errors)", model.__name__, e.error_count()
        )
        return None


def parse_feedback(text: str) -> Optional[FeedbackOutcome]:
    """Parse the first feedback block in text, None if absent or malformed."""
    return _parse_block(FEEDBACK_BLOCK, FeedbackOutcome, text)


def parse_nursing(text: str) -> Optional[NursingOutcome]:
    """Parse the first nursing block in text, None if absent or malformed."""
    return _parse_block(NURSING_BLOCK, NursingOutcome, text)


def extract_and_strip(text: str) -> Extraction:
    """Split assistant text into display text and structured outcomes."""
    return Extraction(
        rest=strip_sentinels(text),
        feedback=parse_feedback(text),
        nursing=parse_nursing(text),
    )
