import pytest

from conversation.errors import AmbiguousOutcomeError
from conversation.models import MoodAssessment, PriorityLevel
from conversation.sentinels import (
    OutcomeKind,
    extract_and_strip,
    parse_feedback,
    parse_nursing,
    strip_sentinels,
    visible_text,
)

NURSING_TEXT = """Thank you for sharing. I'll let the nurses know.
[COMPLETE]
[NURSING_ASSESSMENT]
{
  "condition_summary": "Pain in lower back, rated 6/10",
  "mood_assessment": "Uncomfortable",
  "immediate_needs": ["pain medication", "extra pillow"],
  "priority_level": "high"
}
[/NURSING_ASSESSMENT]"""


def test_strip_removes_all_marker_kinds():
    text = (
        "Hi [COMPLETE]there"
        '[FEEDBACK_SUMMARY]{"score": 5, "summary": "x"}[/FEEDBACK_SUMMARY]'
        "[NURSING_ASSESSMENT]anything[/NURSING_ASSESSMENT]!"
    )
    assert strip_sentinels(text) == "Hi there!"


def test_strip_keeps_unclosed_block_text():
    # Half-streamed blocks only disappear once the closing marker arrives
    assert strip_sentinels("Bye [FEEDBACK_SUMMARY]{") == "Bye [FEEDBACK_SUMMARY]{"


def test_parse_multiline_nursing_block():
    outcome = parse_nursing(NURSING_TEXT)

    assert outcome.condition_summary == "Pain in lower back, rated 6/10"
    assert outcome.immediate_needs == ["pain medication", "extra pillow"]
    assert outcome.mood is MoodAssessment.UNCOMFORTABLE
    assert outcome.priority is PriorityLevel.HIGH


def test_unknown_vocabulary_is_kept_as_text():
    outcome = parse_nursing(
        '[NURSING_ASSESSMENT]{"condition_summary": "ok", "mood_assessment": "sleepy",'
        ' "immediate_needs": [], "priority_level": "whenever"}[/NURSING_ASSESSMENT]'
    )
    assert outcome.mood_assessment == "sleepy"
    assert outcome.mood is None
    assert outcome.priority is None


@pytest.mark.parametrize(
    "inner",
    [
        "not json",
        '{"score": 4}',
        '{"summary": "missing score"}',
        '{"score": "four", "summary": "x"}',
        "[1, 2, 3]",
    ],
)
def test_malformed_feedback_block_is_absent(inner):
    assert parse_feedback(f"[FEEDBACK_SUMMARY]{inner}[/FEEDBACK_SUMMARY]") is None


def test_extract_feedback():
    extraction = extract_and_strip(
        'Thanks![COMPLETE][FEEDBACK_SUMMARY]{"score": 2, "summary": "Long wait"}[/FEEDBACK_SUMMARY]'
    )
    assert extraction.kind is OutcomeKind.FEEDBACK
    assert extraction.rest == "Thanks!"
    assert extraction.outcome.score == 2


def test_extract_nursing():
    extraction = extract_and_strip(NURSING_TEXT)
    assert extraction.kind is OutcomeKind.NURSING
    assert extraction.outcome.priority_level == "high"
    assert "[NURSING_ASSESSMENT]" not in extraction.rest


def test_extract_nothing():
    extraction = extract_and_strip("How are you feeling today?")
    assert extraction.kind is OutcomeKind.NONE
    assert extraction.outcome is None
    assert extraction.rest == "How are you feeling today?"


def test_both_blocks_conflict():
    extraction = extract_and_strip(
        '[FEEDBACK_SUMMARY]{"score": 3, "summary": "ok"}[/FEEDBACK_SUMMARY]' + NURSING_TEXT
    )
    assert extraction.kind is OutcomeKind.CONFLICT
    with pytest.raises(AmbiguousOutcomeError):
        extraction.outcome


@pytest.mark.parametrize(
    "raw, shown",
    [
        ("Thank you.", "Thank you."),
        ('Thank you. [FEEDBACK_SUMMARY]{"score": 4', "Thank you. "),
        ("Bye [NURSING_ASSESSMENT]\n{\n", "Bye "),
        ("Bye [FEEDB", "Bye "),
        ("Bye [COMPLETE][", "Bye "),
        ("See [room 4] for details", "See [room 4] for details"),
        ("Pick one [a", "Pick one [a"),
    ],
)
def test_visible_text_while_streaming(raw, shown):
    assert visible_text(raw) == shown
