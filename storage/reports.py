"""
Dashboard aggregation over completed sessions.

Pure functions: callers pass the sessions (usually from
SessionStorage.list_completed) and get plain data back.
"""

import csv
import io
from datetime import date, datetime
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel

from api.models.session import FeedbackSession
from conversation.models import CATEGORY_LABELS, Category, PriorityLevel

LOW_SCORE_MAX = 2
CSV_HEADERS = ["Date", "Category", "Score", "Summary"]


class ScoreBand(str, Enum):
    ALL = "all"
    LOW = "low"  # 1-2
    MID = "mid"  # 3
    HIGH = "high"  # 4-5


class DashboardStats(BaseModel):
    """Headline numbers for the staff dashboard."""

    total_feedback: int
    average_score: float
    completed_today: int
    low_score_count: int


def category_label(category: Category) -> str:
    return CATEGORY_LABELS.get(category, category.value)


def compute_stats(sessions: list[FeedbackSession], today: Optional[date] = None) -> DashboardStats:
    """
    Compute dashboard stats.

    Sessions without a score count towards the total but not the average.
    """
    today = today or datetime.utcnow().date()
    scores = [s.satisfaction_score for s in sessions if s.satisfaction_score is not None]
    average = sum(scores) / len(scores) if scores else 0.0
    return DashboardStats(
        total_feedback=len(sessions),
        average_score=round(average, 1),
        completed_today=sum(
            1 for s in sessions if s.completed_at and s.completed_at.date() == today
        ),
        low_score_count=sum(1 for s in scores if s <= LOW_SCORE_MAX),
    )


def _in_band(score: Optional[int], band: ScoreBand) -> bool:
    if band is ScoreBand.ALL:
        return True
    if score is None:
        return False
    if band is ScoreBand.LOW:
        return score <= LOW_SCORE_MAX
    if band is ScoreBand.MID:
        return score == 3
    return score >= 4


def filter_sessions(
    sessions: Iterable[FeedbackSession],
    search: str = "",
    category: Optional[Category] = None,
    score_band: ScoreBand = ScoreBand.ALL,
) -> list[FeedbackSession]:
    """
    Filter sessions the way the dashboard table does.

    Args:
        search: Case-insensitive substring of the summary; empty matches all
        category: Only this category, or None for all
        score_band: Score range to keep
    """
    needle = search.strip().lower()
    return [
        s
        for s in sessions
        if (not needle or needle in (s.summary or "").lower())
        and (category is None or s.category == category)
        and _in_band(s.satisfaction_score, score_band)
    ]


def score_distribution(sessions: Iterable[FeedbackSession]) -> list[dict]:
    counts = {score: 0 for score in range(1, 6)}
    for s in sessions:
        if s.satisfaction_score in counts:
            counts[s.satisfaction_score] += 1
    return [{"score": f"{score} Star", "count": count} for score, count in counts.items()]


def category_breakdown(sessions: Iterable[FeedbackSession]) -> list[dict]:
    counts: dict[str, int] = {}
    for s in sessions:
        label = category_label(s.category)
        counts[label] = counts.get(label, 0) + 1
    return [{"name": name, "value": value} for name, value in counts.items()]


def export_csv(sessions: Iterable[FeedbackSession]) -> str:
    """Render sessions as CSV (Date, Category, Score, Summary)."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for s in sessions:
        writer.writerow(
            [
                s.completed_at.strftime("%Y-%m-%d %H:%M") if s.completed_at else "",
                category_label(s.category),
                "" if s.satisfaction_score is None else str(s.satisfaction_score),
                s.summary or "",
            ]
        )
    return buffer.getvalue()


def nursing_queue(sessions: Iterable[FeedbackSession]) -> list[FeedbackSession]:
    """Nursing check-ins, most urgent first, then newest first."""

    def priority_rank(session: FeedbackSession) -> int:
        try:
            return PriorityLevel((session.priority_level or "").strip().lower()).rank
        except ValueError:
            return -1

    ordered = sorted(sessions, key=lambda s: s.created_at, reverse=True)
    return sorted(ordered, key=priority_rank, reverse=True)
