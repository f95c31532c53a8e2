"""
Staff dashboard routes.

Read-only views over completed sessions: headline stats, filtered feedback
list, chart data, CSV export and the nursing follow-up queue.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import Response
from pydantic import BaseModel

from api.models.session import FeedbackSession
from conversation.models import Category
from storage import get_storage
from storage.reports import (
    DashboardStats,
    ScoreBand,
    category_breakdown,
    compute_stats,
    export_csv,
    filter_sessions,
    nursing_queue,
    score_distribution,
)

router = APIRouter(prefix="/v1/dashboard", tags=["dashboard"])


class ChartData(BaseModel):
    """Series for the overview charts."""

    score_distribution: list[dict]
    category_breakdown: list[dict]


def _completed_feedback() -> list[FeedbackSession]:
    return get_storage().list_completed(nursing=False)


@router.get("/stats", response_model=DashboardStats)
def get_stats():
    """Totals, average score, completed today and low-score count."""
    return compute_stats(_completed_feedback())


@router.get("/feedback", response_model=list[FeedbackSession])
def list_feedback(
    search: str = "",
    category: Optional[Category] = None,
    score: ScoreBand = ScoreBand.ALL,
):
    """Completed feedback, newest first, filtered like the dashboard table."""
    return filter_sessions(_completed_feedback(), search, category, score)


@router.get("/charts", response_model=ChartData)
def get_charts():
    """Score distribution and per-category counts."""
    sessions = _completed_feedback()
    return ChartData(
        score_distribution=score_distribution(sessions),
        category_breakdown=category_breakdown(sessions),
    )


@router.get("/feedback/export")
def export_feedback(
    search: str = "",
    category: Optional[Category] = None,
    score: ScoreBand = ScoreBand.ALL,
):
    """Filtered feedback as a CSV download."""
    sessions = filter_sessions(_completed_feedback(), search, category, score)
    filename = f"feedback-export-{datetime.utcnow():%Y-%m-%d}.csv"
    return Response(
        content=export_csv(sessions),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/nursing", response_model=list[FeedbackSession])
def list_nursing(limit: int = Query(default=50, ge=1, le=500)):
    """Completed nursing check-ins, most urgent first."""
    return nursing_queue(get_storage().list_completed(nursing=True))[:limit]
