"""
Staff Dashboard.

Aggregated patient feedback and the nursing follow-up queue.
"""

from datetime import datetime

import httpx
import streamlit as st

from config import get_settings
from conversation.models import CATEGORY_LABELS, FEEDBACK_CATEGORIES

# Configuration
API_BASE_URL = get_settings().api_base_url

st.set_page_config(
    page_title="Staff Dashboard - Patient Feedback",
    page_icon="",
    layout="wide",
)

CATEGORY_NAMES = {category.value: label for category, label in CATEGORY_LABELS.items()}

SCORE_FILTERS = {
    "all": "All Scores",
    "low": "Low (1-2)",
    "mid": "Neutral (3)",
    "high": "High (4-5)",
}

PRIORITY_BADGES = {
    "urgent": ":red[URGENT]",
    "high": ":orange[HIGH]",
    "medium": ":blue[MEDIUM]",
    "low": ":green[LOW]",
}


def init_session_state():
    """Initialize session state variables."""
    if "search" not in st.session_state:
        st.session_state.search = ""
    if "category_filter" not in st.session_state:
        st.session_state.category_filter = "all"
    if "score_filter" not in st.session_state:
        st.session_state.score_filter = "all"
    if "error_message" not in st.session_state:
        st.session_state.error_message = None


def fetch(path: str, params: dict | None = None):
    """GET a dashboard endpoint, None on failure."""
    try:
        response = httpx.get(f"{API_BASE_URL}{path}", params=params, timeout=30.0)
        response.raise_for_status()
        return response
    except httpx.HTTPError as e:
        st.session_state.error_message = f"Failed to load {path}: {e}"
        return None


def filter_params() -> dict:
    params = {"search": st.session_state.search, "score": st.session_state.score_filter}
    if st.session_state.category_filter != "all":
        params["category"] = st.session_state.category_filter
    return params


def format_timestamp(value: str | None) -> str:
    if not value:
        return ""
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return dt.strftime("%Y-%m-%d %H:%M")


def render_stats():
    """Render the headline metrics."""
    response = fetch("/v1/dashboard/stats")
    stats = response.json() if response else {}

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Total Feedback", stats.get("total_feedback", 0))
    with col2:
        st.metric("Average Score", f"{stats.get('average_score', 0)}/5")
    with col3:
        st.metric("Completed Today", stats.get("completed_today", 0))
    with col4:
        st.metric("Low Scores (1-2)", stats.get("low_score_count", 0))


def render_overview():
    """Render the overview charts."""
    response = fetch("/v1/dashboard/charts")
    if not response:
        return
    charts = response.json()

    col1, col2 = st.columns(2)
    with col1:
        st.subheader("Score Distribution")
        st.caption("Satisfaction scores across all feedback")
        st.bar_chart(
            {row["score"]: row["count"] for row in charts["score_distribution"]},
        )
    with col2:
        st.subheader("Feedback by Category")
        st.caption("Completed conversations per topic")
        breakdown = charts["category_breakdown"]
        if breakdown:
            st.bar_chart({row["name"]: row["value"] for row in breakdown})
        else:
            st.info("No feedback yet.")


def render_feedback_table():
    """Render filters, the feedback table and the CSV download."""
    col1, col2, col3 = st.columns([2, 1, 1])
    with col1:
        st.session_state.search = st.text_input(
            "Search summaries", value=st.session_state.search
        )
    with col2:
        category_options = ["all"] + [c.value for c in FEEDBACK_CATEGORIES]
        st.session_state.category_filter = st.selectbox(
            "Category",
            options=category_options,
            index=category_options.index(st.session_state.category_filter),
            format_func=lambda v: "All Categories" if v == "all" else CATEGORY_NAMES[v],
        )
    with col3:
        score_options = list(SCORE_FILTERS)
        st.session_state.score_filter = st.selectbox(
            "Score",
            options=score_options,
            index=score_options.index(st.session_state.score_filter),
            format_func=SCORE_FILTERS.get,
        )

    response = fetch("/v1/dashboard/feedback", params=filter_params())
    sessions = response.json() if response else []

    if not sessions:
        st.info("No feedback matches the current filters.")
        return

    st.dataframe(
        [
            {
                "Date": format_timestamp(s.get("completed_at")),
                "Category": CATEGORY_NAMES.get(s["category"], s["category"]),
                "Score": s.get("satisfaction_score"),
                "Summary": s.get("summary") or "",
            }
            for s in sessions
        ],
        use_container_width=True,
        hide_index=True,
    )

    export = fetch("/v1/dashboard/feedback/export", params=filter_params())
    if export:
        st.download_button(
            "Export CSV",
            data=export.content,
            file_name=f"feedback-export-{datetime.utcnow():%Y-%m-%d}.csv",
            mime="text/csv",
        )


def render_nursing_queue():
    """Render completed nursing check-ins, most urgent first."""
    response = fetch("/v1/dashboard/nursing")
    assessments = response.json() if response else []

    if not assessments:
        st.info("No nursing check-ins recorded yet.")
        return

    for a in assessments:
        with st.container(border=True):
            col1, col2, col3 = st.columns([2, 1, 1])
            with col1:
                st.write(f"**{a.get('patient_name', 'N/A')}** (Room {a.get('room_number', '?')})")
            with col2:
                priority = (a.get("priority_level") or "").lower()
                st.markdown(PRIORITY_BADGES.get(priority, priority or "-"))
            with col3:
                st.caption(format_timestamp(a.get("completed_at")))

            st.write(f"**Condition:** {a.get('condition_summary') or 'N/A'}")
            st.write(f"**Mood:** {a.get('mood_assessment') or 'N/A'}")
            needs = a.get("immediate_needs") or []
            if needs:
                st.write("**Needs:** " + ", ".join(needs))


def main():
    """Main application entry point."""
    init_session_state()

    st.title("Staff Dashboard")
    if st.button("Refresh"):
        st.rerun()

    render_stats()
    st.markdown("---")

    overview_tab, feedback_tab, nursing_tab = st.tabs(
        ["Overview", "All Feedback", "Nursing Queue"]
    )
    with overview_tab:
        render_overview()
    with feedback_tab:
        render_feedback_table()
    with nursing_tab:
        render_nursing_queue()

    if st.session_state.error_message:
        st.error(st.session_state.error_message)
        st.session_state.error_message = None


if __name__ == "__main__":
    main()
