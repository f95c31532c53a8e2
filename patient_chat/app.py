"""
Patient Chat Interface.

Feedback conversations and nursing check-ins with the AI assistant. Replies
stream in live; sentinel blocks never reach the screen.
"""

import asyncio
import logging
from typing import Optional

import httpx
import streamlit as st

from config import get_settings
from conversation import Category, SessionController, SessionState
from conversation.errors import AmbiguousOutcomeError, ConversationError
from conversation.models import CATEGORY_LABELS, FEEDBACK_CATEGORIES, MoodAssessment

logger = logging.getLogger(__name__)

# Configuration
API_BASE_URL = get_settings().api_base_url

st.set_page_config(
    page_title="Patient Feedback",
    page_icon="",
    layout="centered",
)

CATEGORY_DESCRIPTIONS = {
    Category.POST_VISIT: "Share your overall experience from your recent visit",
    Category.TREATMENT_EXPERIENCE: "Tell us about your treatment and care quality",
    Category.SERVICE_QUALITY: "Rate our staff, facilities, and general service",
}

MOOD_ICONS = {
    MoodAssessment.CALM: "😌",
    MoodAssessment.CONTENT: "😊",
    MoodAssessment.ANXIOUS: "😟",
    MoodAssessment.UNCOMFORTABLE: "😣",
    MoodAssessment.DISTRESSED: "😰",
}


def init_session_state():
    """Initialize session state variables."""
    if "controller" not in st.session_state:
        st.session_state.controller = SessionController()
    if "category" not in st.session_state:
        st.session_state.category = None
    if "session_id" not in st.session_state:
        st.session_state.session_id = None
    if "patient_info" not in st.session_state:
        st.session_state.patient_info = None
    if "outcome_saved" not in st.session_state:
        st.session_state.outcome_saved = False
    if "error_message" not in st.session_state:
        st.session_state.error_message = None


def create_session(category: Category, patient_info: Optional[dict] = None) -> Optional[str]:
    """Create the persisted session record. Chat still works if this fails."""
    payload = {"category": category.value}
    if patient_info:
        payload.update(patient_info)
    try:
        response = httpx.post(f"{API_BASE_URL}/v1/sessions", json=payload, timeout=30.0)
        response.raise_for_status()
        return response.json()["session_id"]
    except httpx.HTTPError as e:
        logger.error("Failed to create session: %s", e)
        return None


def save_message(role: str, content: str) -> None:
    """Store one message against the current session."""
    session_id = st.session_state.session_id
    if not session_id or not content:
        return
    try:
        response = httpx.post(
            f"{API_BASE_URL}/v1/sessions/{session_id}/messages",
            json={"role": role, "content": content},
            timeout=30.0,
        )
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error("Failed to save message: %s", e)


def save_outcome() -> None:
    """Record the conversation outcome once."""
    controller: SessionController = st.session_state.controller
    session_id = st.session_state.session_id
    if st.session_state.outcome_saved or not session_id or controller.outcome is None:
        return

    if controller.nursing_outcome is not None:
        payload = {"nursing": controller.nursing_outcome.model_dump()}
    else:
        payload = {"feedback": controller.feedback_outcome.model_dump()}
    try:
        response = httpx.post(
            f"{API_BASE_URL}/v1/sessions/{session_id}/complete",
            json=payload,
            timeout=30.0,
        )
        response.raise_for_status()
        st.session_state.outcome_saved = True
    except httpx.HTTPError as e:
        logger.error("Failed to update session: %s", e)


def stream_into(placeholder, coroutine_factory) -> bool:
    """
    Run one controller request, rendering the reply as it streams.

    Returns True when the controller kept the reply, which is also the case
    for a reply carrying two conflicting outcomes.
    """

    def on_update(text: str) -> None:
        placeholder.markdown(text + " ▌")

    try:
        asyncio.run(coroutine_factory(on_update))
    except AmbiguousOutcomeError as e:
        st.session_state.error_message = str(e)
    except ConversationError as e:
        st.session_state.error_message = str(e)
        return False
    reply = st.session_state.controller.turns[-1]
    placeholder.markdown(reply.content)
    return True


def start(category: Category, patient_info: Optional[dict] = None):
    """Create the session and stream the assistant's opening message."""
    controller: SessionController = st.session_state.controller
    st.session_state.category = category
    st.session_state.patient_info = patient_info
    st.session_state.outcome_saved = False
    st.session_state.session_id = create_session(category, patient_info)

    with st.chat_message("assistant"):
        placeholder = st.empty()
        started = stream_into(
            placeholder,
            lambda on_update: controller.start_conversation(category, on_update=on_update),
        )
    if started:
        save_message("assistant", controller.turns[-1].content)
    else:
        st.session_state.category = None
    st.rerun()


def reset():
    """Back to the start screen."""
    st.session_state.controller.reset_conversation()
    st.session_state.category = None
    st.session_state.session_id = None
    st.session_state.patient_info = None
    st.session_state.outcome_saved = False
    st.rerun()


def render_welcome():
    """Render the category choice and the nursing check-in form."""
    st.title("Patient Feedback")

    feedback_tab, nursing_tab = st.tabs(["Share Feedback", "Nursing Check-In"])

    with feedback_tab:
        st.markdown("What would you like to share feedback about?")
        for category in FEEDBACK_CATEGORIES:
            with st.container(border=True):
                st.subheader(CATEGORY_LABELS[category])
                st.caption(CATEGORY_DESCRIPTIONS[category])
                if st.button("Start Feedback", key=f"start_{category.value}"):
                    start(category)

    with nursing_tab:
        with st.form("patient_info_form"):
            patient_name = st.text_input("Patient Name", placeholder="Enter patient's name")
            room_number = st.text_input("Room Number", placeholder="e.g., 205A")
            submitted = st.form_submit_button("Start Assessment", type="primary")

            if submitted:
                if not patient_name.strip() or not room_number.strip():
                    st.error("Please enter the patient's name and room number.")
                else:
                    start(
                        Category.NURSING_ASSESSMENT,
                        {
                            "patient_name": patient_name.strip(),
                            "room_number": room_number.strip(),
                        },
                    )

    st.markdown("---")
    st.caption("Your answers are confidential and are reviewed by our care team.")


def render_chat():
    """Render the transcript and the message box."""
    controller: SessionController = st.session_state.controller
    category: Category = st.session_state.category

    col1, col2 = st.columns([1, 4])
    with col1:
        if st.button("Back"):
            reset()
    with col2:
        info = st.session_state.patient_info
        if info:
            st.subheader(f"Nursing Check-In: {info['patient_name']} (Room {info['room_number']})")
        else:
            st.subheader(CATEGORY_LABELS[category])

    for turn in controller.turns:
        with st.chat_message(turn.role.value):
            st.markdown(turn.content)

    prompt = st.chat_input(
        "Type your message...",
        disabled=controller.state is SessionState.EMPTY,
    )
    if prompt and prompt.strip():
        with st.chat_message("user"):
            st.markdown(prompt)
        with st.chat_message("assistant"):
            placeholder = st.empty()
            sent = stream_into(
                placeholder,
                lambda on_update: controller.send_message(
                    prompt,
                    category,
                    session_id=st.session_state.session_id,
                    on_update=on_update,
                ),
            )
        if sent:
            save_message("user", prompt)
            save_message("assistant", controller.turns[-1].content)
        if controller.outcome is not None:
            save_outcome()
        st.rerun()


def render_feedback_complete():
    """Render the feedback thank-you screen."""
    outcome = st.session_state.controller.feedback_outcome

    st.title("Thank You!")
    st.success("Your feedback has been recorded.")

    st.metric("Satisfaction", f"{outcome.score}/5")
    st.markdown(f"**Summary:** {outcome.summary}")

    st.markdown("---")
    if st.button("Share More Feedback"):
        reset()


def render_nursing_complete():
    """Render the nursing check-in summary."""
    outcome = st.session_state.controller.nursing_outcome
    info = st.session_state.patient_info or {}

    st.title("Assessment Complete")
    st.success("The nursing team has been notified of the patient's status.")

    col1, col2 = st.columns(2)
    with col1:
        st.write(f"**Patient:** {info.get('patient_name', 'N/A')}")
    with col2:
        st.write(f"**Room:** {info.get('room_number', 'N/A')}")

    st.markdown(f"**Condition:** {outcome.condition_summary}")
    icon = MOOD_ICONS.get(outcome.mood, "")
    st.markdown(f"**Mood:** {icon} {outcome.mood_assessment}")
    st.markdown(f"**Priority:** {outcome.priority_level.upper()}")

    st.markdown("**Immediate Needs:**")
    if outcome.immediate_needs:
        for need in outcome.immediate_needs:
            st.markdown(f"- {need}")
    else:
        st.caption("No immediate needs reported.")

    st.markdown("---")
    if st.button("New Assessment"):
        reset()


def main():
    """Main application entry point."""
    init_session_state()
    controller: SessionController = st.session_state.controller

    # Show error if present
    if st.session_state.error_message:
        st.error(st.session_state.error_message)
        st.session_state.error_message = None

    # Route to appropriate screen
    if controller.nursing_outcome is not None:
        render_nursing_complete()
    elif controller.feedback_outcome is not None:
        render_feedback_complete()
    elif st.session_state.category is not None:
        render_chat()
    else:
        render_welcome()


if __name__ == "__main__":
    main()
