import asyncio

import httpx
import pytest

from conversation import ChatClient, SessionController, SessionState
from conversation.errors import (
    AmbiguousOutcomeError,
    ChatConfigurationError,
    ChatResponseError,
    SessionBusyError,
    StreamError,
    UnknownCategoryError,
)
from conversation.models import Role
from helpers import sse_body, sse_event

FEEDBACK_BLOCK = '[FEEDBACK_SUMMARY]{"score": 4, "summary": "Mostly positive visit"}[/FEEDBACK_SUMMARY]'
NURSING_BLOCK = (
    '[NURSING_ASSESSMENT]{"condition_summary": "Comfortable", "mood_assessment": "calm",'
    ' "immediate_needs": [], "priority_level": "low"}[/NURSING_ASSESSMENT]'
)


@pytest.fixture
def controller(settings, endpoint):
    return SessionController(ChatClient(settings, transport=endpoint.transport))


async def test_start_conversation_streams_greeting(controller, endpoint):
    endpoint.reply(sse_event("Hello! "), sse_event("How was your visit?"), b"data: [DONE]\n")
    updates = []

    turn = await controller.start_conversation("post_visit", on_update=updates.append)

    assert turn.role is Role.ASSISTANT
    assert turn.content == "Hello! How was your visit?"
    assert updates == ["Hello! ", "Hello! How was your visit?"]
    assert [t.content for t in controller.turns] == ["Hello! How was your visit?"]
    assert controller.state is SessionState.AWAITING_USER_INPUT
    assert endpoint.requests == [{"messages": [], "category": "post_visit"}]
    assert endpoint.headers[0]["authorization"] == "Bearer test-key"


async def test_send_message_sends_full_history(controller, endpoint):
    endpoint.reply(sse_body("How was your visit?"))
    endpoint.reply(sse_body("Sorry to hear that."))
    await controller.start_conversation("post_visit")

    await controller.send_message("The wait was long", "post_visit", session_id="abc-123")

    assert endpoint.requests[1] == {
        "messages": [
            {"role": "assistant", "content": "How was your visit?"},
            {"role": "user", "content": "The wait was long"},
        ],
        "category": "post_visit",
        "sessionId": "abc-123",
    }
    assert [(t.role, t.content) for t in controller.turns] == [
        (Role.ASSISTANT, "How was your visit?"),
        (Role.USER, "The wait was long"),
        (Role.ASSISTANT, "Sorry to hear that."),
    ]


async def test_feedback_outcome_completes_session(controller, endpoint):
    endpoint.reply(sse_body("Thanks! ", "[COMPLETE]" + FEEDBACK_BLOCK))

    turn = await controller.send_message("It was great", "post_visit")

    assert turn.content == "Thanks! "
    assert controller.state is SessionState.COMPLETED
    assert controller.feedback_outcome.score == 4
    assert controller.nursing_outcome is None
    assert controller.outcome == controller.feedback_outcome


async def test_nursing_outcome(controller, endpoint):
    endpoint.reply(sse_body("I'll let the nurses know. ", NURSING_BLOCK))

    await controller.send_message("I feel fine", "nursing_assessment")

    assert controller.nursing_outcome.priority_level == "low"
    assert controller.state is SessionState.COMPLETED


async def test_unparsable_block_leaves_session_open(controller, endpoint):
    endpoint.reply(sse_body("[NURSING_ASSESSMENT]not json[/NURSING_ASSESSMENT]"))

    await controller.send_message("hello", "nursing_assessment")

    assert controller.outcome is None
    assert controller.state is SessionState.AWAITING_USER_INPUT


async def test_both_blocks_raise_but_keep_reply(controller, endpoint):
    endpoint.reply(sse_body("Done. ", FEEDBACK_BLOCK, NURSING_BLOCK))

    with pytest.raises(AmbiguousOutcomeError):
        await controller.send_message("hello", "post_visit")

    assert controller.outcome is None
    assert [t.content for t in controller.turns] == ["hello", "Done. "]


async def test_blank_message_is_ignored(controller, endpoint):
    assert await controller.send_message("   ", "post_visit") is None
    assert await controller.send_message("", "post_visit") is None
    assert endpoint.requests == []
    assert controller.turns == ()


async def test_unknown_category_rejected_before_network(controller, endpoint):
    with pytest.raises(UnknownCategoryError):
        await controller.start_conversation("billing")
    with pytest.raises(ValueError):
        await controller.send_message("hi", "billing")

    assert endpoint.requests == []
    assert controller.state is SessionState.EMPTY


async def test_transport_failure_rolls_back_user_turn(controller, endpoint):
    endpoint.fail(httpx.ConnectError("connection refused"))

    with pytest.raises(ChatResponseError):
        await controller.send_message("hello", "post_visit")

    assert all("hello" not in t.content for t in controller.turns)
    assert controller.turns == ()
    assert controller.state is SessionState.AWAITING_USER_INPUT
    assert not controller.busy


async def test_error_status_uses_error_body(controller, endpoint):
    endpoint.reply(sse_body("Hi"))
    endpoint.reply_error(429, "Rate limit exceeded. Please try again in a moment.")
    await controller.start_conversation("service_quality")

    with pytest.raises(ChatResponseError, match="Rate limit exceeded") as exc_info:
        await controller.send_message("hello", "service_quality")

    assert exc_info.value.status_code == 429
    assert [t.content for t in controller.turns] == ["Hi"]


async def test_mid_stream_failure_rolls_back(controller, endpoint):
    endpoint.reply(sse_event("partial " + FEEDBACK_BLOCK), error=httpx.ReadError("reset"))

    with pytest.raises(StreamError):
        await controller.send_message("hello", "post_visit")

    assert controller.turns == ()
    assert controller.outcome is None


async def test_json_success_body_is_a_response_error(controller, endpoint):
    endpoint.reply(sse_body("How was your visit?"))
    endpoint.respond(httpx.Response(200, json={"unexpected": "shape"}))
    await controller.start_conversation("post_visit")

    with pytest.raises(ChatResponseError, match="unexpected response body"):
        await controller.send_message("hello", "post_visit")

    assert [t.content for t in controller.turns] == ["How was your visit?"]
    assert controller.state is SessionState.AWAITING_USER_INPUT


async def test_event_stream_without_events_is_a_response_error(controller, endpoint):
    endpoint.reply(b"<html>maintenance</html>")

    with pytest.raises(ChatResponseError):
        await controller.send_message("hello", "post_visit")

    assert controller.turns == ()
    assert not controller.busy


async def test_second_outcome_is_ignored(controller, endpoint):
    endpoint.reply(sse_body("Thanks! ", FEEDBACK_BLOCK))
    endpoint.reply(sse_body("Anything else? ", NURSING_BLOCK))
    await controller.send_message("great", "post_visit")

    await controller.send_message("one more thing", "post_visit")

    assert controller.feedback_outcome.score == 4
    assert controller.nursing_outcome is None
    assert controller.state is SessionState.COMPLETED


async def test_failed_start_leaves_session_empty(controller, endpoint):
    endpoint.reply_error(500, "Failed to get AI response")

    with pytest.raises(ChatResponseError):
        await controller.start_conversation("treatment_experience")

    assert controller.turns == ()
    assert controller.state is SessionState.EMPTY


async def test_missing_credentials_is_configuration_error(settings, endpoint):
    settings.chat_api_key = None
    controller = SessionController(ChatClient(settings, transport=endpoint.transport))

    with pytest.raises(ChatConfigurationError):
        await controller.send_message("hello", "post_visit")

    assert endpoint.requests == []
    assert controller.turns == ()


async def test_reset_is_idempotent(controller, endpoint):
    endpoint.reply(sse_body("Thanks! ", FEEDBACK_BLOCK))
    await controller.send_message("great", "post_visit")

    controller.reset_conversation()
    controller.reset_conversation()

    assert controller.turns == ()
    assert controller.outcome is None
    assert controller.state is SessionState.EMPTY


async def test_turns_are_copies(controller, endpoint):
    endpoint.reply(sse_body("Hi"))
    await controller.start_conversation("post_visit")

    controller.turns[0].content = "tampered"

    assert controller.turns[0].content == "Hi"


async def test_overlapping_request_is_rejected(controller, endpoint):
    release = asyncio.Event()
    first_fragment = asyncio.Event()
    endpoint.reply(sse_event("Working on it"), hold=release)

    task = asyncio.create_task(
        controller.send_message("hello", "post_visit", on_update=lambda _: first_fragment.set())
    )
    await first_fragment.wait()

    assert controller.busy
    assert controller.state is SessionState.AWAITING_REPLY
    with pytest.raises(SessionBusyError):
        await controller.send_message("again", "post_visit")

    release.set()
    turn = await task
    assert turn.content == "Working on it"
    assert not controller.busy
    assert len(endpoint.requests) == 1


async def test_cancel_abandons_request(controller, endpoint):
    never = asyncio.Event()
    first_fragment = asyncio.Event()
    endpoint.reply(sse_event("Let me"), hold=never)

    task = asyncio.create_task(
        controller.send_message("hello", "post_visit", on_update=lambda _: first_fragment.set())
    )
    await first_fragment.wait()

    assert controller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert controller.turns == ()
    assert controller.state is SessionState.AWAITING_USER_INPUT
    assert not controller.busy
    assert not controller.cancel()


async def test_reset_during_stream_discards_late_writes(controller, endpoint):
    never = asyncio.Event()
    first_fragment = asyncio.Event()
    endpoint.reply(sse_event("Let me"), hold=never)

    task = asyncio.create_task(
        controller.send_message("hello", "post_visit", on_update=lambda _: first_fragment.set())
    )
    await first_fragment.wait()

    controller.reset_conversation()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert controller.turns == ()
    assert controller.state is SessionState.EMPTY
    assert not controller.busy
