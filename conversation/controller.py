"""
Conversation session controller.

Owns the turn history of one conversation and drives the request/stream
cycle for each assistant reply:

    empty -> awaiting_first_reply -> awaiting_user_input <-> awaiting_reply
                                                      \\-> completed

A failed or cancelled request never leaves a turn behind that the assistant
did not answer.
"""

import asyncio
import logging
from typing import Callable, Optional, Sequence, Union

from conversation.client import ChatClient
from conversation.errors import AmbiguousOutcomeError, SessionBusyError, UnknownCategoryError
from conversation.models import (
    Category,
    FeedbackOutcome,
    NursingOutcome,
    Role,
    SessionState,
    Turn,
)
from conversation.stream import AssembledReply, assemble

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[str], None]


def coerce_category(category: Union[str, Category]) -> Category:
    """Resolve a category value, raising UnknownCategoryError if invalid."""
    try:
        return Category(category)
    except ValueError:
        raise UnknownCategoryError(category) from None


class SessionController:
    """
    One patient conversation.

    Only one request may be in flight at a time; overlapping calls raise
    SessionBusyError. Callers receive copies of the turns, never the live
    objects being streamed into.
    """

    def __init__(self, client: Optional[ChatClient] = None):
        self.client = client or ChatClient()
        self._turns: list[Turn] = []
        self._feedback: Optional[FeedbackOutcome] = None
        self._nursing: Optional[NursingOutcome] = None
        self._state = SessionState.EMPTY
        self._category: Optional[Category] = None
        self._task: Optional[asyncio.Task] = None
        self._busy = False
        self._generation = 0

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(turn.model_copy() for turn in self._turns)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def category(self) -> Optional[Category]:
        return self._category

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def feedback_outcome(self) -> Optional[FeedbackOutcome]:
        return self._feedback

    @property
    def nursing_outcome(self) -> Optional[NursingOutcome]:
        return self._nursing

    @property
    def outcome(self) -> Optional[Union[FeedbackOutcome, NursingOutcome]]:
        return self._feedback or self._nursing

    async def start_conversation(
        self,
        category: Union[str, Category],
        on_update: Optional[UpdateCallback] = None,
    ) -> Turn:
        """
        Start a fresh conversation and stream the assistant's greeting.

        Args:
            category: Conversation category
            on_update: Called with the visible reply text on every fragment

        Returns:
            Copy of the finished assistant turn

        Raises:
            UnknownCategoryError: category is not recognized (nothing sent)
            SessionBusyError: a request is already in flight
            ChatConfigurationError, ChatResponseError: the request failed
        """
        category = coerce_category(category)
        self._ensure_idle()

        self.reset_conversation()
        self._category = category
        placeholder = Turn(role=Role.ASSISTANT)
        self._turns.append(placeholder)
        self._state = SessionState.AWAITING_FIRST_REPLY
        generation = self._generation
        logger.info("Starting %s conversation", category.value)

        try:
            reply = await self._request([], category, None, placeholder, on_update)
        except BaseException:
            if generation == self._generation:
                self._turns.clear()
                self._state = SessionState.EMPTY
            raise

        return self._finalize(placeholder, reply, generation)

    async def send_message(
        self,
        text: str,
        category: Union[str, Category],
        session_id: Optional[str] = None,
        on_update: Optional[UpdateCallback] = None,
    ) -> Optional[Turn]:
        """
        Send a user message and stream the assistant's answer.

        Blank messages are ignored and return None without any request.
        On failure the user turn and the reply placeholder are both removed
        before the error propagates.

        Args:
            text: Message typed or spoken by the patient
            category: Conversation category
            session_id: Persisted session identifier, forwarded to the endpoint
            on_update: Called with the visible reply text on every fragment

        Returns:
            Copy of the finished assistant turn, or None for blank input
        """
        if not text or not text.strip():
            logger.debug("Ignoring blank message")
            return None
        category = coerce_category(category)
        self._ensure_idle()

        user_turn = Turn(role=Role.USER, content=text)
        history = [turn.model_copy() for turn in self._turns] + [user_turn.model_copy()]
        placeholder = Turn(role=Role.ASSISTANT)
        self._turns.extend([user_turn, placeholder])
        self._category = category
        self._state = SessionState.AWAITING_REPLY
        generation = self._generation

        try:
            reply = await self._request(history, category, session_id, placeholder, on_update)
        except BaseException:
            if generation == self._generation:
                self._turns = [
                    turn for turn in self._turns if turn is not user_turn and turn is not placeholder
                ]
                self._state = (
                    SessionState.COMPLETED if self.outcome else SessionState.AWAITING_USER_INPUT
                )
                logger.info("Rolled back unanswered message")
            raise

        return self._finalize(placeholder, reply, generation)

    def reset_conversation(self) -> None:
        """
        Drop all turns and the outcome, cancelling any in-flight request.

        Safe to call repeatedly.
        """
        self.cancel()
        self._busy = False
        self._task = None
        self._generation += 1
        self._turns = []
        self._feedback = None
        self._nursing = None
        self._state = SessionState.EMPTY

    def cancel(self) -> bool:
        """
        Abandon the in-flight request, if any.

        Returns:
            True if a request was cancelled
        """
        if self._task is None or self._task.done():
            return False
        logger.info("Cancelling in-flight chat request")
        self._task.cancel()
        return True

    def _ensure_idle(self) -> None:
        if self._busy:
            raise SessionBusyError("A reply is still streaming for this session")

    async def _request(
        self,
        history: Sequence[Turn],
        category: Category,
        session_id: Optional[str],
        placeholder: Turn,
        on_update: Optional[UpdateCallback],
    ) -> AssembledReply:
        def show(text: str) -> None:
            placeholder.content = text
            if on_update is not None:
                on_update(text)

        task = asyncio.current_task()
        self._busy = True
        self._task = task
        try:
            async with self.client.stream_reply(history, category.value, session_id) as chunks:
                return await assemble(chunks, show)
        finally:
            # A reset may already have handed the session to a newer request
            if self._task is task:
                self._busy = False
                self._task = None

    def _finalize(self, placeholder: Turn, reply: AssembledReply, generation: int) -> Turn:
        placeholder.content = reply.display_text
        if generation != self._generation:
            return placeholder.model_copy()

        try:
            outcome = reply.extraction.outcome
        except AmbiguousOutcomeError:
            self._state = (
                SessionState.COMPLETED if self.outcome else SessionState.AWAITING_USER_INPUT
            )
            raise

        if outcome is None:
            self._state = (
                SessionState.COMPLETED if self.outcome else SessionState.AWAITING_USER_INPUT
            )
        elif self.outcome is not None:
            logger.warning("Conversation already completed; ignoring a second outcome")
            self._state = SessionState.COMPLETED
        else:
            if isinstance(outcome, FeedbackOutcome):
                self._feedback = outcome
            else:
                self._nursing = outcome
            self._state = SessionState.COMPLETED
            logger.info("Conversation completed (%s)", self._category.value if self._category else "-")

        return placeholder.model_copy()
