"""
Assembly of streamed assistant replies.

The chat endpoint answers with a server-sent event stream:

    : keep-alive
    data: {"choices": [{"delta": {"content": "Hel"}}]}
    data: {"choices": [{"delta": {"content": "lo"}}]}
    data: [DONE]

StreamAssembler turns raw byte chunks of that stream into the growing
display text (sentinels removed) and, once the stream ends, the structured
outcome embedded in the reply. Chunk boundaries carry no meaning: the same
bytes split anywhere produce the same result.
"""

import asyncio
import codecs
import json
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Optional

import httpx

from conversation.errors import ChatResponseError, StreamError
from conversation.models import FeedbackOutcome, NursingOutcome
from conversation.sentinels import Extraction, extract_and_strip, visible_text

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_TOKEN = "[DONE]"

_INVALID = object()


def _loads(payload: str):
    # strict=False lets raw control characters through inside strings,
    # which is what a bare newline in streamed content turns into
    try:
        return json.loads(payload, strict=False)
    except json.JSONDecodeError:
        return _INVALID


@dataclass
class AssembledReply:
    """Everything recovered from one streamed assistant reply."""

    raw_text: str
    extraction: Extraction
    dropped_tail: str = ""

    @property
    def display_text(self) -> str:
        return self.extraction.rest

    @property
    def feedback(self) -> Optional[FeedbackOutcome]:
        return self.extraction.feedback

    @property
    def nursing(self) -> Optional[NursingOutcome]:
        return self.extraction.nursing


class StreamAssembler:
    """
    Incremental parser for one streamed assistant reply.

    Usage:
        assembler = StreamAssembler()
        for chunk in chunks:
            for text in assembler.feed(chunk):
                show(text)
        reply = assembler.finish()
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._carry = ""
        # Data payload whose JSON was cut by a bare newline
        self._pending: Optional[str] = None
        self.raw_text = ""
        self.done = False
        # Parsed data events and whether [DONE] arrived
        self.events = 0
        self.saw_done = False
        self._aborted = False

    @property
    def display_text(self) -> str:
        """The reply so far, without protocol sentinels or half-received blocks."""
        return visible_text(self.raw_text)

    def feed(self, chunk: bytes) -> list[str]:
        """
        Consume one chunk of the byte stream.

        Args:
            chunk: Raw bytes as read from the transport

        Returns:
            One display snapshot per content fragment the chunk completed,
            in stream order
        """
        self._carry += self._decoder.decode(chunk)
        snapshots = []
        while not self.done:
            newline = self._carry.find("\n")
            if newline == -1:
                break
            line = self._carry[:newline]
            self._carry = self._carry[newline + 1 :]
            if self._consume_line(line):
                snapshots.append(self.display_text)
        if self.done:
            self._carry = ""
        return snapshots

    def finish(self) -> AssembledReply:
        """
        Close the stream and extract the outcome from the full reply.

        Raises:
            ChatResponseError: the body carried no event at all, so it was
                not an event stream
        """
        self._carry += self._decoder.decode(b"", final=True)
        tail = "\n".join(part for part in (self._pending, self._carry) if part)
        if tail.strip():
            logger.warning(
                "Stream ended with an unterminated line; dropping %d characters",
                len(tail),
            )
        else:
            tail = ""
        self._carry = ""
        self._pending = None
        self.done = True

        if not (self.events or self.saw_done or self._aborted):
            raise ChatResponseError(
                "Could not get assistant response: reply contained no events"
            )

        return AssembledReply(
            raw_text=self.raw_text,
            extraction=extract_and_strip(self.raw_text),
            dropped_tail=tail,
        )

    def abort(self) -> None:
        """Discard everything received; nothing can be extracted afterwards."""
        self._carry = ""
        self._pending = None
        self.raw_text = ""
        self.done = True
        self._aborted = True

    def _consume_line(self, line: str) -> bool:
        if line.endswith("\r"):
            line = line[:-1]

        if self._pending is not None:
            return self._continue_pending(line)

        if not line.strip() or line.startswith(":"):
            return False
        if not line.startswith(DATA_PREFIX):
            return False

        payload = line[len(DATA_PREFIX) :]
        if payload.strip() == DONE_TOKEN:
            self.done = True
            self.saw_done = True
            return False

        event = _loads(payload)
        if event is _INVALID:
            self._pending = payload
            return False
        return self._apply(event)

    def _continue_pending(self, line: str) -> bool:
        candidate = f"{self._pending}\n{line}"
        event = _loads(candidate)
        if event is not _INVALID:
            self._pending = None
            return self._apply(event)

        if line.startswith(DATA_PREFIX):
            payload = line[len(DATA_PREFIX) :]
            if payload.strip() == DONE_TOKEN or _loads(payload) is not _INVALID:
                logger.warning(
                    "Discarding unterminated event fragment (%d characters)",
                    len(self._pending),
                )
                self._pending = None
                return self._consume_line(line)

        self._pending = candidate
        return False

    def _apply(self, event) -> bool:
        self.events += 1
        try:
            content = event["choices"][0]["delta"].get("content")
        except (KeyError, IndexError, TypeError, AttributeError):
            return False
        if not isinstance(content, str) or not content:
            return False
        self.raw_text += content
        return True


async def assemble(
    chunks: AsyncIterator[bytes],
    on_text: Optional[Callable[[str], None]] = None,
) -> AssembledReply:
    """
    Drive a StreamAssembler over an async byte stream.

    Args:
        chunks: Async iterator of raw response bytes
        on_text: Called with each display snapshot as it is produced

    Returns:
        The assembled reply

    Raises:
        StreamError: the transport failed before the stream ended
        ChatResponseError: the body held no events
    """
    assembler = StreamAssembler()
    try:
        async for chunk in chunks:
            for text in assembler.feed(chunk):
                if on_text is not None:
                    on_text(text)
    except httpx.HTTPError as e:
        assembler.abort()
        raise StreamError(f"Could not get assistant response: {e}") from e
    except asyncio.CancelledError:
        assembler.abort()
        raise

    reply = assembler.finish()
    logger.debug(
        "Assembled reply: %d raw characters, feedback=%s, nursing=%s",
        len(reply.raw_text),
        reply.feedback is not None,
        reply.nursing is not None,
    )
    return reply
