"""SSE payload builders and a scripted chat endpoint for tests."""

import asyncio
import json
from typing import Optional

import httpx


def sse_event(content: str) -> bytes:
    """One data line carrying a content delta."""
    envelope = {"choices": [{"delta": {"content": content}}]}
    return f"data: {json.dumps(envelope, ensure_ascii=False)}\n".encode()


def sse_body(*contents: str, done: bool = True) -> bytes:
    body = b"".join(sse_event(c) for c in contents)
    if done:
        body += b"data: [DONE]\n\n"
    return body


async def iterate(chunks, error: Optional[Exception] = None, hold: Optional[asyncio.Event] = None):
    for chunk in chunks:
        yield chunk
    if hold is not None:
        await hold.wait()
    if error is not None:
        raise error


class FakeChatEndpoint:
    """Scripted stand-in for the chat relay, served through httpx.MockTransport."""

    def __init__(self):
        self.requests: list[dict] = []
        self.headers: list[httpx.Headers] = []
        self._replies = []

    def reply(self, *chunks: bytes, error: Optional[Exception] = None, hold=None):
        self._replies.append(("stream", chunks, error, hold))

    def reply_error(self, status_code: int, message: str):
        self._replies.append(("error", status_code, message, None))

    def fail(self, exc: Exception):
        self._replies.append(("raise", exc, None, None))

    def respond(self, response: httpx.Response):
        self._replies.append(("raw", response, None, None))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        self.headers.append(request.headers)
        kind, first, second, hold = self._replies.pop(0)
        if kind == "raise":
            raise first
        if kind == "raw":
            return first
        if kind == "error":
            return httpx.Response(first, json={"error": second})
        return httpx.Response(
            200,
            headers={"Content-Type": "text/event-stream"},
            content=iterate(first, error=second, hold=hold),
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


