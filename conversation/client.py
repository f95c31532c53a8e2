"""
HTTP client for the feedback chat endpoint.

Sends the dialogue so far and hands back the streamed response body.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Sequence

import httpx

from config import Settings, get_settings
from conversation.errors import ChatConfigurationError, ChatResponseError
from conversation.models import Turn

logger = logging.getLogger(__name__)

EVENT_STREAM = "text/event-stream"


def _error_detail(response: httpx.Response) -> str:
    """Pull the message out of an {"error": ...} body, if there is one."""
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {response.status_code}"


class ChatClient:
    """
    Client for the streaming chat endpoint.

    A new httpx.AsyncClient is opened per request so the client can be
    reused across event loops.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    def _check_configuration(self) -> None:
        if not self.settings.chat_endpoint_url:
            raise ChatConfigurationError("Chat endpoint URL is not configured")
        if not self.settings.chat_api_key:
            raise ChatConfigurationError("Chat endpoint API key is not configured")

    def build_payload(
        self,
        messages: Sequence[Turn],
        category: str,
        session_id: Optional[str] = None,
    ) -> dict:
        payload = {
            "messages": [turn.model_dump(mode="json") for turn in messages],
            "category": category,
        }
        if session_id:
            payload["sessionId"] = session_id
        return payload

    @asynccontextmanager
    async def stream_reply(
        self,
        messages: Sequence[Turn],
        category: str,
        session_id: Optional[str] = None,
    ) -> AsyncIterator[AsyncIterator[bytes]]:
        """
        POST the dialogue and yield the response byte stream.

        Args:
            messages: Turns the assistant should see, oldest first
            category: Conversation category value
            session_id: Optional persisted session identifier

        Raises:
            ChatConfigurationError: endpoint URL or key missing
            ChatResponseError: transport failure, non-success status or a
                body that is not an event stream
        """
        self._check_configuration()

        timeout = httpx.Timeout(self.settings.request_timeout, read=None)
        headers = {"Authorization": f"Bearer {self.settings.chat_api_key}"}
        payload = self.build_payload(messages, category, session_id)

        async with httpx.AsyncClient(transport=self._transport, timeout=timeout) as client:
            try:
                request = client.build_request(
                    "POST", self.settings.chat_endpoint_url, json=payload, headers=headers
                )
                response = await client.send(request, stream=True)
            except httpx.HTTPError as e:
                logger.error("Chat request failed: %s", e)
                raise ChatResponseError(f"Could not get assistant response: {e}") from e

            try:
                if response.is_error:
                    await response.aread()
                    detail = _error_detail(response)
                    logger.error("Chat endpoint returned %s: %s", response.status_code, detail)
                    raise ChatResponseError(
                        f"Could not get assistant response: {detail}",
                        status_code=response.status_code,
                    )
                content_type = response.headers.get("content-type", "")
                if not content_type.startswith(EVENT_STREAM):
                    logger.error("Chat endpoint answered with %r, not an event stream", content_type)
                    raise ChatResponseError(
                        "Could not get assistant response: unexpected response body",
                        status_code=response.status_code,
                    )
                yield response.aiter_bytes()
            finally:
                await response.aclose()
