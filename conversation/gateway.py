"""
Client for the hosted chat-completion gateway.

Used by the relay endpoint: prepends the category system prompt and asks the
model for a streamed (server-sent event) completion.
"""

import logging
from typing import AsyncIterator, Optional, Sequence

import httpx

from config import Settings, get_settings
from conversation.errors import GatewayError
from conversation.prompts import build_system_prompt

logger = logging.getLogger(__name__)

UPSTREAM_ERRORS = {
    429: "Rate limit exceeded. Please try again in a moment.",
    402: "AI credits exhausted. Please add credits to continue.",
}
GENERIC_ERROR = "Failed to get AI response"


class UpstreamGateway:
    """Streaming chat-completion calls against the configured gateway."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    def build_payload(self, messages: Sequence[dict], category: str) -> dict:
        system_message = {"role": "system", "content": build_system_prompt(category)}
        return {
            "model": self.settings.gateway_model,
            "messages": [system_message, *messages],
            "stream": True,
        }

    async def open_stream(self, messages: Sequence[dict], category: str) -> AsyncIterator[bytes]:
        """
        Start a streamed completion.

        Args:
            messages: Dialogue turns as {"role", "content"} dicts
            category: Conversation category, selects the system prompt

        Returns:
            Async iterator over the upstream event-stream bytes. The
            connection is closed once the iterator is exhausted or closed.

        Raises:
            GatewayError: key missing, transport failure or upstream error
        """
        if not self.settings.gateway_api_key:
            raise GatewayError(500, "AI gateway API key is not configured")

        client = httpx.AsyncClient(
            transport=self._transport,
            timeout=httpx.Timeout(self.settings.request_timeout, read=None),
        )
        request = client.build_request(
            "POST",
            self.settings.gateway_url,
            json=self.build_payload(messages, category),
            headers={"Authorization": f"Bearer {self.settings.gateway_api_key}"},
        )
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            await client.aclose()
            logger.error("AI gateway request failed: %s", e)
            raise GatewayError(500, GENERIC_ERROR) from e

        if response.is_error:
            await response.aread()
            await response.aclose()
            await client.aclose()
            logger.error("AI gateway error: %s %s", response.status_code, response.text)
            raise GatewayError(
                response.status_code if response.status_code in UPSTREAM_ERRORS else 500,
                UPSTREAM_ERRORS.get(response.status_code, GENERIC_ERROR),
            )

        return self._relay(client, response)

    @staticmethod
    async def _relay(client: httpx.AsyncClient, response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as e:
            logger.error("AI gateway stream interrupted: %s", e)
            raise
        finally:
            await response.aclose()
            await client.aclose()
