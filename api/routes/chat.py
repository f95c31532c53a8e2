"""
Feedback chat relay.

Adds the category system prompt, forwards the dialogue to the hosted
chat-completion gateway and streams the event stream straight back.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from config import Settings, get_settings
from conversation.errors import GatewayError
from conversation.gateway import UpstreamGateway
from conversation.models import Turn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["chat"])

# Singleton gateway instance
_gateway: UpstreamGateway | None = None


def get_gateway() -> UpstreamGateway:
    """Get or create the upstream gateway."""
    global _gateway
    if _gateway is None:
        _gateway = UpstreamGateway()
    return _gateway


class ChatRequest(BaseModel):
    """Dialogue sent by the conversation client."""

    model_config = ConfigDict(populate_by_name=True)

    messages: list[Turn] = Field(default_factory=list)
    category: str = "post_visit"
    session_id: Optional[str] = Field(default=None, alias="sessionId")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/feedback-chat")
async def feedback_chat(
    request: ChatRequest,
    gateway: UpstreamGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
    authorization: Optional[str] = Header(default=None),
):
    """
    Stream an assistant reply for the given dialogue.

    Errors come back as {"error": message} with the matching status.
    """
    expected_key = settings.relay_api_key
    if expected_key and authorization != f"Bearer {expected_key}":
        return _error(401, "Invalid or missing API key")

    messages = [turn.model_dump(mode="json") for turn in request.messages]
    logger.info(
        "Relaying %s chat (%d messages, session=%s)",
        request.category,
        len(messages),
        request.session_id or "-",
    )

    try:
        stream = await gateway.open_stream(messages, request.category)
    except GatewayError as e:
        return _error(e.status_code, e.message)

    return StreamingResponse(stream, media_type="text/event-stream")
