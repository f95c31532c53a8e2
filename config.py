"""
Configuration for Care Feedback.

All settings can be overridden with CARE_FEEDBACK_* environment variables.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_base_url: str = "http://localhost:8000"
    log_level: str = "INFO"

    # Chat relay as seen by the conversation client
    chat_endpoint_url: str = "http://localhost:8000/v1/feedback-chat"
    chat_api_key: Optional[str] = "demo-publishable-key"
    request_timeout: float = 30.0

    # Relay settings (None disables the bearer check)
    relay_api_key: Optional[str] = "demo-publishable-key"

    # Hosted chat-completion gateway
    gateway_url: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    gateway_api_key: Optional[str] = None
    gateway_model: str = "google/gemini-2.5-flash"

    model_config = {"env_prefix": "CARE_FEEDBACK_"}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
