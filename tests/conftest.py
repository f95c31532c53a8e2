import pytest

from config import Settings
from helpers import FakeChatEndpoint


@pytest.fixture
def settings():
    return Settings(
        chat_endpoint_url="http://testserver/v1/feedback-chat",
        chat_api_key="test-key",
        relay_api_key="test-key",
        gateway_url="http://gateway.test/v1/chat/completions",
        gateway_api_key="gateway-key",
    )


@pytest.fixture
def endpoint():
    return FakeChatEndpoint()
