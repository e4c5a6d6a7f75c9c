"""Shared fixtures: isolated settings, a source image and a recording mock transport."""
import base64
import json

import httpx
import pytest

from visionlab.core.config import Settings
from visionlab.schemas.provider import ProviderConfig
from visionlab.services.image_generation.base import GenerationRequest, ImagePayload

SOURCE_BYTES = b"\xff\xd8\xff\xe0fake-jpeg"
SOURCE_B64 = base64.standard_b64encode(SOURCE_BYTES).decode("ascii")
RESULT_B64 = base64.standard_b64encode(b"\x89PNGresult").decode("ascii")


class Recorder:
    """Mock transport that answers from a routing function and records every request."""

    def __init__(self, responder):
        self.responder = responder
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def json_body(self, index: int = 0) -> dict:
        return json.loads(self.requests[index].content)


def native_image_body(data: str = RESULT_B64, mime: str = "image/png") -> dict:
    return {
        "candidates": [
            {
                "content": {"parts": [{"text": "Here it is"}, {"inlineData": {"mimeType": mime, "data": data}}]},
                "finishReason": "STOP",
            }
        ]
    }


@pytest.fixture
def settings():
    return Settings(_env_file=None, managed_api_key="", attempt_timeout_seconds=5.0)


@pytest.fixture
def source_image():
    return ImagePayload(mime_type="image/jpeg", data=SOURCE_B64)


@pytest.fixture
def custom_config():
    return ProviderConfig(
        use_custom_provider=True,
        api_key="sk-test",
        base_url="https://proxy.example/v1/",
        selected_model="gemini-x",
    )


@pytest.fixture
def make_request(source_image):
    def _make(config: ProviderConfig, prompt: str = "oil painting") -> GenerationRequest:
        return GenerationRequest(source_image=source_image, prompt=prompt, provider_config=config)
    return _make


@pytest.fixture
def recorder():
    """Factory: recorder(responder) -> Recorder; use .client() as the injected http client."""
    return Recorder


@pytest.fixture
def native_body():
    return native_image_body
