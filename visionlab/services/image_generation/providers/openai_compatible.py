"""
Shared plumbing for OpenAI-style endpoints (images/generations, chat/completions).
Requests go through the openai SDK; bodies are read raw so that proxy-specific
shapes reach the extractor untouched.
"""
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import openai
from openai import AsyncOpenAI

from visionlab.services.image_generation.base import (
    ImageTransformAdapter,
    UpstreamError,
    read_body,
)
from visionlab.services.image_generation.failure_types import FailureType


class OpenAICompatibleAdapter(ImageTransformAdapter):
    """Base for adapters speaking an OpenAI-style protocol with a bearer credential."""

    name = "openai_compatible"

    @asynccontextmanager
    async def openai_client(self) -> AsyncIterator[AsyncOpenAI]:
        async with self.http() as http_client:
            # SDK retries disabled: the cascade is the only fallback policy
            yield AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
                http_client=http_client,
            )

    def decode(self, raw_response: Any) -> Any:
        """Body of an SDK raw response (LegacyAPIResponse) as JSON or text."""
        return read_body(raw_response.http_response, self.settings.max_response_bytes)

    def error_body(self, error: openai.APIStatusError) -> Any:
        try:
            return read_body(error.response, self.settings.max_response_bytes)
        except UpstreamError:
            return None

    def transport_error(self, error: openai.APIConnectionError) -> UpstreamError:
        return UpstreamError(
            f"{self.name} request failed: {error}",
            detail={"adapter": self.name, "failure_type": FailureType.TRANSPORT_ERROR.value},
        )

    @staticmethod
    def upstream_message(error: openai.APIStatusError) -> str | None:
        """Message from the error envelope; the SDK unwraps {"error": {...}} into body."""
        body = error.body
        if isinstance(body, dict):
            message = body.get("message")
            if not message and isinstance(body.get("error"), dict):
                message = body["error"].get("message")
            if isinstance(message, str) and message.strip():
                return message.strip()
        return None
