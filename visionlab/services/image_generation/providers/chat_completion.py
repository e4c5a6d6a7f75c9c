"""
OpenAI-style chat completion adapter: POST {base}/chat/completions.
Last resort of the cascade; the image usually comes back embedded in assistant text.
"""
import openai

from visionlab.services.image_generation.base import (
    AdapterAttempt,
    GenerationRequest,
    UpstreamError,
    build_error_detail,
    compose_instruction,
)
from visionlab.services.image_generation.extractor import extract_image
from visionlab.services.image_generation.providers.openai_compatible import OpenAICompatibleAdapter


class ChatCompletionAdapter(OpenAICompatibleAdapter):
    """Text instruction + image_url part in a single user message."""

    name = "chat_completion"

    def build_messages(self, request: GenerationRequest) -> list[dict]:
        return [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": compose_instruction(request.prompt, self.settings)},
                    {
                        "type": "image_url",
                        "image_url": {"url": request.source_image.to_data_uri()},
                    },
                ],
            },
        ]

    async def attempt(self, request: GenerationRequest) -> AdapterAttempt:
        async with self.openai_client() as client:
            try:
                raw = await client.chat.completions.with_raw_response.create(
                    model=request.model_id,
                    messages=self.build_messages(request),
                )
            except openai.APIStatusError as e:
                detail = build_error_detail(self.error_body(e))
                detail["http_status"] = e.status_code
                detail["adapter"] = self.name
                msg = self.upstream_message(e) or f"Chat completion request failed with status {e.status_code}"
                raise UpstreamError(msg, detail=detail) from e
            except openai.APIConnectionError as e:
                raise self.transport_error(e) from e

        body = self.decode(raw)
        detail = build_error_detail(body)
        image = extract_image(body)
        if image is None and detail.get("error_message"):
            detail["http_status"] = raw.status_code
            detail["adapter"] = self.name
            raise UpstreamError(detail["error_message"], detail=detail)
        return AdapterAttempt(self.name, raw.status_code, body, image=image)
