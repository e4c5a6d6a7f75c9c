"""
OpenAI-style image generation adapter: POST {base}/images/generations.
Non-2xx statuses and bodies without an image both hand over to the next adapter.
"""
import logging

import openai

from visionlab.services.image_generation.base import (
    AdapterAttempt,
    GenerationRequest,
    compose_instruction,
)
from visionlab.services.image_generation.extractor import extract_image
from visionlab.services.image_generation.providers.openai_compatible import OpenAICompatibleAdapter

logger = logging.getLogger(__name__)


class ImageEndpointAdapter(OpenAICompatibleAdapter):
    """Image editing through an images/generations route with an inline source image."""

    name = "image_endpoint"

    async def attempt(self, request: GenerationRequest) -> AdapterAttempt:
        async with self.openai_client() as client:
            try:
                raw = await client.images.with_raw_response.generate(
                    model=request.model_id,
                    prompt=compose_instruction(request.prompt, self.settings),
                    n=1,
                    size=self.settings.image_size,
                    response_format="b64_json",
                    extra_body={"image": request.source_image.to_data_uri()},
                )
            except openai.APIStatusError as e:
                logger.info(
                    "image_endpoint_rejected",
                    extra={"adapter": self.name, "status_code": e.status_code, "model": request.model_id},
                )
                return AdapterAttempt(self.name, e.status_code, self.error_body(e))
            except openai.APIConnectionError as e:
                raise self.transport_error(e) from e

        body = self.decode(raw)
        return AdapterAttempt(self.name, raw.status_code, body, image=extract_image(body))
