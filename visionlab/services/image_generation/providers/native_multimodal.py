"""
Native multimodal adapter (generateContent protocol) for custom endpoints.
POST {base}/models/{model}:generateContent?key={credential}.
404/405 mean the endpoint has no such route: the cascade moves on instead of failing.
"""
import logging
from typing import Any

import httpx

from visionlab.services.image_generation.base import (
    DEFAULT_SOURCE_MIME,
    AdapterAttempt,
    GenerationRequest,
    ImageTransformAdapter,
    RouteNotImplementedError,
    UpstreamError,
    build_error_detail,
    compose_instruction,
    read_streamed_body,
)
from visionlab.services.image_generation.extractor import extract_image
from visionlab.services.image_generation.failure_types import (
    FailureType,
    classify_failure,
    is_route_missing,
)

logger = logging.getLogger(__name__)


class NativeMultimodalAdapter(ImageTransformAdapter):
    """Image + instruction via the native generateContent API."""

    name = "native_multimodal"

    def endpoint_url(self, model: str) -> str:
        return f"{self.base_url}/models/{model}:generateContent"

    def credential(self) -> str:
        return self.config.api_key

    def generation_config(self, model: str) -> dict[str, Any] | None:
        """Extra generationConfig; custom endpoints get the plain request."""
        return None

    def build_payload(self, request: GenerationRequest) -> dict[str, Any]:
        parts: list[dict] = [
            {
                "inlineData": {
                    "mimeType": DEFAULT_SOURCE_MIME,
                    "data": request.inline_source_data,
                },
            },
            {"text": compose_instruction(request.prompt, self.settings)},
        ]
        payload: dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
        generation_config = self.generation_config(request.model_id)
        if generation_config:
            payload["generationConfig"] = generation_config
        return payload

    async def post(self, request: GenerationRequest) -> tuple[int, Any]:
        """Send the request; returns the status and the body read under the size bound."""
        url = self.endpoint_url(request.model_id)
        try:
            async with self.http() as client:
                async with client.stream(
                    "POST",
                    url,
                    params={"key": self.credential()},
                    json=self.build_payload(request),
                    timeout=self.timeout,
                ) as response:
                    body = await read_streamed_body(response, self.settings.max_response_bytes)
                    return response.status_code, body
        except httpx.HTTPError as e:
            raise UpstreamError(
                f"{self.name} request failed: {e}",
                detail={"adapter": self.name, "failure_type": FailureType.TRANSPORT_ERROR.value},
            ) from e

    def raise_for_error(self, status: int, body: Any) -> None:
        detail = build_error_detail(body)
        detail["http_status"] = status
        detail["adapter"] = self.name
        detail["failure_type"] = classify_failure(status, detail).value
        msg = detail.get("error_message") or f"Native generation failed with status {status}"
        raise UpstreamError(msg, detail=detail)

    async def attempt(self, request: GenerationRequest) -> AdapterAttempt:
        status, body = await self.post(request)

        if is_route_missing(status):
            logger.info(
                "native_route_missing",
                extra={"adapter": self.name, "status_code": status, "model": request.model_id},
            )
            raise RouteNotImplementedError(
                f"Endpoint does not implement generateContent (HTTP {status})",
                detail={"http_status": status, "adapter": self.name},
            )

        if not httpx.codes.is_success(status):
            self.raise_for_error(status, body)

        image = extract_image(body)
        if image is None:
            detail = build_error_detail(body)
            # Explicit refusal is an error envelope, not a shape mismatch
            if detail.get("error_message") or detail.get("block_reason"):
                detail["http_status"] = status
                detail["adapter"] = self.name
                msg = detail.get("error_message") or f"Request blocked: {detail['block_reason']}"
                raise UpstreamError(msg, detail=detail)
        return AdapterAttempt(self.name, status, body, image=image)
