"""
Managed provider path: native generateContent against the managed endpoint with
the ambient credential of the execution environment. Bypasses the cascade.
"""
import logging
from typing import Any

import httpx

from visionlab.core.config import Settings
from visionlab.schemas.provider import ProviderConfig
from visionlab.services.image_generation.base import (
    AdapterAttempt,
    CredentialRequiredError,
    GenerationRequest,
    NoImageInResponseError,
    UpstreamError,
    build_error_detail,
)
from visionlab.services.image_generation.extractor import extract_image, extract_text
from visionlab.services.image_generation.failure_types import FailureType, classify_failure
from visionlab.services.image_generation.providers.native_multimodal import NativeMultimodalAdapter

logger = logging.getLogger(__name__)

SQUARE_ASPECT_RATIO = "1:1"
# Models that accept an explicit output resolution tier
HIGH_TIER_MODELS: frozenset[str] = frozenset({"gemini-3-pro-image-preview"})


def is_high_tier_model(model: str) -> bool:
    """Model-tier switch keyed on the identifier string."""
    value = (model or "").strip().lower()
    return value in HIGH_TIER_MODELS or "-pro" in value


class ManagedAdapter(NativeMultimodalAdapter):
    """Single managed call; the caller-supplied endpoint and key are never used."""

    name = "managed"

    def __init__(
        self,
        config: ProviderConfig,
        settings: Settings,
        credential: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(config, settings, http_client=http_client)
        self.base_url = settings.managed_api_endpoint
        self._credential = (credential or "").strip()

    def credential(self) -> str:
        return self._credential

    def generation_config(self, model: str) -> dict[str, Any] | None:
        image_config: dict[str, Any] = {"aspectRatio": SQUARE_ASPECT_RATIO}
        config: dict[str, Any] = {"imageConfig": image_config}
        if is_high_tier_model(model):
            image_config["imageSize"] = self.settings.managed_image_size_tier
            config["candidateCount"] = 1
        return config

    def raise_for_error(self, status: int, body: Any) -> None:
        detail = build_error_detail(body)
        detail["http_status"] = status
        detail["adapter"] = self.name
        message = detail.get("error_message") or f"Managed generation failed with status {status}"
        failure_type = classify_failure(status, detail, message, managed=True)
        if failure_type == FailureType.CREDENTIAL_REQUIRED:
            raise CredentialRequiredError(
                "The configured API key is not linked to a billable project; select a paid API key",
                detail=detail,
            )
        raise UpstreamError(message, detail=detail)

    async def attempt(self, request: GenerationRequest) -> AdapterAttempt:
        if not self._credential:
            raise CredentialRequiredError(
                "No managed API key available; select an API key",
                detail={"adapter": self.name},
            )

        logger.info(
            "managed_generation_request",
            extra={"adapter": self.name, "model": request.model_id,
                   "high_tier": is_high_tier_model(request.model_id)},
        )
        status, body = await self.post(request)
        if not httpx.codes.is_success(status):
            self.raise_for_error(status, body)

        image = extract_image(body)
        if image is None:
            detail = build_error_detail(body)
            detail["http_status"] = status
            detail["adapter"] = self.name
            if detail.get("block_reason"):
                raise UpstreamError(f"Request blocked: {detail['block_reason']}", detail=detail)
            text = extract_text(body)
            message = "AI returned text but no image part"
            if text:
                message = f"{message}: {text[:300]}"
            raise NoImageInResponseError(message, detail=detail)
        return AdapterAttempt(self.name, status, body, image=image)
