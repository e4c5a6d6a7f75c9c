"""
GenerationClient: public transform contract and dispatch between the managed
path and the fallback cascade over custom endpoints.
"""
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx

from visionlab.core.config import Settings, settings as default_settings
from visionlab.schemas.provider import ProviderConfig
from visionlab.services.image_generation.base import (
    DEFAULT_SOURCE_MIME,
    GenerationRequest,
    GenerationResult,
    ImageGenerationError,
    ImagePayload,
    UpstreamError,
    read_limited,
    sanitize_response_for_log,
)
from visionlab.services.image_generation.cascade import CascadeController
from visionlab.services.image_generation.factory import AdapterFactory, classify_protocol_family
from visionlab.services.image_generation.failure_types import FailureType
from visionlab.services.image_generation.providers.managed import ManagedAdapter
from visionlab.utils.metrics import transform_duration_seconds, transform_requests_total

logger = logging.getLogger(__name__)


class GenerationClient:
    """
    Produces a transformed image from a source image and a style prompt.

    The managed credential is injected here once (defaults to settings.managed_api_key);
    nothing on the call path reads the environment. Each transform() call builds its own
    adapters, so concurrent calls share no mutable state.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        managed_credential: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or default_settings
        if managed_credential is None:
            managed_credential = self.settings.managed_api_key
        self._managed_credential = managed_credential
        self._http_client = http_client

    async def transform(self, request: GenerationRequest) -> GenerationResult:
        """Route to the managed path or the cascade and return its result unchanged."""
        config = request.provider_config
        path = "cascade" if config.is_custom_ready else "managed"
        started = time.monotonic()
        try:
            request = await self._inline_source(request)
            if path == "managed":
                result = await self._transform_managed(request)
            else:
                result = await self._transform_custom(request)
        except ImageGenerationError as e:
            transform_requests_total.labels(path=path, status=e.failure_type.value).inc()
            logger.warning(
                "transform_failed",
                extra={
                    "path": path,
                    "model": request.model_id,
                    "failure_type": e.failure_type.value,
                    "error": str(e),
                },
            )
            raise
        finally:
            transform_duration_seconds.labels(path=path).observe(time.monotonic() - started)

        transform_requests_total.labels(path=path, status="ok").inc()
        logger.info(
            "transform_succeeded",
            extra={"path": path, "adapter": result.adapter, "model": result.model},
        )
        return result

    async def transform_image(
        self,
        source_image: ImagePayload | str,
        prompt: str,
        provider_config: ProviderConfig | dict | None = None,
    ) -> ImagePayload:
        """Entry point for the UI's generate/regenerate actions."""
        if isinstance(source_image, str):
            source_image = ImagePayload.parse(source_image)
        if provider_config is None:
            provider_config = ProviderConfig.defaults(self.settings)
        elif isinstance(provider_config, dict):
            provider_config = ProviderConfig.model_validate(provider_config)
        request = GenerationRequest(
            source_image=source_image,
            prompt=prompt,
            provider_config=provider_config,
        )
        result = await self.transform(request)
        return result.image

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.settings.attempt_timeout_seconds) as client:
            yield client

    async def _inline_source(self, request: GenerationRequest) -> GenerationRequest:
        """Adapters send the source inline, so a URL source is downloaded first."""
        source = request.source_image
        if source.is_inline:
            return request
        try:
            async with self._http() as client:
                async with client.stream("GET", source.url, follow_redirects=True) as response:
                    if not response.is_success:
                        raise UpstreamError(
                            f"Source image download failed with status {response.status_code}",
                            detail={"http_status": response.status_code},
                        )
                    raw = await read_limited(response, self.settings.max_response_bytes)
                    content_type = response.headers.get("content-type", "")
        except httpx.HTTPError as e:
            raise UpstreamError(
                f"Source image download failed: {e}",
                detail={"failure_type": FailureType.TRANSPORT_ERROR.value},
            ) from e
        if not raw:
            raise UpstreamError("Source image download returned an empty body")

        mime = content_type.split(";", 1)[0].strip().lower()
        if not mime.startswith("image/"):
            mime = DEFAULT_SOURCE_MIME
        logger.info("source_image_inlined", extra={"model": request.model_id})
        return request.model_copy(update={"source_image": ImagePayload.from_bytes(raw, mime)})

    async def _transform_managed(self, request: GenerationRequest) -> GenerationResult:
        adapter = ManagedAdapter(
            request.provider_config,
            self.settings,
            credential=self._managed_credential,
            http_client=self._http_client,
        )
        try:
            attempt = await asyncio.wait_for(
                adapter.attempt(request), timeout=self.settings.attempt_timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise UpstreamError(
                f"Managed generation did not answer within {self.settings.attempt_timeout_seconds:.0f}s",
                detail={"adapter": adapter.name, "failure_type": FailureType.TRANSPORT_ERROR.value},
            ) from e
        return GenerationResult(
            image=attempt.image,
            adapter=adapter.name,
            model=request.model_id,
            raw_response_sanitized=sanitize_response_for_log(attempt.body),
        )

    async def _transform_custom(self, request: GenerationRequest) -> GenerationResult:
        family = classify_protocol_family(request.model_id, self.settings.native_model_marker)
        adapters = AdapterFactory.create_cascade(
            family,
            request.provider_config,
            self.settings,
            http_client=self._http_client,
        )
        cascade = CascadeController(adapters, attempt_timeout=self.settings.attempt_timeout_seconds)
        return await cascade.run(request)
