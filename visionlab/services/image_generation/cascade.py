"""
Fallback cascade: tries protocol adapters one after another until one yields an image.

States: START -> TRY_NATIVE_MULTIMODAL -> TRY_IMAGE_ENDPOINT -> TRY_CHAT_COMPLETION
        -> SUCCEEDED | EXHAUSTED
Each adapter runs at most once per request; attempts are awaited sequentially so an
early match short-circuits the rest. Adapter errors propagate unchanged.
"""
import asyncio
import logging
import time
from enum import Enum
from typing import Any, Sequence

from visionlab.services.image_generation.base import (
    AdapterAttempt,
    ExhaustedFallbackError,
    GenerationRequest,
    GenerationResult,
    ImageGenerationError,
    ImageTransformAdapter,
    RouteNotImplementedError,
    UpstreamError,
    sanitize_response_for_log,
)
from visionlab.services.image_generation.failure_types import FailureType
from visionlab.utils.metrics import adapter_attempts_total

logger = logging.getLogger(__name__)

EXHAUSTED_MESSAGE = (
    "The provider answered without an image. Try a more descriptive prompt "
    "(for example: 'turn this photo into a watercolor painting')."
)


class CascadeState(str, Enum):
    START = "start"
    TRY_NATIVE_MULTIMODAL = "try_native_multimodal"
    TRY_IMAGE_ENDPOINT = "try_image_endpoint"
    TRY_CHAT_COMPLETION = "try_chat_completion"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


ADAPTER_STATES: dict[str, CascadeState] = {
    "native_multimodal": CascadeState.TRY_NATIVE_MULTIMODAL,
    "image_endpoint": CascadeState.TRY_IMAGE_ENDPOINT,
    "chat_completion": CascadeState.TRY_CHAT_COMPLETION,
}

# Keys for structured logging
LOG_KEYS = (
    "adapter",
    "model",
    "status_code",
    "found",
    "route_missing",
    "attempt_number",
    "latency_ms",
    "failure_type",
)


class CascadeController:
    """Runs one request through an ordered adapter plan."""

    def __init__(
        self,
        adapters: Sequence[ImageTransformAdapter],
        attempt_timeout: float | None = None,
    ) -> None:
        if not adapters:
            raise ValueError("Cascade needs at least one adapter")
        self.adapters = list(adapters)
        self.attempt_timeout = attempt_timeout
        self.state = CascadeState.START
        self.attempts: list[AdapterAttempt] = []

    def _transition(self, new_state: CascadeState) -> None:
        logger.info(
            "cascade_transition",
            extra={"old_state": self.state.value, "new_state": new_state.value},
        )
        self.state = new_state

    async def _run_attempt(self, adapter: ImageTransformAdapter, request: GenerationRequest) -> AdapterAttempt:
        if self.attempt_timeout is None:
            return await adapter.attempt(request)
        try:
            return await asyncio.wait_for(adapter.attempt(request), timeout=self.attempt_timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamError(
                f"{adapter.name} did not answer within {self.attempt_timeout:.0f}s",
                detail={"adapter": adapter.name, "failure_type": FailureType.TRANSPORT_ERROR.value},
            ) from e

    async def run(self, request: GenerationRequest) -> GenerationResult:
        """
        Try adapters in plan order. First recognized image wins (SUCCEEDED);
        NotFound or a missing route moves on; after the last adapter -> ExhaustedFallbackError.
        """
        for number, adapter in enumerate(self.adapters, start=1):
            state = ADAPTER_STATES.get(adapter.name)
            if state is not None:
                self._transition(state)
            started = time.monotonic()
            try:
                attempt = await self._run_attempt(adapter, request)
            except RouteNotImplementedError as e:
                # Recovered locally: the endpoint lacks this protocol's route
                attempt = AdapterAttempt(adapter.name, e.detail.get("http_status"), None, route_missing=True)
            except ImageGenerationError as e:
                adapter_attempts_total.labels(adapter=adapter.name, outcome="error").inc()
                _log_structured(
                    adapter=adapter.name,
                    model=request.model_id,
                    status_code=e.detail.get("http_status"),
                    attempt_number=number,
                    latency_ms=_elapsed_ms(started),
                    failure_type=e.detail.get("failure_type"),
                )
                raise

            self.attempts.append(attempt)
            outcome = "found" if attempt.found else "route_missing" if attempt.route_missing else "not_found"
            adapter_attempts_total.labels(adapter=adapter.name, outcome=outcome).inc()
            _log_structured(
                adapter=adapter.name,
                model=request.model_id,
                status_code=attempt.status_code,
                found=attempt.found,
                route_missing=attempt.route_missing,
                attempt_number=number,
                latency_ms=_elapsed_ms(started),
            )

            if attempt.found:
                self._transition(CascadeState.SUCCEEDED)
                return GenerationResult(
                    image=attempt.image,
                    adapter=adapter.name,
                    model=request.model_id,
                    raw_response_sanitized=sanitize_response_for_log(attempt.body),
                )

        self._transition(CascadeState.EXHAUSTED)
        raise ExhaustedFallbackError(
            EXHAUSTED_MESSAGE,
            detail={
                "adapters": [a.adapter for a in self.attempts],
                "statuses": [a.status_code for a in self.attempts],
            },
        )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _log_structured(**kwargs: Any) -> None:
    """Emit one structured log line per adapter attempt."""
    extra = {k: v for k, v in kwargs.items() if k in LOG_KEYS and v is not None}
    logger.info("image_generation_attempt", extra=extra)
