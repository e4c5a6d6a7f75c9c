"""
Base classes and types for image transformation adapters.
Used by the extractor, the cascade and every protocol adapter.
"""
import base64
import binascii
import json
import re
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator

import httpx
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from visionlab.core.config import Settings
from visionlab.schemas.provider import ProviderConfig
from visionlab.services.image_generation.failure_types import FailureType

DEFAULT_SOURCE_MIME = "image/jpeg"
DEFAULT_RESULT_MIME = "image/png"

DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)


class ImagePayload(BaseModel):
    """An image: inline base64 data with a MIME type, or a remote URL. Exactly one."""

    model_config = ConfigDict(frozen=True)

    mime_type: str | None = None
    data: str | None = None
    url: str | None = None

    @model_validator(mode="after")
    def check_exactly_one(self) -> "ImagePayload":
        has_data = bool(self.data)
        has_url = bool(self.url)
        if has_data == has_url:
            raise ValueError("ImagePayload needs exactly one of inline data or url")
        if has_data and not self.mime_type:
            raise ValueError("Inline ImagePayload needs a mime_type")
        return self

    @classmethod
    def from_data_uri(cls, value: str) -> "ImagePayload":
        match = DATA_URI_RE.match(value.strip())
        if not match:
            raise ValueError("Not a base64 data URI")
        return cls(mime_type=match.group("mime"), data=match.group("data"))

    @classmethod
    def from_bytes(cls, raw: bytes, mime_type: str = DEFAULT_SOURCE_MIME) -> "ImagePayload":
        return cls(mime_type=mime_type, data=base64.standard_b64encode(raw).decode("ascii"))

    @classmethod
    def from_url(cls, url: str) -> "ImagePayload":
        return cls(url=url.strip())

    @classmethod
    def parse(cls, value: str) -> "ImagePayload":
        """Accept a data URI, an http(s) URL, or bare base64 (treated as JPEG)."""
        value = (value or "").strip()
        if not value:
            raise ValueError("Empty image value")
        if value.startswith("data:"):
            if ";base64," in value:
                return cls.from_data_uri(value)
            # Header without the base64 marker: keep everything after the comma
            return cls(mime_type=DEFAULT_SOURCE_MIME, data=value.split(",", 1)[-1])
        if value.lower().startswith(("http://", "https://")):
            return cls.from_url(value)
        return cls(mime_type=DEFAULT_SOURCE_MIME, data=value)

    @property
    def is_inline(self) -> bool:
        return bool(self.data)

    def to_data_uri(self) -> str:
        if not self.is_inline:
            raise ValueError("URL payload has no inline data")
        return f"data:{self.mime_type};base64,{self.data}"

    def decode(self) -> bytes:
        if not self.is_inline:
            raise ValueError("URL payload has no inline data")
        try:
            return base64.b64decode(self.data, validate=False)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 image data: {e}") from e

    def as_source(self) -> str:
        """String form for the UI: data URI for inline payloads, URL otherwise."""
        return self.to_data_uri() if self.is_inline else self.url


class GenerationRequest(BaseModel):
    """One transform request; immutable, one pass through the cascade."""

    model_config = ConfigDict(frozen=True)

    source_image: ImagePayload
    # Empty means the configured default style (see compose_instruction)
    prompt: str = ""
    target_model_id: str = ""
    provider_config: ProviderConfig = ProviderConfig()

    @field_validator("prompt", mode="before")
    @classmethod
    def strip_prompt(cls, v: str | None) -> str:
        return (v or "").strip()

    @property
    def model_id(self) -> str:
        """Explicit target model, else the model chosen in provider settings."""
        return self.target_model_id.strip() or self.provider_config.selected_model

    @property
    def inline_source_data(self) -> str:
        """Base64 body of the source image; adapters always send it inline."""
        if not self.source_image.is_inline:
            raise ValueError("Source image must be inline-encoded")
        return self.source_image.data


@dataclass(frozen=True)
class GenerationResult:
    """Resolved transformed image and where it came from."""
    image: ImagePayload
    adapter: str
    model: str
    raw_response_sanitized: dict[str, Any] | None = None


@dataclass
class AdapterAttempt:
    """Outcome of one adapter call; lives only inside the cascade."""
    adapter: str
    status_code: int | None
    body: Any
    image: ImagePayload | None = None
    route_missing: bool = False

    @property
    def found(self) -> bool:
        return self.image is not None


class ImageGenerationError(Exception):
    """Raised when generation fails; detail holds upstream fields for logging."""

    failure_type: FailureType = FailureType.UPSTREAM_ERROR

    def __init__(self, message: str, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.detail = detail or {}
        self.detail.setdefault("failure_type", self.failure_type.value)


class RouteNotImplementedError(ImageGenerationError):
    failure_type = FailureType.ROUTE_NOT_IMPLEMENTED


class NoImageInResponseError(ImageGenerationError):
    failure_type = FailureType.NO_IMAGE_IN_RESPONSE


class UpstreamError(ImageGenerationError):
    failure_type = FailureType.UPSTREAM_ERROR


class CredentialRequiredError(ImageGenerationError):
    """Managed credential is not tied to a billable/authorized project."""
    failure_type = FailureType.CREDENTIAL_REQUIRED


class ExhaustedFallbackError(ImageGenerationError):
    failure_type = FailureType.EXHAUSTED_FALLBACK


def build_error_detail(result: Any) -> dict[str, Any]:
    """
    Extract error-related fields from a raw upstream response for logging.
    Normalized keys: error_message, error_status, block_reason, finish_reason, finish_message.
    """
    detail: dict[str, Any] = {}
    if not isinstance(result, dict):
        return detail
    error = result.get("error")
    if isinstance(error, dict):
        if error.get("message"):
            detail["error_message"] = error["message"]
        if error.get("status") or error.get("code"):
            detail["error_status"] = error.get("status") or error.get("code")
    elif isinstance(error, str) and error:
        detail["error_message"] = error
    prompt_feedback = result.get("promptFeedback") or {}
    if isinstance(prompt_feedback, dict) and prompt_feedback.get("blockReason"):
        detail["block_reason"] = prompt_feedback["blockReason"]
    candidates = result.get("candidates") or []
    if isinstance(candidates, list) and candidates and isinstance(candidates[0], dict):
        c0 = candidates[0]
        if "finishReason" in c0:
            detail["finish_reason"] = c0["finishReason"]
        if "finishMessage" in c0:
            detail["finish_message"] = c0["finishMessage"]
    return detail


def _sanitize_value(value: Any) -> Any:
    """Recursively replace base64 data with placeholder."""
    if value is None:
        return None
    if isinstance(value, dict):
        if "data" in value and ("mimeType" in value or "mime_type" in value):
            return {"mimeType": value.get("mimeType") or value.get("mime_type"), "data": "[REDACTED]"}
        return {
            k: "[REDACTED]" if k == "b64_json" else _sanitize_value(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [_sanitize_value(v) for v in value]
    if isinstance(value, str) and "base64," in value:
        return re.sub(r"(data:image/[\w.+-]+;base64,)[^\s\"')]+", r"\1[REDACTED]", value)
    return value


def sanitize_response_for_log(result: Any) -> dict[str, Any]:
    """Return a copy of an upstream response safe for logging (no base64 image data)."""
    if not result:
        return {}
    if isinstance(result, str):
        return {"text": _sanitize_value(result)[:2000]}
    out = _sanitize_value(result)
    return out if isinstance(out, dict) else {"value": out}


def compose_instruction(prompt: str, settings: Settings) -> str:
    """Fixed transformation directive followed by the user prompt (or the default style)."""
    prompt = (prompt or "").strip() or settings.default_style_prompt
    return f"{settings.transform_directive} {prompt}. {settings.transform_suffix}"


def _too_large(response: httpx.Response, size: int, max_bytes: int) -> UpstreamError:
    return UpstreamError(
        f"Upstream response too large ({size} bytes)",
        detail={"http_status": response.status_code, "max_response_bytes": max_bytes},
    )


def check_declared_size(response: httpx.Response, max_bytes: int) -> None:
    """Reject on the Content-Length header before any of the body is read."""
    declared = response.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > max_bytes:
        raise _too_large(response, int(declared), max_bytes)


async def read_limited(response: httpx.Response, max_bytes: int) -> bytes:
    """Read a streamed response, stopping as soon as the size bound is passed."""
    check_declared_size(response, max_bytes)
    raw = bytearray()
    async for chunk in response.aiter_bytes():
        raw.extend(chunk)
        if len(raw) > max_bytes:
            raise _too_large(response, len(raw), max_bytes)
    return bytes(raw)


def decode_body(raw: bytes, encoding: str | None = None) -> Any:
    """JSON when the body parses, else text."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw.decode(encoding or "utf-8", errors="replace")


async def read_streamed_body(response: httpx.Response, max_bytes: int) -> Any:
    return decode_body(await read_limited(response, max_bytes), response.charset_encoding)


def read_body(response: httpx.Response, max_bytes: int) -> Any:
    """
    Decode an already-buffered response (openai SDK raw responses) as JSON or text.
    The SDK reads the body itself, so only the declared and actual sizes can be checked.
    """
    check_declared_size(response, max_bytes)
    if len(response.content) > max_bytes:
        raise _too_large(response, len(response.content), max_bytes)
    return decode_body(response.content, response.charset_encoding)


class ImageTransformAdapter(ABC):
    """Base class for protocol adapters: one request shape, tolerant response parsing."""

    name: str = "base"

    def __init__(
        self,
        config: ProviderConfig,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self.settings = settings
        self._http_client = http_client
        self.base_url = config.base_url
        self.timeout = float(settings.attempt_timeout_seconds)

    @asynccontextmanager
    async def http(self) -> AsyncIterator[httpx.AsyncClient]:
        """Yield the injected client, or a fresh one closed after the attempt."""
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    @abstractmethod
    async def attempt(self, request: GenerationRequest) -> AdapterAttempt:
        """
        Send the request in this adapter's protocol and scan the response.
        Returns an attempt with image=None when nothing was recognized;
        raises ImageGenerationError only on transport errors or explicit error envelopes.
        """
        pass
