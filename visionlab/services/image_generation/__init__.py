"""
Image transformation client with protocol fallback across custom endpoints.
"""
from .base import (
    AdapterAttempt,
    CredentialRequiredError,
    ExhaustedFallbackError,
    GenerationRequest,
    GenerationResult,
    ImageGenerationError,
    ImagePayload,
    ImageTransformAdapter,
    NoImageInResponseError,
    RouteNotImplementedError,
    UpstreamError,
    sanitize_response_for_log,
)
from .cascade import CascadeController, CascadeState
from .client import GenerationClient
from .extractor import EXTRACTION_RULES, extract_image
from .factory import AdapterFactory, ProtocolFamily, classify_protocol_family
from .failure_types import FailureType, classify_failure

__all__ = [
    "AdapterAttempt",
    "CredentialRequiredError",
    "ExhaustedFallbackError",
    "GenerationRequest",
    "GenerationResult",
    "ImageGenerationError",
    "ImagePayload",
    "ImageTransformAdapter",
    "NoImageInResponseError",
    "RouteNotImplementedError",
    "UpstreamError",
    "sanitize_response_for_log",
    "CascadeController",
    "CascadeState",
    "GenerationClient",
    "EXTRACTION_RULES",
    "extract_image",
    "AdapterFactory",
    "ProtocolFamily",
    "classify_protocol_family",
    "FailureType",
    "classify_failure",
]
