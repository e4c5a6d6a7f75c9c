"""
Factory for protocol adapters and the protocol-family heuristic.
"""
import logging
from enum import Enum

import httpx

from visionlab.core.config import Settings
from visionlab.schemas.provider import ProviderConfig
from visionlab.services.image_generation.base import ImageTransformAdapter
from visionlab.services.image_generation.providers.chat_completion import ChatCompletionAdapter
from visionlab.services.image_generation.providers.image_endpoint import ImageEndpointAdapter
from visionlab.services.image_generation.providers.native_multimodal import NativeMultimodalAdapter

logger = logging.getLogger(__name__)


class ProtocolFamily(str, Enum):
    NATIVE_MULTIMODAL = "native_multimodal"
    OPENAI_COMPATIBLE = "openai_compatible"


def classify_protocol_family(model_id: str | None, marker: str = "gemini") -> ProtocolFamily:
    """
    Best-effort family guess from the model identifier (case-insensitive substring).
    Only picks the first adapter; the cascade may still fall through to the others.
    """
    value = (model_id or "").strip().lower()
    marker = (marker or "").strip().lower()
    if marker and marker in value:
        return ProtocolFamily.NATIVE_MULTIMODAL
    return ProtocolFamily.OPENAI_COMPATIBLE


class AdapterFactory:
    """Factory for creating protocol adapters."""

    # Adapter registry, in cascade order
    ADAPTERS: dict[str, type[ImageTransformAdapter]] = {
        NativeMultimodalAdapter.name: NativeMultimodalAdapter,
        ImageEndpointAdapter.name: ImageEndpointAdapter,
        ChatCompletionAdapter.name: ChatCompletionAdapter,
    }

    # Adapter sequence per family; the native state is skipped for non-native endpoints
    CASCADE_PLANS: dict[ProtocolFamily, tuple[str, ...]] = {
        ProtocolFamily.NATIVE_MULTIMODAL: (
            NativeMultimodalAdapter.name,
            ImageEndpointAdapter.name,
            ChatCompletionAdapter.name,
        ),
        ProtocolFamily.OPENAI_COMPATIBLE: (
            ImageEndpointAdapter.name,
            ChatCompletionAdapter.name,
        ),
    }

    @classmethod
    def create(
        cls,
        adapter_name: str,
        config: ProviderConfig,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> ImageTransformAdapter:
        """
        Create adapter instance by name.

        Raises:
            ValueError: If adapter name is unknown
        """
        adapter_class = cls.ADAPTERS.get(adapter_name.lower())

        if not adapter_class:
            available = ", ".join(cls.get_available_adapters())
            raise ValueError(
                f"Unknown adapter: {adapter_name}. "
                f"Available adapters: {available}"
            )

        return adapter_class(config, settings, http_client=http_client)

    @classmethod
    def create_cascade(
        cls,
        family: ProtocolFamily,
        config: ProviderConfig,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> list[ImageTransformAdapter]:
        """Adapters for one request, in the order the cascade tries them."""
        names = cls.CASCADE_PLANS[family]
        logger.info("cascade_planned", extra={"state": family.value, "adapter": ",".join(names)})
        return [cls.create(name, config, settings, http_client=http_client) for name in names]

    @classmethod
    def get_available_adapters(cls) -> list[str]:
        return list(cls.ADAPTERS.keys())
