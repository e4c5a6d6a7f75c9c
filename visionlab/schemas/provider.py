"""
Provider settings as handed over by the settings dialog collaborator.
Keys arrive in camelCase ({useCustomProvider, apiKey, baseUrl, selectedModel}).
"""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from visionlab.core.config import Settings


class ModelType(str, Enum):
    """Model identifiers offered by the settings dialog."""

    FLASH = "gemini-2.5-flash-image"
    PRO = "gemini-3-pro-image-preview"


class ProviderConfig(BaseModel):
    """Read-only provider configuration for one transform call."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    use_custom_provider: bool = Field(False, alias="useCustomProvider")
    api_key: str = Field("", alias="apiKey")
    base_url: str = Field("", alias="baseUrl")
    selected_model: str = Field(ModelType.FLASH.value, alias="selectedModel")

    @field_validator("api_key", mode="before")
    @classmethod
    def strip_key(cls, v: str | None) -> str:
        return (v or "").strip()

    @field_validator("selected_model", mode="before")
    @classmethod
    def default_model(cls, v: str | None) -> str:
        return (v or "").strip() or ModelType.FLASH.value

    @field_validator("base_url", mode="before")
    @classmethod
    def normalize_base_url(cls, v: str | None) -> str:
        # Sub-paths are appended with a leading "/"
        return (v or "").strip().rstrip("/")

    @property
    def is_custom_ready(self) -> bool:
        """Custom mode is only honoured with both credential and endpoint present."""
        return self.use_custom_provider and bool(self.api_key) and bool(self.base_url)

    @classmethod
    def defaults(cls, settings: Settings) -> "ProviderConfig":
        """Initial state of the settings dialog before the user saved anything."""
        return cls(
            use_custom_provider=False,
            api_key="",
            base_url=settings.default_base_url,
            selected_model=settings.default_model,
        )
