"""
Application configuration.
All settings are loaded from environment variables (or a local .env file).
Use env.example as a reference for available variables.
"""
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The managed credential is the ambient secret of the execution environment;
    it is read once here and injected into GenerationClient, never read ad hoc.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"

    # ===========================================
    # LOGGING
    # ===========================================
    log_level: str = "INFO"
    log_file: str = ""  # Empty = stderr only
    log_max_bytes: int = 10 * 1024 * 1024
    log_backup_count: int = 5

    # ===========================================
    # MANAGED PROVIDER (implicit credential path)
    # ===========================================
    managed_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("MANAGED_API_KEY", "GEMINI_API_KEY", "API_KEY"),
    )
    managed_api_endpoint: str = "https://generativelanguage.googleapis.com/v1beta"
    # Output resolution tier sent only for high-tier (pro) models
    managed_image_size_tier: str = "1K"

    # ===========================================
    # CUSTOM PROVIDER DEFAULTS (settings dialog initial state)
    # ===========================================
    default_base_url: str = "https://api.tu-zi.com/v1/"
    default_model: str = "gemini-2.5-flash-image"
    # Case-insensitive substring marking a model id as native-multimodal compatible
    native_model_marker: str = "gemini"

    # ===========================================
    # IMAGE GENERATION - COMMON SETTINGS
    # ===========================================
    image_size: str = "1024x1024"
    default_style_prompt: str = "make it artistic"
    transform_directive: str = (
        "Based on this photo, create a new artistic image following this prompt:"
    )
    transform_suffix: str = (
        "Maintain the general composition and subject but transform the style "
        "and details as requested."
    )
    # Upper bound for one adapter attempt (request + body download)
    attempt_timeout_seconds: float = 120.0
    max_response_bytes: int = 32 * 1024 * 1024

    @field_validator("managed_api_endpoint")
    @classmethod
    def strip_endpoint_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @field_validator("native_model_marker")
    @classmethod
    def lower_marker(cls, v: str) -> str:
        return v.strip().lower()


settings = Settings()
