"""Runtime settings for vecthare-backends."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from vecthare_backends.providers import get_model_field, is_valid_provider, valid_provider_ids


BackendName = Literal["standard", "lancedb", "qdrant", "milvus"]


class HostConfig(BaseModel):
    """Host application connection settings."""

    base_url: str = Field(default="http://127.0.0.1:8000")
    timeout_seconds: float = Field(default=30.0, gt=0.0, le=600.0)
    headers: dict[str, str] = Field(default_factory=dict)


class TelemetryConfig(BaseModel):
    """OpenTelemetry configuration."""

    enabled: bool = Field(default=False)
    otlp_endpoint: str = Field(default="http://127.0.0.1:4318")
    otlp_timeout_seconds: float = Field(default=10.0, gt=0.0, le=120.0)
    metrics_export_interval_ms: int = Field(default=5000, ge=250, le=60000)
    sample_ratio: float = Field(default=1.0, ge=0.0, le=1.0)
    otlp_headers: dict[str, str] = Field(default_factory=dict)


class Settings(BaseSettings):
    """Service settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="VECTHARE_",
        env_nested_delimiter="__",
    )

    service_name: str = Field(default="vecthare-backends")
    service_version: str = Field(default="0.1.0")

    backend: BackendName = Field(default="standard")
    host: HostConfig = Field(default_factory=HostConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)


class VectorSettings(BaseModel):
    """Per-call vector settings supplied by the caller.

    Connection fields for Qdrant and Milvus are only read by ``initialize``.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    source: str = Field(default="transformers")
    score_threshold: float = Field(default=0.0)

    webllm_model: str = ""
    ollama_model: str = ""
    vllm_model: str = ""
    openai_model: str = ""
    cohere_model: str = ""
    togetherai_model: str = ""
    openrouter_model: str = ""
    mistral_model: str = ""
    google_model: str = ""
    electronhub_model: str = ""

    use_alt_endpoint: bool = False
    alt_endpoint_url: str = ""
    ollama_keep: bool = False
    textgen_server_urls: dict[str, str] = Field(default_factory=dict)
    extras_url: str | None = None
    extras_key: str | None = None
    bananabread_api_key: str | None = None
    vertexai_auth_mode: str | None = None
    vertexai_region: str | None = None
    vertexai_express_project_id: str | None = None

    qdrant_host: str = "localhost"
    qdrant_port: int = 6333
    qdrant_url: str | None = None
    qdrant_api_key: str | None = None

    milvus_host: str | None = None
    milvus_port: int | None = None
    milvus_address: str | None = None
    milvus_username: str | None = None
    milvus_password: str | None = None
    milvus_token: str | None = None
    milvus_dimensions: int | None = Field(default=None, ge=1)

    @field_validator("source")
    @classmethod
    def _known_source(cls, value: str) -> str:
        if not is_valid_provider(value):
            raise ValueError(
                f"Unknown embedding provider '{value}'. "
                f"Expected one of: {', '.join(valid_provider_ids())}."
            )
        return value

    @field_validator("milvus_dimensions", mode="before")
    @classmethod
    def _blank_dimensions(cls, value: object) -> object:
        if value in ("", 0, "0"):
            return None
        return value

    def model_value(self) -> str:
        """Model identifier configured for the active provider."""
        field_name = get_model_field(self.source)
        if field_name is None:
            return ""
        return getattr(self, field_name) or ""

    def with_source(self, source: str) -> VectorSettings:
        """Copy of these settings targeting another provider."""
        return VectorSettings.model_validate({**self.model_dump(), "source": source})


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings cache (test helper)."""
    global _settings
    _settings = None
