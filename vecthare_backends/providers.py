"""Embedding provider registry and per-provider request fields."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vecthare_backends.config import VectorSettings


BANANABREAD_DEFAULT_URL = "http://localhost:8008"

# Request field names that differ from the attribute names.
WIRE_NAMES = {
    "extras_url": "extrasUrl",
    "extras_key": "extrasKey",
    "api_url": "apiUrl",
    "api_key": "apiKey",
}


@dataclass(frozen=True, slots=True)
class ProviderInfo:
    """Static description of one embedding provider."""

    name: str
    local: bool
    model_field: str | None = None
    requires_api_key: bool = False
    requires_url: bool = False
    default_url: str | None = None
    deprecated: bool = False


EMBEDDING_PROVIDERS: dict[str, ProviderInfo] = {
    # Local
    "transformers": ProviderInfo(name="Local (Transformers)", local=True),
    "webllm": ProviderInfo(name="WebLLM Extension", local=True, model_field="webllm_model"),
    # Local servers
    "bananabread": ProviderInfo(
        name="BananaBread",
        local=True,
        requires_api_key=True,
        requires_url=True,
        default_url=BANANABREAD_DEFAULT_URL,
    ),
    "ollama": ProviderInfo(name="Ollama", local=True, model_field="ollama_model", requires_url=True),
    "llamacpp": ProviderInfo(name="llama.cpp", local=True, requires_url=True),
    "koboldcpp": ProviderInfo(name="KoboldCpp", local=True, requires_url=True),
    "vllm": ProviderInfo(name="vLLM", local=True, model_field="vllm_model", requires_url=True),
    # Cloud
    "openai": ProviderInfo(name="OpenAI", local=False, model_field="openai_model", requires_api_key=True),
    "cohere": ProviderInfo(name="Cohere", local=False, model_field="cohere_model", requires_api_key=True),
    "togetherai": ProviderInfo(
        name="TogetherAI", local=False, model_field="togetherai_model", requires_api_key=True
    ),
    "openrouter": ProviderInfo(
        name="OpenRouter", local=False, model_field="openrouter_model", requires_api_key=True
    ),
    "mistral": ProviderInfo(name="MistralAI", local=False, model_field="mistral_model", requires_api_key=True),
    "nomicai": ProviderInfo(name="NomicAI", local=False, requires_api_key=True),
    "palm": ProviderInfo(name="Google AI Studio", local=False, model_field="google_model", requires_api_key=True),
    "vertexai": ProviderInfo(
        name="Google Vertex AI", local=False, model_field="google_model", requires_api_key=True
    ),
    "electronhub": ProviderInfo(
        name="Electron Hub", local=False, model_field="electronhub_model", requires_api_key=True
    ),
    "extras": ProviderInfo(name="Extras (deprecated)", local=False, requires_url=True, deprecated=True),
}


def valid_provider_ids() -> list[str]:
    return list(EMBEDDING_PROVIDERS)


def is_valid_provider(provider_id: str) -> bool:
    return provider_id in EMBEDDING_PROVIDERS


def get_provider(provider_id: str) -> ProviderInfo | None:
    return EMBEDDING_PROVIDERS.get(provider_id)


def get_model_field(provider_id: str) -> str | None:
    """Name of the settings field holding the model for a provider."""
    provider = EMBEDDING_PROVIDERS.get(provider_id)
    return provider.model_field if provider is not None else None


def cloud_providers() -> list[str]:
    """Providers that need an API key."""
    return [key for key, info in EMBEDDING_PROVIDERS.items() if info.requires_api_key]


def url_providers() -> list[str]:
    """Providers that need a server URL."""
    return [key for key, info in EMBEDDING_PROVIDERS.items() if info.requires_url]


@dataclass(frozen=True, slots=True)
class ProviderParams:
    """Optional provider-specific fields layered onto insert/query requests."""

    extras_url: str | None = None
    extras_key: str | None = None
    input_type: str | None = None
    api_url: str | None = None
    api_key: str | None = None
    keep: bool | None = None
    api: str | None = None
    vertexai_auth_mode: str | None = None
    vertexai_region: str | None = None
    vertexai_express_project_id: str | None = None

    def as_request_fields(self) -> dict[str, object]:
        """Wire fields, omitting the ones that were never set."""
        return {
            WIRE_NAMES.get(key, key): value for key, value in asdict(self).items() if value is not None
        }


def _server_url(settings: VectorSettings, provider_id: str, default: str | None = None) -> str | None:
    if settings.use_alt_endpoint:
        return settings.alt_endpoint_url
    return settings.textgen_server_urls.get(provider_id, default)


def resolve_provider_params(settings: VectorSettings, is_query: bool = False) -> ProviderParams:
    """Map the active provider to the extra fields its requests need."""
    source = settings.source

    if source == "extras":
        return ProviderParams(extras_url=settings.extras_url, extras_key=settings.extras_key)

    if source == "cohere":
        return ProviderParams(input_type="search_query" if is_query else "search_document")

    if source == "ollama":
        return ProviderParams(api_url=_server_url(settings, "ollama"), keep=bool(settings.ollama_keep))

    if source in ("llamacpp", "vllm"):
        return ProviderParams(api_url=_server_url(settings, source))

    if source == "bananabread":
        if settings.use_alt_endpoint:
            api_url = settings.alt_endpoint_url
        else:
            api_url = BANANABREAD_DEFAULT_URL
        return ProviderParams(api_url=api_url, api_key=settings.bananabread_api_key or None)

    if source == "palm":
        return ProviderParams(api="makersuite")

    if source == "vertexai":
        return ProviderParams(
            api="vertexai",
            vertexai_auth_mode=settings.vertexai_auth_mode,
            vertexai_region=settings.vertexai_region,
            vertexai_express_project_id=settings.vertexai_express_project_id,
        )

    return ProviderParams()
