"""Vector backend factory."""

from __future__ import annotations

from vecthare_backends.backends.base import VectorBackend
from vecthare_backends.backends.lancedb import LanceDBBackend
from vecthare_backends.backends.milvus import MilvusBackend
from vecthare_backends.backends.qdrant import QdrantBackend
from vecthare_backends.backends.standard import StandardBackend
from vecthare_backends.config import Settings
from vecthare_backends.telemetry import TelemetryRuntime
from vecthare_backends.transport import BackendHttpClient

BACKENDS: dict[str, type] = {
    "standard": StandardBackend,
    "lancedb": LanceDBBackend,
    "qdrant": QdrantBackend,
    "milvus": MilvusBackend,
}


def create_vector_backend(
    settings: Settings,
    *,
    http: BackendHttpClient | None = None,
    telemetry: TelemetryRuntime | None = None,
) -> VectorBackend:
    """Build the configured vector backend."""
    backend_cls = BACKENDS.get(settings.backend)
    if backend_cls is None:
        raise ValueError(f"Unknown vector backend '{settings.backend}'.")

    if http is None:
        http = BackendHttpClient.from_config(settings.host, telemetry)
    return backend_cls(http)
