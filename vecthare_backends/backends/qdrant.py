"""Qdrant backend (multitenant, via the extension API)."""

from __future__ import annotations

from typing import Any

from vecthare_backends.backends.multitenant import MultitenantPluginBackend
from vecthare_backends.config import VectorSettings


class QdrantBackend(MultitenantPluginBackend):
    name = "qdrant"
    label = "Qdrant"

    async def _init_config(self, settings: VectorSettings) -> dict[str, Any] | None:
        return {
            "host": settings.qdrant_host or "localhost",
            "port": settings.qdrant_port or 6333,
            "url": settings.qdrant_url,
            "apiKey": settings.qdrant_api_key,
        }
