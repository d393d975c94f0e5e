"""Milvus backend (multitenant, via the extension API)."""

from __future__ import annotations

import logging
from typing import Any

from vecthare_backends.backends.multitenant import MultitenantPluginBackend
from vecthare_backends.config import VectorSettings
from vecthare_backends.errors import BackendUnavailable

logger = logging.getLogger(__name__)

DEFAULT_PORT = 19530
DIMENSION_PROBE_TEXT = "test"


class MilvusBackend(MultitenantPluginBackend):
    name = "milvus"
    label = "Milvus"

    async def detect_dimensions(self, settings: VectorSettings) -> int | None:
        """Embed a probe text and use its length. Never raises."""
        logger.info("Attempting to auto-detect embedding dimensions for %s", settings.source)
        try:
            embedding = await self._api.get_embedding(DIMENSION_PROBE_TEXT, settings)
        except (BackendUnavailable, ValueError, AttributeError) as exc:
            logger.warning("Failed to auto-detect dimensions: %s", exc)
            return None
        if not embedding:
            logger.warning("Failed to auto-detect dimensions for %s", settings.source)
            return None
        logger.info("Auto-detected dimension: %d", len(embedding))
        return len(embedding)

    async def _init_config(self, settings: VectorSettings) -> dict[str, Any] | None:
        dimensions = settings.milvus_dimensions
        if not dimensions:
            dimensions = await self.detect_dimensions(settings)

        port = settings.milvus_port or DEFAULT_PORT
        if settings.milvus_address:
            address = settings.milvus_address
        elif settings.milvus_host:
            address = f"{settings.milvus_host}:{port}"
        else:
            address = f"localhost:{DEFAULT_PORT}"

        return {
            "host": settings.milvus_host or "localhost",
            "port": port,
            "address": address,
            "username": settings.milvus_username,
            "password": settings.milvus_password,
            "token": settings.milvus_token,
            "dimensions": dimensions,
        }
