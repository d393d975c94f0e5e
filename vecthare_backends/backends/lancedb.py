"""LanceDB backend: one physical collection per logical collection."""

from __future__ import annotations

import logging

from vecthare_backends.backends.plugin_api import UnifiedPluginBackend, to_discovered
from vecthare_backends.config import VectorSettings
from vecthare_backends.errors import VectorBackendError
from vecthare_backends.models import DiscoveredCollection
from vecthare_backends.providers import is_valid_provider

logger = logging.getLogger(__name__)


class LanceDBBackend(UnifiedPluginBackend):
    """Disk-based store reached through the extension API."""

    name = "lancedb"
    label = "LanceDB"

    async def purge_all_vector_indexes(self, settings: VectorSettings) -> None:
        # No global purge primitive; purge every collection the server knows about.
        for entry in await self._api.collections():
            collection_id = str(entry["id"])
            source = entry.get("source")
            scoped = settings.with_source(source) if source and is_valid_provider(source) else settings
            try:
                await self.purge_vector_index(collection_id, scoped)
            except VectorBackendError:
                logger.exception("Failed to purge %s", collection_id)

    async def discover_collections(self, settings: VectorSettings) -> list[DiscoveredCollection] | None:
        entries = await self._api.collections()
        return [
            to_discovered(entry, self.name)
            for entry in entries
            if (entry.get("backend") or self.name) == self.name
        ]
