"""Shared routing for stores that hold every tenant in one collection.

Logical collection ids are decoded into a ``(type, sourceId)`` tenant and sent
as a payload filter against the shared ``vecthare_main`` collection. Isolation
is entirely the server's filter semantics.
"""

from __future__ import annotations

import logging

from vecthare_backends.backends.plugin_api import CollectionScope, UnifiedPluginBackend
from vecthare_backends.collection_ids import decode_collection_id
from vecthare_backends.config import VectorSettings

logger = logging.getLogger(__name__)

SHARED_COLLECTION = "vecthare_main"


class MultitenantPluginBackend(UnifiedPluginBackend):
    """Base for Qdrant and Milvus."""

    def _scope(self, collection_id: str) -> CollectionScope:
        return CollectionScope(
            collection_id=collection_id,
            physical_id=SHARED_COLLECTION,
            tenant=decode_collection_id(collection_id),
        )

    async def purge_all_vector_indexes(self, settings: VectorSettings) -> None:
        # No filter: deletes every tenant in the shared collection.
        logger.warning("%s: purging all tenants from %s", self.label, SHARED_COLLECTION)
        await self._api.purge(CollectionScope.passthrough(SHARED_COLLECTION), settings)
