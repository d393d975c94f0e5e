"""Standard backend: host-native vector store plus optional extension features.

Core reads, writes and queries always go to the native ``/api/vector`` surface.
When the extension answers its health probe at ``initialize`` time the
adapter also offers chunk listing, single-chunk reads, editing, statistics
and discovery through it; otherwise those degrade as documented per method.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence
from typing import Any

from vecthare_backends.backends.base import CapabilityProbe
from vecthare_backends.backends.plugin_api import CollectionScope, PluginApi, to_discovered
from vecthare_backends.config import VectorSettings
from vecthare_backends.errors import (
    BackendUnavailable,
    CapabilityUnavailable,
    PartialQueryFailure,
    RemoteOperationFailed,
    VectorBackendError,
)
from vecthare_backends.models import (
    ChunkHash,
    ChunkPage,
    ChunkRecord,
    CollectionStats,
    DiscoveredCollection,
    ListOptions,
    QueryResult,
    VectorItem,
)
from vecthare_backends.providers import resolve_provider_params
from vecthare_backends.transport import BackendHttpClient, embedding_diagnostics, ensure_success, json_object

logger = logging.getLogger(__name__)

NATIVE_PREFIX = "/api/vector"
HEALTH_CHECK_COLLECTION = "__vecthare_health_check__"
HEALTH_CHECK_SOURCE = "transformers"


class BackendState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    PROBING = "probing"
    NATIVE_ONLY = "native_only"
    NATIVE_WITH_EXTENSIONS = "native_with_extensions"


def zip_native_results(data: dict[str, Any]) -> QueryResult:
    """Pair native ``hashes`` with ``metadata`` by position."""
    hashes = list(data.get("hashes") or [])
    metadata: list[dict[str, Any]] = []
    for position, entry in enumerate(data.get("metadata") or []):
        entry = dict(entry or {})
        entry["hash"] = hashes[position] if position < len(hashes) else entry.get("hash")
        entry.setdefault("text", "")
        entry["score"] = entry.get("score") or 0
        metadata.append(entry)
    return QueryResult(hashes=hashes, metadata=metadata)


class StandardBackend:
    """Native vectra store with extension-backed extras."""

    name = "standard"
    label = "Standard"

    def __init__(self, http: BackendHttpClient) -> None:
        self._http = http
        self._plugin = PluginApi(http, backend="vectra", label=self.label)
        self.state = BackendState.UNINITIALIZED
        self.probe: CapabilityProbe | None = None

    @property
    def extensions_available(self) -> bool:
        return self.state is BackendState.NATIVE_WITH_EXTENSIONS

    async def _native(self, operation: str, json: Any = None):
        return await self._http.request(
            "POST",
            f"{NATIVE_PREFIX}/{operation}",
            backend=self.name,
            operation=operation,
            json=json,
        )

    def _native_body(self, collection_id: str, settings: VectorSettings, *, is_query: bool, **extra: Any) -> dict[str, Any]:
        body: dict[str, Any] = {
            "collectionId": collection_id,
            "source": settings.source,
            "model": settings.model_value(),
            **extra,
        }
        body.update(resolve_provider_params(settings, is_query=is_query).as_request_fields())
        return body

    async def initialize(self, settings: VectorSettings) -> None:
        self.state = BackendState.PROBING
        probe = await self._plugin.probe_extension()
        if probe.available:
            try:
                response = await self._plugin.init_backend()
            except BackendUnavailable as exc:
                probe = CapabilityProbe.unavailable(str(exc))
            else:
                if not response.is_success:
                    probe = CapabilityProbe.unavailable(f"backend init returned {response.status_code}")

        self.probe = probe
        if probe.available:
            self.state = BackendState.NATIVE_WITH_EXTENSIONS
            logger.info("Standard backend initialized (extension available)")
        else:
            self.state = BackendState.NATIVE_ONLY
            logger.info("Standard backend initialized (native API only: %s)", probe.reason)

    async def health_check(self) -> bool:
        try:
            response = await self._native(
                "list",
                {"collectionId": HEALTH_CHECK_COLLECTION, "source": HEALTH_CHECK_SOURCE},
            )
        except BackendUnavailable as exc:
            logger.error("[Standard] Health check failed: %s", exc)
            return False
        # 500 means the probe collection does not exist yet, which is healthy.
        return response.status_code in (200, 500)

    async def get_saved_hashes(self, collection_id: str, settings: VectorSettings) -> list[ChunkHash]:
        response = await self._native("list", self._native_body(collection_id, settings, is_query=False))
        if response.status_code == 500:
            return []
        ensure_success(
            response,
            f"[Standard] Failed to get saved hashes for {collection_id}",
            backend=self.name,
            collection_id=collection_id,
        )
        data = response.json()
        return list(data) if isinstance(data, list) else []

    async def insert_vector_items(
        self, collection_id: str, items: Sequence[VectorItem], settings: VectorSettings
    ) -> None:
        if not items:
            return

        body = self._native_body(
            collection_id,
            settings,
            is_query=False,
            items=[{"hash": item.hash, "text": item.text, "index": item.index or 0} for item in items],
        )
        precomputed = {item.text: item.vector for item in items if item.vector is not None}
        if precomputed:
            body["embeddings"] = precomputed

        with embedding_diagnostics(items, source=settings.source, model=settings.model_value()):
            response = await self._native("insert", body)
            ensure_success(
                response,
                f"[Standard] Failed to insert {len(items)} vectors into {collection_id}",
                backend=self.name,
                collection_id=collection_id,
            )
        logger.info("Standard: inserted %d vectors into %s", len(items), collection_id)

    async def delete_vector_items(
        self, collection_id: str, hashes: Sequence[ChunkHash], settings: VectorSettings
    ) -> None:
        if not hashes:
            return
        response = await self._native(
            "delete",
            {"collectionId": collection_id, "hashes": list(hashes), "source": settings.source},
        )
        ensure_success(
            response,
            f"[Standard] Failed to delete vectors from {collection_id}",
            backend=self.name,
            collection_id=collection_id,
        )

    def _query_body(
        self,
        search_text: str,
        top_k: int,
        threshold: float,
        settings: VectorSettings,
        query_vector: Sequence[float] | None,
        **target: Any,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            **target,
            "searchText": search_text,
            "topK": top_k,
            "threshold": threshold,
            "source": settings.source,
            "model": settings.model_value(),
        }
        body.update(resolve_provider_params(settings, is_query=True).as_request_fields())
        if query_vector is not None:
            body["embeddings"] = {search_text: list(query_vector)}
        return body

    async def query_collection(
        self,
        collection_id: str,
        search_text: str,
        top_k: int,
        settings: VectorSettings,
        query_vector: Sequence[float] | None = None,
    ) -> QueryResult:
        body = self._query_body(
            search_text,
            top_k,
            settings.score_threshold or 0.0,
            settings,
            query_vector,
            collectionId=collection_id,
        )
        response = await self._native("query", body)
        message = f"[Standard] Failed to query collection {collection_id}"
        ensure_success(response, message, backend=self.name, collection_id=collection_id)
        return zip_native_results(
            json_object(response, message, backend=self.name, collection_id=collection_id)
        )

    def _multi_entry(self, collection_id: str, entry: Any) -> QueryResult:
        if entry is None:
            return QueryResult.empty()
        try:
            if not isinstance(entry, dict):
                raise TypeError(f"expected an object, got {type(entry).__name__}")
            return zip_native_results(entry)
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("%s", PartialQueryFailure(collection_id, exc))
            return QueryResult.empty()

    async def query_multiple_collections(
        self,
        collection_ids: Sequence[str],
        search_text: str,
        top_k: int,
        threshold: float,
        settings: VectorSettings,
        query_vector: Sequence[float] | None = None,
    ) -> dict[str, QueryResult]:
        body = self._query_body(
            search_text,
            top_k,
            threshold,
            settings,
            query_vector,
            collectionIds=list(collection_ids),
        )
        try:
            response = await self._native("query-multi", body)
        except BackendUnavailable as exc:
            logger.warning("query-multi failed (%s), falling back to individual queries", exc)
        else:
            if response.is_success:
                try:
                    data = json_object(response, "[Standard] query-multi", backend=self.name)
                except RemoteOperationFailed as exc:
                    logger.warning("%s, falling back to individual queries", exc)
                else:
                    return {
                        collection_id: self._multi_entry(collection_id, data.get(collection_id))
                        for collection_id in collection_ids
                    }
            else:
                logger.warning(
                    "query-multi returned %d, falling back to individual queries", response.status_code
                )

        scoped = settings.model_copy(update={"score_threshold": threshold})
        results: dict[str, QueryResult] = {}
        for collection_id in collection_ids:
            try:
                results[collection_id] = await self.query_collection(
                    collection_id, search_text, top_k, scoped, query_vector
                )
            except (VectorBackendError, ValueError, KeyError, TypeError) as exc:
                logger.warning("%s", PartialQueryFailure(collection_id, exc))
                results[collection_id] = QueryResult.empty()
        return results

    async def purge_vector_index(self, collection_id: str, settings: VectorSettings) -> None:
        response = await self._native("purge", {"collectionId": collection_id})
        ensure_success(
            response,
            f"[Standard] Failed to purge collection {collection_id}",
            backend=self.name,
            collection_id=collection_id,
        )

    async def purge_file_vector_index(self, collection_id: str, settings: VectorSettings) -> None:
        await self.purge_vector_index(collection_id, settings)

    async def purge_all_vector_indexes(self, settings: VectorSettings) -> None:
        response = await self._native("purge-all")
        ensure_success(response, "[Standard] Failed to purge all collections", backend=self.name)

    async def list_chunks(
        self, collection_id: str, settings: VectorSettings, options: ListOptions | None = None
    ) -> ChunkPage:
        """List chunks; without the extension only hashes are known."""
        options = options or ListOptions()
        if self.extensions_available:
            try:
                data = await self._plugin.list_chunks(
                    CollectionScope.passthrough(collection_id),
                    settings,
                    offset=options.offset,
                    limit=options.limit,
                    include_vectors=options.include_vectors,
                )
                return ChunkPage.model_validate(data)
            except VectorBackendError as exc:
                logger.warning("Extension listChunks failed, using native fallback: %s", exc)

        hashes = await self.get_saved_hashes(collection_id, settings)
        return ChunkPage(
            items=[ChunkRecord(hash=chunk_hash, text="", metadata={}) for chunk_hash in hashes],
            total=len(hashes),
        )

    async def get_chunk(
        self, collection_id: str, chunk_hash: ChunkHash, settings: VectorSettings
    ) -> ChunkRecord | None:
        if not self.extensions_available:
            return None
        return await self._plugin.get_chunk(CollectionScope.passthrough(collection_id), chunk_hash, settings)

    async def update_chunk_text(
        self, collection_id: str, chunk_hash: ChunkHash, text: str, settings: VectorSettings
    ) -> dict[str, Any]:
        if not self.extensions_available:
            raise CapabilityUnavailable("Chunk text editing requires the Similharity extension")
        return await self._plugin.update_text(CollectionScope.passthrough(collection_id), chunk_hash, text, settings)

    async def update_chunk_metadata(
        self,
        collection_id: str,
        chunk_hash: ChunkHash,
        metadata: dict[str, Any],
        settings: VectorSettings,
    ) -> dict[str, Any]:
        if not self.extensions_available:
            raise CapabilityUnavailable("Chunk metadata editing requires the Similharity extension")
        return await self._plugin.update_metadata(
            CollectionScope.passthrough(collection_id), chunk_hash, metadata, settings
        )

    async def get_stats(self, collection_id: str, settings: VectorSettings) -> CollectionStats:
        if self.extensions_available:
            try:
                return await self._plugin.stats(CollectionScope.passthrough(collection_id), settings)
            except VectorBackendError as exc:
                logger.warning("Extension getStats failed, using native fallback: %s", exc)

        hashes = await self.get_saved_hashes(collection_id, settings)
        return CollectionStats(count=len(hashes), source="native")

    async def discover_collections(self, settings: VectorSettings) -> list[DiscoveredCollection] | None:
        # The native API cannot enumerate collections.
        if not self.extensions_available:
            return None
        return [to_discovered(entry, "vectra") for entry in await self._plugin.collections()]
