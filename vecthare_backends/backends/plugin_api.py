"""Request shaping for the extension's unified chunk API.

Every call carries a ``backend`` discriminator plus ``collectionId``,
``source`` and ``model``. Multitenant stores also attach
``filters: {type, sourceId}`` so the server scopes the call to one tenant of
a shared physical collection.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from vecthare_backends.backends.base import CapabilityProbe
from vecthare_backends.collection_ids import Tenant
from vecthare_backends.config import VectorSettings
from vecthare_backends.errors import BackendUnavailable, PartialQueryFailure, VectorBackendError
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

PLUGIN_PREFIX = "/api/plugins/similharity"
VECTOR_LIST_LIMIT = 100_000


@dataclass(frozen=True, slots=True)
class CollectionScope:
    """Where a logical collection lives on the server."""

    collection_id: str
    physical_id: str
    tenant: Tenant | None = None

    @classmethod
    def passthrough(cls, collection_id: str) -> CollectionScope:
        return cls(collection_id=collection_id, physical_id=collection_id)

    def request_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {"collectionId": self.physical_id}
        if self.tenant is not None:
            fields["filters"] = self.tenant.as_filters()
        return fields

    def describe(self) -> str:
        if self.tenant is None:
            return self.collection_id
        return f"{self.collection_id} (type: {self.tenant.type}, sourceId: {self.tenant.source_id})"


def normalize_query_response(data: dict[str, Any]) -> QueryResult:
    """Flatten ``results`` entries into the parallel hashes/metadata shape."""
    entries = data.get("results") or data.get("chunks") or []
    hashes: list[ChunkHash] = []
    metadata: list[dict[str, Any]] = []
    for entry in entries:
        hashes.append(entry["hash"])
        metadata.append(
            {
                **(entry.get("metadata") or {}),
                "hash": entry["hash"],
                "text": entry.get("text", ""),
                "score": entry.get("score", 0),
            }
        )
    return QueryResult(hashes=hashes, metadata=metadata)


class PluginApi:
    """Calls into the extension API for one backend discriminator."""

    def __init__(self, http: BackendHttpClient, *, backend: str, label: str) -> None:
        self._http = http
        self.backend = backend
        self.label = label

    def _path(self, suffix: str) -> str:
        return f"{PLUGIN_PREFIX}/{suffix}"

    def _chunk_path(self, chunk_hash: ChunkHash, suffix: str = "") -> str:
        path = self._path(f"chunks/{quote(str(chunk_hash), safe='')}")
        return f"{path}/{suffix}" if suffix else path

    def _body(self, scope: CollectionScope | None, settings: VectorSettings, **extra: Any) -> dict[str, Any]:
        body: dict[str, Any] = {"backend": self.backend}
        if scope is not None:
            body.update(scope.request_fields())
        body["source"] = settings.source
        body["model"] = settings.model_value()
        body.update(extra)
        return body

    async def _call(self, method: str, path: str, operation: str, **kwargs: Any) -> httpx.Response:
        return await self._http.request(method, path, backend=self.backend, operation=operation, **kwargs)

    async def probe_extension(self) -> CapabilityProbe:
        """Check whether the extension is installed. Never raises."""
        try:
            response = await self._call("GET", self._path("health"), "probe")
        except BackendUnavailable as exc:
            return CapabilityProbe.unavailable(str(exc))
        if not response.is_success:
            return CapabilityProbe.unavailable(f"extension health returned {response.status_code}")
        return CapabilityProbe.ok()

    async def init_backend(self, config: dict[str, Any] | None = None) -> httpx.Response:
        return await self._call("POST", self._path(f"backend/init/{self.backend}"), "init", json=config)

    async def backend_healthy(self) -> bool:
        try:
            response = await self._call("GET", self._path(f"backend/health/{self.backend}"), "health")
            if not response.is_success:
                return False
            return response.json().get("healthy") is True
        except (BackendUnavailable, ValueError, AttributeError) as exc:
            logger.warning("[%s] Health check failed: %s", self.label, exc)
            return False

    async def list_chunks(
        self,
        scope: CollectionScope,
        settings: VectorSettings,
        *,
        offset: int = 0,
        limit: int = 100,
        include_vectors: bool = False,
    ) -> dict[str, Any]:
        response = await self._call(
            "POST",
            self._path("chunks/list"),
            "list",
            json=self._body(scope, settings, offset=offset, limit=limit, includeVectors=include_vectors),
        )
        message = f"[{self.label}] Failed to list chunks in {scope.describe()}"
        ensure_success(response, message, backend=self.backend, collection_id=scope.collection_id)
        return json_object(response, message, backend=self.backend, collection_id=scope.collection_id)

    async def insert(self, scope: CollectionScope, items: list[dict[str, Any]], settings: VectorSettings) -> None:
        body = self._body(scope, settings, items=items)
        body.update(resolve_provider_params(settings, is_query=False).as_request_fields())
        response = await self._call("POST", self._path("chunks/insert"), "insert", json=body)
        ensure_success(
            response,
            f"[{self.label}] Failed to insert {len(items)} vectors into {scope.describe()}",
            backend=self.backend,
            collection_id=scope.collection_id,
        )

    async def delete(self, scope: CollectionScope, hashes: Sequence[ChunkHash], settings: VectorSettings) -> None:
        response = await self._call(
            "POST",
            self._path("chunks/delete"),
            "delete",
            json=self._body(scope, settings, hashes=list(hashes)),
        )
        ensure_success(
            response,
            f"[{self.label}] Failed to delete vectors from {scope.describe()}",
            backend=self.backend,
            collection_id=scope.collection_id,
        )

    async def query(
        self,
        scope: CollectionScope,
        search_text: str,
        top_k: int,
        threshold: float,
        settings: VectorSettings,
        query_vector: Sequence[float] | None = None,
    ) -> QueryResult:
        body = self._body(scope, settings, searchText=search_text, topK=top_k, threshold=threshold)
        body.update(resolve_provider_params(settings, is_query=True).as_request_fields())
        if query_vector is not None:
            body["embeddings"] = {search_text: list(query_vector)}
        response = await self._call("POST", self._path("chunks/query"), "query", json=body)
        message = f"[{self.label}] Failed to query collection {scope.describe()}"
        ensure_success(response, message, backend=self.backend, collection_id=scope.collection_id)
        return normalize_query_response(
            json_object(response, message, backend=self.backend, collection_id=scope.collection_id)
        )

    async def purge(self, scope: CollectionScope, settings: VectorSettings) -> None:
        response = await self._call("POST", self._path("chunks/purge"), "purge", json=self._body(scope, settings))
        ensure_success(
            response,
            f"[{self.label}] Failed to purge collection {scope.describe()}",
            backend=self.backend,
            collection_id=scope.collection_id,
        )

    async def get_chunk(
        self, scope: CollectionScope, chunk_hash: ChunkHash, settings: VectorSettings
    ) -> ChunkRecord | None:
        params: dict[str, Any] = {
            "backend": self.backend,
            "collectionId": scope.physical_id,
            "source": settings.source,
            "model": settings.model_value(),
        }
        if scope.tenant is not None:
            params.update(scope.tenant.as_filters())
        response = await self._call("GET", self._chunk_path(chunk_hash), "get_chunk", params=params)
        if response.status_code == 404:
            return None
        ensure_success(
            response,
            f"[{self.label}] Failed to get chunk {chunk_hash} from {scope.describe()}",
            backend=self.backend,
            collection_id=scope.collection_id,
        )
        chunk = response.json().get("chunk")
        return ChunkRecord.model_validate(chunk) if chunk else None

    async def update_text(
        self, scope: CollectionScope, chunk_hash: ChunkHash, text: str, settings: VectorSettings
    ) -> dict[str, Any]:
        response = await self._call(
            "PATCH",
            self._chunk_path(chunk_hash, "text"),
            "update_text",
            json=self._body(scope, settings, text=text),
        )
        ensure_success(
            response,
            f"[{self.label}] Failed to update chunk text in {scope.describe()} (hash: {chunk_hash})",
            backend=self.backend,
            collection_id=scope.collection_id,
        )
        return response.json()

    async def update_metadata(
        self,
        scope: CollectionScope,
        chunk_hash: ChunkHash,
        metadata: dict[str, Any],
        settings: VectorSettings,
    ) -> dict[str, Any]:
        response = await self._call(
            "PATCH",
            self._chunk_path(chunk_hash, "metadata"),
            "update_metadata",
            json=self._body(scope, settings, metadata=metadata),
        )
        ensure_success(
            response,
            f"[{self.label}] Failed to update chunk metadata in {scope.describe()} (hash: {chunk_hash})",
            backend=self.backend,
            collection_id=scope.collection_id,
        )
        return response.json()

    async def stats(self, scope: CollectionScope, settings: VectorSettings) -> CollectionStats:
        response = await self._call("POST", self._path("chunks/stats"), "stats", json=self._body(scope, settings))
        ensure_success(
            response,
            f"[{self.label}] Failed to get stats for {scope.describe()}",
            backend=self.backend,
            collection_id=scope.collection_id,
        )
        return CollectionStats.model_validate(response.json().get("stats") or {})

    async def collections(self) -> list[dict[str, Any]]:
        response = await self._call("GET", self._path("collections"), "collections")
        ensure_success(response, f"[{self.label}] Failed to get collections", backend=self.backend)
        return response.json().get("collections") or []

    async def get_embedding(self, text: str, settings: VectorSettings) -> list[float] | None:
        response = await self._call(
            "POST",
            self._path("get-embedding"),
            "get_embedding",
            json={"text": text, "source": settings.source, "model": settings.model_value()},
        )
        if not response.is_success:
            return None
        data = response.json()
        embedding = data.get("embedding")
        if data.get("success") and isinstance(embedding, list):
            return embedding
        return None


def to_discovered(entry: dict[str, Any], default_backend: str) -> DiscoveredCollection:
    return DiscoveredCollection(
        id=str(entry["id"]),
        source=entry.get("source"),
        chunk_count=entry.get("chunkCount") or 0,
        backend=entry.get("backend") or default_backend,
    )


class UnifiedPluginBackend(ABC):
    """Adapter over the unified API; subclasses choose the collection scope."""

    name: str
    label: str

    def __init__(self, http: BackendHttpClient) -> None:
        self._api = PluginApi(http, backend=self.name, label=self.label)

    def _scope(self, collection_id: str) -> CollectionScope:
        return CollectionScope.passthrough(collection_id)

    async def _init_config(self, settings: VectorSettings) -> dict[str, Any] | None:
        return None

    def _item_payload(self, item: VectorItem) -> dict[str, Any]:
        return {
            "hash": item.hash,
            "text": item.text,
            "index": item.index,
            "vector": item.vector,
            "metadata": item.payload_metadata(),
        }

    async def initialize(self, settings: VectorSettings) -> None:
        config = await self._init_config(settings)
        response = await self._api.init_backend(config)
        if not response.is_success:
            body = response.text or "No response body"
            raise BackendUnavailable(
                f"[{self.label}] Failed to initialize {self.label}: "
                f"{response.status_code} {response.reason_phrase} - {body}"
            )
        logger.info("Using %s vector backend", self.label)

    async def health_check(self) -> bool:
        return await self._api.backend_healthy()

    async def get_saved_hashes(self, collection_id: str, settings: VectorSettings) -> list[ChunkHash]:
        data = await self._api.list_chunks(self._scope(collection_id), settings, limit=VECTOR_LIST_LIMIT)
        return [item["hash"] for item in data.get("items") or []]

    async def insert_vector_items(
        self, collection_id: str, items: Sequence[VectorItem], settings: VectorSettings
    ) -> None:
        if not items:
            return

        scope = self._scope(collection_id)
        with embedding_diagnostics(items, source=settings.source, model=settings.model_value()):
            await self._api.insert(scope, [self._item_payload(item) for item in items], settings)
        logger.info("%s: inserted %d vectors into %s", self.label, len(items), scope.describe())

    async def delete_vector_items(
        self, collection_id: str, hashes: Sequence[ChunkHash], settings: VectorSettings
    ) -> None:
        if not hashes:
            return
        await self._api.delete(self._scope(collection_id), hashes, settings)

    async def query_collection(
        self,
        collection_id: str,
        search_text: str,
        top_k: int,
        settings: VectorSettings,
        query_vector: Sequence[float] | None = None,
    ) -> QueryResult:
        return await self._api.query(
            self._scope(collection_id),
            search_text,
            top_k,
            settings.score_threshold,
            settings,
            query_vector,
        )

    async def _query_isolated(
        self,
        collection_id: str,
        search_text: str,
        top_k: int,
        threshold: float,
        settings: VectorSettings,
        query_vector: Sequence[float] | None,
    ) -> QueryResult:
        try:
            return await self._api.query(
                self._scope(collection_id), search_text, top_k, threshold, settings, query_vector
            )
        except (VectorBackendError, ValueError, KeyError, TypeError) as exc:
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
        results = await asyncio.gather(
            *(
                self._query_isolated(collection_id, search_text, top_k, threshold, settings, query_vector)
                for collection_id in collection_ids
            )
        )
        return dict(zip(collection_ids, results))

    async def purge_vector_index(self, collection_id: str, settings: VectorSettings) -> None:
        scope = self._scope(collection_id)
        await self._api.purge(scope, settings)
        logger.info("%s: purged %s", self.label, scope.describe())

    async def purge_file_vector_index(self, collection_id: str, settings: VectorSettings) -> None:
        await self.purge_vector_index(collection_id, settings)

    @abstractmethod
    async def purge_all_vector_indexes(self, settings: VectorSettings) -> None:
        """Remove every collection this backend owns."""

    async def list_chunks(
        self, collection_id: str, settings: VectorSettings, options: ListOptions | None = None
    ) -> ChunkPage:
        options = options or ListOptions()
        data = await self._api.list_chunks(
            self._scope(collection_id),
            settings,
            offset=options.offset,
            limit=options.limit,
            include_vectors=options.include_vectors,
        )
        return ChunkPage.model_validate(data)

    async def get_chunk(
        self, collection_id: str, chunk_hash: ChunkHash, settings: VectorSettings
    ) -> ChunkRecord | None:
        return await self._api.get_chunk(self._scope(collection_id), chunk_hash, settings)

    async def update_chunk_text(
        self, collection_id: str, chunk_hash: ChunkHash, text: str, settings: VectorSettings
    ) -> dict[str, Any]:
        return await self._api.update_text(self._scope(collection_id), chunk_hash, text, settings)

    async def update_chunk_metadata(
        self,
        collection_id: str,
        chunk_hash: ChunkHash,
        metadata: dict[str, Any],
        settings: VectorSettings,
    ) -> dict[str, Any]:
        return await self._api.update_metadata(self._scope(collection_id), chunk_hash, metadata, settings)

    async def get_stats(self, collection_id: str, settings: VectorSettings) -> CollectionStats:
        return await self._api.stats(self._scope(collection_id), settings)

    async def discover_collections(self, settings: VectorSettings) -> list[DiscoveredCollection] | None:
        return None
