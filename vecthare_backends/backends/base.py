"""Vector backend protocol."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from vecthare_backends.config import VectorSettings
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


@dataclass(frozen=True, slots=True)
class CapabilityProbe:
    """Outcome of a best-effort capability check."""

    available: bool
    reason: str | None = None

    @classmethod
    def ok(cls) -> CapabilityProbe:
        return cls(available=True)

    @classmethod
    def unavailable(cls, reason: str) -> CapabilityProbe:
        return cls(available=False, reason=reason)


class VectorBackend(Protocol):
    """Contract every vector storage backend implements.

    Settings are supplied on every call; adapters keep no per-collection state.
    """

    name: str

    async def initialize(self, settings: VectorSettings) -> None:
        """One-time setup. Raises ``BackendUnavailable`` when setup fails."""

    async def health_check(self) -> bool:
        """Liveness probe. Never raises."""

    async def get_saved_hashes(self, collection_id: str, settings: VectorSettings) -> list[ChunkHash]:
        """Hashes stored for a collection; empty when it was never created."""

    async def insert_vector_items(
        self, collection_id: str, items: Sequence[VectorItem], settings: VectorSettings
    ) -> None:
        """Upsert items by hash. No-op for an empty list."""

    async def delete_vector_items(
        self, collection_id: str, hashes: Sequence[ChunkHash], settings: VectorSettings
    ) -> None:
        """Delete items by hash; unknown hashes are ignored."""

    async def query_collection(
        self,
        collection_id: str,
        search_text: str,
        top_k: int,
        settings: VectorSettings,
        query_vector: Sequence[float] | None = None,
    ) -> QueryResult:
        """Top-k items at or above ``settings.score_threshold``."""

    async def query_multiple_collections(
        self,
        collection_ids: Sequence[str],
        search_text: str,
        top_k: int,
        threshold: float,
        settings: VectorSettings,
        query_vector: Sequence[float] | None = None,
    ) -> dict[str, QueryResult]:
        """Per-collection results; a failing collection degrades to empty."""

    async def purge_vector_index(self, collection_id: str, settings: VectorSettings) -> None:
        """Delete every item of one collection."""

    async def purge_file_vector_index(self, collection_id: str, settings: VectorSettings) -> None:
        """Same as ``purge_vector_index``."""

    async def purge_all_vector_indexes(self, settings: VectorSettings) -> None:
        """Delete everything the backend holds."""

    async def list_chunks(
        self, collection_id: str, settings: VectorSettings, options: ListOptions | None = None
    ) -> ChunkPage:
        """Paginated chunk listing."""

    async def get_chunk(
        self, collection_id: str, chunk_hash: ChunkHash, settings: VectorSettings
    ) -> ChunkRecord | None:
        """Single chunk by hash, or ``None``."""

    async def update_chunk_text(
        self, collection_id: str, chunk_hash: ChunkHash, text: str, settings: VectorSettings
    ) -> dict[str, Any]:
        """Replace chunk text; the backend re-embeds it."""

    async def update_chunk_metadata(
        self,
        collection_id: str,
        chunk_hash: ChunkHash,
        metadata: dict[str, Any],
        settings: VectorSettings,
    ) -> dict[str, Any]:
        """Replace chunk metadata without re-embedding."""

    async def get_stats(self, collection_id: str, settings: VectorSettings) -> CollectionStats:
        """Aggregate statistics for a collection."""

    async def discover_collections(self, settings: VectorSettings) -> list[DiscoveredCollection] | None:
        """All known collections, or ``None`` when the backend cannot enumerate."""
