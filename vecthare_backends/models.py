"""Data models shared by the vector backends."""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ChunkHash = Union[int, str]


class VectorItem(BaseModel):
    """One embeddable chunk, identified by its content hash."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    hash: ChunkHash
    text: str = ""
    index: int | None = None
    vector: list[float] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    importance: float | None = None
    keywords: list[Any] | None = None
    custom_weights: dict[str, Any] | None = None
    disabled_keywords: list[Any] | None = None
    chunk_group: Any = None
    conditions: Any = None
    summary: str | None = None
    is_summary_chunk: bool | None = None
    parent_hash: ChunkHash | None = None

    def payload_metadata(self) -> dict[str, Any]:
        """Metadata bag with the domain fields folded in under wire names."""
        domain = self.model_dump(
            by_alias=True,
            exclude_none=True,
            exclude={"hash", "text", "index", "vector", "metadata"},
        )
        return {**self.metadata, **domain}


class QueryResult(BaseModel):
    """Relevance-ordered hashes with a parallel metadata list."""

    hashes: list[ChunkHash] = Field(default_factory=list)
    metadata: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> QueryResult:
        return cls()


class ChunkRecord(BaseModel):
    """A stored chunk as returned by the listing endpoints."""

    model_config = ConfigDict(extra="allow")

    hash: ChunkHash
    text: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    vector: list[float] | None = None


class ChunkPage(BaseModel):
    """One page of chunks."""

    model_config = ConfigDict(extra="allow")

    items: list[ChunkRecord] = Field(default_factory=list)
    total: int = 0


class ListOptions(BaseModel):
    """Pagination options for ``list_chunks``."""

    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=100, ge=1)
    include_vectors: bool = False


class CollectionStats(BaseModel):
    """Aggregate statistics; backends may add their own fields."""

    model_config = ConfigDict(extra="allow")

    count: int = 0
    source: str | None = None


class DiscoveredCollection(BaseModel):
    """A collection enumerated by the backend."""

    id: str
    source: str | None = None
    chunk_count: int = 0
    backend: str = "vectra"
