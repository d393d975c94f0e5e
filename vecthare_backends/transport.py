"""HTTP transport shared by the vector backends."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import httpx
from opentelemetry import trace

from vecthare_backends.config import HostConfig
from vecthare_backends.errors import BackendUnavailable, RemoteOperationFailed
from vecthare_backends.models import VectorItem
from vecthare_backends.telemetry import BackendMetrics, NoopBackendMetrics, TelemetryRuntime

logger = logging.getLogger(__name__)

LARGE_CHUNK_CHARS = 2000
OOM_MARKERS = ("OrtRun", "error code = 6")


class BackendHttpClient:
    """Thin wrapper over ``httpx.AsyncClient`` that maps failures to backend errors."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        metrics: BackendMetrics | None = None,
        tracer: trace.Tracer | None = None,
    ) -> None:
        self._client = client
        self._metrics = metrics or NoopBackendMetrics()
        self._tracer = tracer or trace.get_tracer("vecthare-backends")

    @classmethod
    def from_config(cls, host: HostConfig, runtime: TelemetryRuntime | None = None) -> BackendHttpClient:
        runtime = runtime or TelemetryRuntime()
        client = httpx.AsyncClient(
            base_url=host.base_url,
            headers=host.headers,
            timeout=httpx.Timeout(host.timeout_seconds),
        )
        return cls(client, metrics=runtime.backend_metrics, tracer=runtime.tracer())

    async def request(
        self,
        method: str,
        path: str,
        *,
        backend: str,
        operation: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send one request; transport failures raise ``BackendUnavailable``."""
        started_at = time.perf_counter()
        status = "transport_error"
        with self._tracer.start_as_current_span(f"vecthare.{backend}.{operation}") as span:
            span.set_attribute("vecthare.backend", backend)
            span.set_attribute("vecthare.operation", operation)
            span.set_attribute("http.request.method", method)
            try:
                response = await self._client.request(method, path, json=json, params=params)
            except httpx.RequestError as exc:
                raise BackendUnavailable(f"[{backend}] {operation} request to {path} failed: {exc}") from exc
            else:
                status = str(response.status_code)
                span.set_attribute("http.response.status_code", response.status_code)
                return response
            finally:
                self._metrics.record(
                    backend=backend,
                    operation=operation,
                    status=status,
                    duration_ms=(time.perf_counter() - started_at) * 1000.0,
                )

    async def aclose(self) -> None:
        await self._client.aclose()


def ensure_success(
    response: httpx.Response,
    message: str,
    *,
    backend: str,
    collection_id: str | None = None,
) -> httpx.Response:
    """Raise ``RemoteOperationFailed`` for a non-success response."""
    if response.is_success:
        return response
    body = response.text or "No response body"
    raise RemoteOperationFailed(
        f"{message}: {response.status_code} {response.reason_phrase} - {body}",
        status_code=response.status_code,
        body=body,
        backend=backend,
        collection_id=collection_id,
    )


def json_object(
    response: httpx.Response,
    message: str,
    *,
    backend: str,
    collection_id: str | None = None,
) -> dict[str, Any]:
    """Decode a success body that must be a JSON object."""
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        return data
    body = response.text or "No response body"
    raise RemoteOperationFailed(
        f"{message}: unexpected response body - {body}",
        status_code=response.status_code,
        body=body,
        backend=backend,
        collection_id=collection_id,
    )


@dataclass(frozen=True, slots=True)
class ChunkSizeStats:
    count: int
    max_length: int
    average_length: int
    longest_index: int

    @classmethod
    def from_items(cls, items: Sequence[VectorItem]) -> ChunkSizeStats:
        lengths = [len(item.text or "") for item in items]
        if not lengths:
            return cls(count=0, max_length=0, average_length=0, longest_index=-1)
        max_length = max(lengths)
        return cls(
            count=len(lengths),
            max_length=max_length,
            average_length=round(sum(lengths) / len(lengths)),
            longest_index=lengths.index(max_length),
        )


def is_out_of_memory_error(exc: BaseException) -> bool:
    message = str(exc)
    return any(marker in message for marker in OOM_MARKERS)


@contextmanager
def embedding_diagnostics(items: Sequence[VectorItem], *, source: str, model: str) -> Iterator[ChunkSizeStats]:
    """Log chunk sizes before an embedding insert and explain OOM failures."""
    stats = ChunkSizeStats.from_items(items)
    logger.info(
        "Embedding %d chunks (avg: %d chars, max: %d chars at index %d)",
        stats.count,
        stats.average_length,
        stats.max_length,
        stats.longest_index,
    )
    if stats.max_length > LARGE_CHUNK_CHARS:
        preview = (items[stats.longest_index].text or "")[:100]
        logger.warning(
            "Large chunk detected (%d chars). If you see OOM errors, try reducing chunk size. Preview: %r",
            stats.max_length,
            preview,
        )

    try:
        yield stats
    except Exception as exc:
        if is_out_of_memory_error(exc):
            logger.error(
                "Out of memory while embedding: provider=%s model=%s batch_size=%d "
                "largest_chunk=%d chars (index %d) average_chunk=%d chars. "
                "Try reducing chunk size or using a smaller embedding model.",
                source,
                model or "(default)",
                stats.count,
                stats.max_length,
                stats.longest_index,
                stats.average_length,
            )
        raise
