from __future__ import annotations

import httpx
import pytest

from vecthare_backends.errors import BackendUnavailable, RemoteOperationFailed
from vecthare_backends.models import VectorItem
from vecthare_backends.transport import (
    BackendHttpClient,
    ChunkSizeStats,
    embedding_diagnostics,
    ensure_success,
    is_out_of_memory_error,
)


class FakeBackendMetrics:
    def __init__(self) -> None:
        self.records: list[dict[str, object]] = []

    def record(self, *, backend: str, operation: str, status: str, duration_ms: float) -> None:
        self.records.append(
            {"backend": backend, "operation": operation, "status": status, "duration_ms": duration_ms}
        )


def make_client(handler, metrics) -> BackendHttpClient:
    transport = httpx.MockTransport(handler)
    return BackendHttpClient(httpx.AsyncClient(transport=transport, base_url="http://host.test"), metrics=metrics)


@pytest.mark.asyncio
async def test_request_records_status():
    metrics = FakeBackendMetrics()
    client = make_client(lambda request: httpx.Response(204), metrics)

    response = await client.request("POST", "/api/vector/purge", backend="standard", operation="purge", json={})

    assert response.status_code == 204
    assert len(metrics.records) == 1
    record = metrics.records[0]
    assert record["backend"] == "standard"
    assert record["operation"] == "purge"
    assert record["status"] == "204"
    assert isinstance(record["duration_ms"], float)
    assert record["duration_ms"] >= 0.0


@pytest.mark.asyncio
async def test_transport_error_maps_to_backend_unavailable():
    metrics = FakeBackendMetrics()

    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = make_client(handler, metrics)
    with pytest.raises(BackendUnavailable, match="refused"):
        await client.request("GET", "/x", backend="qdrant", operation="health")
    assert metrics.records[0]["status"] == "transport_error"


def test_ensure_success_carries_context():
    response = httpx.Response(502, text="upstream gone", request=httpx.Request("POST", "http://h/x"))
    with pytest.raises(RemoteOperationFailed) as excinfo:
        ensure_success(response, "[Milvus] Failed", backend="milvus", collection_id="vh:chat:1")

    error = excinfo.value
    assert error.status_code == 502
    assert error.body == "upstream gone"
    assert error.backend == "milvus"
    assert error.collection_id == "vh:chat:1"
    assert str(error) == "[Milvus] Failed: 502 Bad Gateway - upstream gone"


def test_ensure_success_passes_ok_response():
    response = httpx.Response(200, json={})
    assert ensure_success(response, "unused", backend="lancedb") is response


def test_chunk_size_stats():
    stats = ChunkSizeStats.from_items(
        [VectorItem(hash=1, text="ab"), VectorItem(hash=2, text="abcdef"), VectorItem(hash=3, text="a")]
    )
    assert stats.count == 3
    assert stats.max_length == 6
    assert stats.longest_index == 1
    assert stats.average_length == 3


def test_oom_markers():
    assert is_out_of_memory_error(RuntimeError("OrtRun() failed"))
    assert is_out_of_memory_error(RuntimeError("onnx error code = 6"))
    assert not is_out_of_memory_error(RuntimeError("timeout"))


def test_diagnostics_reraise_original_error():
    original = RuntimeError("OrtRun() failed with error code = 6")
    with pytest.raises(RuntimeError) as excinfo:
        with embedding_diagnostics([VectorItem(hash=1, text="x")], source="transformers", model=""):
            raise original
    assert excinfo.value is original
