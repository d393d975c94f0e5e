from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from vecthare_backends.config import reset_settings
from vecthare_backends.transport import BackendHttpClient

Handler = Callable[[httpx.Request], httpx.Response]


class FakeHost:
    """In-process host application answering with canned handlers."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Handler] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, response: httpx.Response | Handler) -> None:
        if isinstance(response, httpx.Response):
            canned = response
            self.routes[(method, path)] = lambda request: canned
        else:
            self.routes[(method, path)] = response

    def json(self, method: str, path: str, payload: Any, status_code: int = 200) -> None:
        self.on(method, path, lambda request: httpx.Response(status_code, json=payload))

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": "not found"})
        return handler(request)

    def bodies(self, path: str) -> list[Any]:
        return [
            json.loads(request.content) if request.content else None
            for request in self.requests
            if request.url.path == path
        ]

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]

    def client(self) -> BackendHttpClient:
        transport = httpx.MockTransport(self.handle)
        return BackendHttpClient(httpx.AsyncClient(transport=transport, base_url="http://host.test"))


class FakeVectorStore:
    """Hash-keyed chunk storage answering the native and extension write/list routes."""

    def __init__(self) -> None:
        self.collections: dict[str, dict[Any, str]] = {}

    def _collection(self, body: dict[str, Any]) -> dict[Any, str]:
        key = body["collectionId"]
        filters = body.get("filters")
        if filters:
            key = f"{key}/{filters['type']}/{filters['sourceId']}"
        return self.collections.setdefault(key, {})

    def _insert(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        chunks = self._collection(body)
        for item in body["items"]:
            chunks[item["hash"]] = item["text"]
        return httpx.Response(200, json={"success": True})

    def _delete(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        chunks = self._collection(body)
        for chunk_hash in body["hashes"]:
            chunks.pop(chunk_hash, None)
        return httpx.Response(200, json={"success": True})

    def _native_list(self, request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=list(self._collection(json.loads(request.content))))

    def _plugin_list(self, request: httpx.Request) -> httpx.Response:
        chunks = self._collection(json.loads(request.content))
        items = [{"hash": chunk_hash, "text": text, "metadata": {}} for chunk_hash, text in chunks.items()]
        return httpx.Response(200, json={"items": items, "total": len(items)})

    def install(self, host: FakeHost, plugin_prefix: str = "/api/plugins/similharity") -> None:
        host.on("POST", "/api/vector/insert", self._insert)
        host.on("POST", "/api/vector/delete", self._delete)
        host.on("POST", "/api/vector/list", self._native_list)
        host.on("POST", f"{plugin_prefix}/chunks/insert", self._insert)
        host.on("POST", f"{plugin_prefix}/chunks/delete", self._delete)
        host.on("POST", f"{plugin_prefix}/chunks/list", self._plugin_list)


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def store(host) -> FakeVectorStore:
    vectors = FakeVectorStore()
    vectors.install(host)
    return vectors


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    keys = [
        "VECTHARE_BACKEND",
        "VECTHARE_HOST__BASE_URL",
        "VECTHARE_HOST__TIMEOUT_SECONDS",
        "VECTHARE_TELEMETRY__ENABLED",
        "VECTHARE_TELEMETRY__OTLP_ENDPOINT",
        "VECTHARE_TELEMETRY__OTLP_TIMEOUT_SECONDS",
        "VECTHARE_TELEMETRY__METRICS_EXPORT_INTERVAL_MS",
        "VECTHARE_TELEMETRY__SAMPLE_RATIO",
    ]
    for key in keys:
        monkeypatch.delenv(key, raising=False)
    reset_settings()
    yield
    reset_settings()
