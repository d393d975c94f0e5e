from __future__ import annotations

import httpx
import pytest

from vecthare_backends.backends.factory import create_vector_backend
from vecthare_backends.backends.lancedb import LanceDBBackend
from vecthare_backends.backends.standard import StandardBackend
from vecthare_backends.config import Settings, VectorSettings, get_settings
from vecthare_backends.main import build_settings, parse_args, probe

PLUGIN = "/api/plugins/similharity"


def test_factory_defaults_to_standard(host):
    backend = create_vector_backend(get_settings(), http=host.client())
    assert isinstance(backend, StandardBackend)


def test_factory_selects_configured_backend(host):
    backend = create_vector_backend(Settings(backend="lancedb"), http=host.client())
    assert isinstance(backend, LanceDBBackend)


def test_build_settings_applies_cli_overrides():
    settings = build_settings(parse_args(["--backend", "milvus", "--base-url", "http://st:8000"]))
    assert settings.backend == "milvus"
    assert settings.host.base_url == "http://st:8000"


@pytest.mark.asyncio
async def test_probe_reports_health_and_stats(host):
    host.json("POST", f"{PLUGIN}/backend/init/lancedb", {"success": True})
    host.json("GET", f"{PLUGIN}/backend/health/lancedb", {"healthy": True})
    host.json("POST", f"{PLUGIN}/chunks/stats", {"stats": {"count": 9}})

    summary = await probe(Settings(backend="lancedb"), VectorSettings(), "docs", http=host.client())

    assert summary["initialized"] is True
    assert summary["healthy"] is True
    assert summary["stats"]["count"] == 9


@pytest.mark.asyncio
async def test_probe_reports_initialization_failure(host):
    host.on("POST", f"{PLUGIN}/backend/init/qdrant", httpx.Response(500, text="no qdrant"))

    summary = await probe(Settings(backend="qdrant"), VectorSettings(), None, http=host.client())

    assert summary["initialized"] is False
    assert "no qdrant" in summary["error"]
