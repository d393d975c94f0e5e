from __future__ import annotations

from vecthare_backends.config import get_settings, reset_settings
from vecthare_backends.telemetry import (
    NoopBackendMetrics,
    resolve_otlp_metrics_endpoint,
    resolve_otlp_traces_endpoint,
    setup_telemetry,
    shutdown_telemetry,
)


def test_resolve_otlp_traces_endpoint_base_url():
    assert resolve_otlp_traces_endpoint("http://127.0.0.1:4318") == "http://127.0.0.1:4318/v1/traces"


def test_resolve_otlp_traces_endpoint_passthrough():
    assert resolve_otlp_traces_endpoint("http://collector:4318/v1/traces") == "http://collector:4318/v1/traces"


def test_resolve_otlp_metrics_endpoint_base_url():
    assert resolve_otlp_metrics_endpoint("http://127.0.0.1:4318/") == "http://127.0.0.1:4318/v1/metrics"


def test_resolve_otlp_metrics_endpoint_passthrough():
    assert resolve_otlp_metrics_endpoint("http://collector:4318/v1/metrics") == "http://collector:4318/v1/metrics"


def test_telemetry_settings_from_env(monkeypatch):
    monkeypatch.setenv("VECTHARE_TELEMETRY__ENABLED", "true")
    monkeypatch.setenv("VECTHARE_TELEMETRY__OTLP_ENDPOINT", "http://127.0.0.1:4318")
    monkeypatch.setenv("VECTHARE_TELEMETRY__OTLP_TIMEOUT_SECONDS", "1")
    monkeypatch.setenv("VECTHARE_TELEMETRY__METRICS_EXPORT_INTERVAL_MS", "1000")
    monkeypatch.setenv("VECTHARE_TELEMETRY__SAMPLE_RATIO", "0.25")
    reset_settings()

    settings = get_settings()
    assert settings.telemetry.enabled is True
    assert settings.telemetry.otlp_endpoint == "http://127.0.0.1:4318"
    assert settings.telemetry.otlp_timeout_seconds == 1
    assert settings.telemetry.metrics_export_interval_ms == 1000
    assert settings.telemetry.sample_ratio == 0.25


def test_disabled_telemetry_uses_noop_recorder():
    runtime = setup_telemetry(get_settings())
    assert runtime.enabled is False
    assert isinstance(runtime.backend_metrics, NoopBackendMetrics)
    shutdown_telemetry(runtime)


def test_enabled_telemetry_builds_providers(monkeypatch):
    monkeypatch.setenv("VECTHARE_TELEMETRY__ENABLED", "true")
    monkeypatch.setenv("VECTHARE_TELEMETRY__OTLP_ENDPOINT", "http://127.0.0.1:65535")
    monkeypatch.setenv("VECTHARE_TELEMETRY__OTLP_TIMEOUT_SECONDS", "0.1")
    reset_settings()

    runtime = setup_telemetry(get_settings())
    try:
        assert runtime.enabled is True
        assert runtime.meter_provider is not None
        assert runtime.tracer() is not None
        runtime.backend_metrics.record(backend="qdrant", operation="query", status="200", duration_ms=1.5)
    finally:
        shutdown_telemetry(runtime)
