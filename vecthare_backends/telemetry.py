"""OpenTelemetry setup for vecthare-backends."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from vecthare_backends.config import Settings

INSTRUMENTATION_NAME = "vecthare-backends"


class BackendMetrics(Protocol):
    """Backend request metrics recorder contract."""

    def record(
        self,
        *,
        backend: str,
        operation: str,
        status: str,
        duration_ms: float,
    ) -> None:
        """Record a single backend request measurement."""


@dataclass(slots=True)
class NoopBackendMetrics:
    """No-op implementation used when telemetry is disabled."""

    def record(
        self,
        *,
        backend: str,
        operation: str,
        status: str,
        duration_ms: float,
    ) -> None:
        del backend, operation, status, duration_ms


@dataclass(slots=True)
class OTelBackendMetrics:
    """OpenTelemetry-backed request metrics recorder."""

    request_counter: object
    duration_histogram: object

    def record(
        self,
        *,
        backend: str,
        operation: str,
        status: str,
        duration_ms: float,
    ) -> None:
        attributes = {"backend": backend, "operation": operation, "status": status}
        self.request_counter.add(1, attributes=attributes)
        self.duration_histogram.record(max(0.0, duration_ms), attributes=attributes)


def resolve_otlp_traces_endpoint(endpoint: str) -> str:
    """Normalize collector endpoint to an OTLP traces path."""
    cleaned = endpoint.rstrip("/")
    if cleaned.endswith("/v1/traces"):
        return cleaned
    return f"{cleaned}/v1/traces"


def resolve_otlp_metrics_endpoint(endpoint: str) -> str:
    """Normalize collector endpoint to an OTLP metrics path."""
    cleaned = endpoint.rstrip("/")
    if cleaned.endswith("/v1/metrics"):
        return cleaned
    return f"{cleaned}/v1/metrics"


@dataclass(slots=True)
class TelemetryRuntime:
    """Holds telemetry runtime state for the process."""

    enabled: bool = False
    tracer_provider: TracerProvider | None = None
    meter_provider: MeterProvider | None = None
    backend_metrics: BackendMetrics = field(default_factory=NoopBackendMetrics)

    def tracer(self) -> trace.Tracer:
        if self.tracer_provider is not None:
            return self.tracer_provider.get_tracer(INSTRUMENTATION_NAME)
        return trace.get_tracer(INSTRUMENTATION_NAME)


def setup_telemetry(settings: Settings) -> TelemetryRuntime:
    """Initialize OpenTelemetry SDK providers for backend requests."""
    if not settings.telemetry.enabled:
        return TelemetryRuntime()

    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "service.version": settings.service_version,
        }
    )
    tracer_provider = TracerProvider(
        resource=resource,
        sampler=TraceIdRatioBased(settings.telemetry.sample_ratio),
    )

    exporter = OTLPSpanExporter(
        endpoint=resolve_otlp_traces_endpoint(settings.telemetry.otlp_endpoint),
        headers=settings.telemetry.otlp_headers or None,
        timeout=settings.telemetry.otlp_timeout_seconds,
    )
    tracer_provider.add_span_processor(BatchSpanProcessor(exporter))

    metric_exporter = OTLPMetricExporter(
        endpoint=resolve_otlp_metrics_endpoint(settings.telemetry.otlp_endpoint),
        headers=settings.telemetry.otlp_headers or None,
        timeout=settings.telemetry.otlp_timeout_seconds,
    )
    metric_reader = PeriodicExportingMetricReader(
        metric_exporter,
        export_interval_millis=settings.telemetry.metrics_export_interval_ms,
    )
    meter_provider = MeterProvider(
        resource=resource,
        metric_readers=[metric_reader],
    )
    meter = meter_provider.get_meter(INSTRUMENTATION_NAME)

    backend_metrics = OTelBackendMetrics(
        request_counter=meter.create_counter(
            name="vecthare_backend_requests_total",
            unit="1",
            description="Count of vector backend HTTP requests by backend, operation and status.",
        ),
        duration_histogram=meter.create_histogram(
            name="vecthare_backend_request_duration_ms",
            unit="ms",
            description="Latency of vector backend HTTP requests.",
        ),
    )

    return TelemetryRuntime(
        enabled=True,
        tracer_provider=tracer_provider,
        meter_provider=meter_provider,
        backend_metrics=backend_metrics,
    )


def shutdown_telemetry(runtime: TelemetryRuntime) -> None:
    """Shutdown the OpenTelemetry export pipeline."""
    if not runtime.enabled:
        return

    if runtime.meter_provider is not None:
        runtime.meter_provider.shutdown()

    if runtime.tracer_provider is not None:
        runtime.tracer_provider.shutdown()
