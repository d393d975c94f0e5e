"""Command line probe for a configured vector backend."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from vecthare_backends.backends.factory import BACKENDS, create_vector_backend
from vecthare_backends.config import Settings, VectorSettings, get_settings
from vecthare_backends.errors import VectorBackendError
from vecthare_backends.telemetry import setup_telemetry, shutdown_telemetry
from vecthare_backends.transport import BackendHttpClient


def configure_logging() -> None:
    """Configure process logging."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Initialize a vector backend and report its health.")
    parser.add_argument("--backend", choices=sorted(BACKENDS), help="Backend to probe (default from settings).")
    parser.add_argument("--base-url", help="Host application base URL.")
    parser.add_argument("--source", default="transformers", help="Embedding provider id.")
    parser.add_argument("--collection", help="Collection id to report statistics for.")
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    settings = get_settings()
    update: dict[str, Any] = {}
    if args.backend:
        update["backend"] = args.backend
    if args.base_url:
        update["host"] = settings.host.model_copy(update={"base_url": args.base_url})
    return settings.model_copy(update=update) if update else settings


async def probe(
    settings: Settings,
    vector_settings: VectorSettings,
    collection_id: str | None,
    *,
    http: BackendHttpClient | None = None,
) -> dict[str, Any]:
    """Run initialize, health check and optional stats; return a summary."""
    telemetry_runtime = setup_telemetry(settings)
    http = http or BackendHttpClient.from_config(settings.host, telemetry_runtime)
    backend = create_vector_backend(settings, http=http)
    summary: dict[str, Any] = {"backend": settings.backend, "base_url": settings.host.base_url}

    try:
        try:
            await backend.initialize(vector_settings)
        except VectorBackendError as exc:
            summary.update(initialized=False, healthy=False, error=str(exc))
            return summary

        summary["initialized"] = True
        summary["healthy"] = await backend.health_check()
        if collection_id:
            try:
                stats = await backend.get_stats(collection_id, vector_settings)
            except VectorBackendError as exc:
                summary["stats_error"] = str(exc)
            else:
                summary["stats"] = stats.model_dump()
        return summary
    finally:
        await http.aclose()
        shutdown_telemetry(telemetry_runtime)


def run(argv: list[str] | None = None) -> None:
    configure_logging()
    args = parse_args(argv)
    settings = build_settings(args)
    vector_settings = VectorSettings(source=args.source)

    summary = asyncio.run(probe(settings, vector_settings, args.collection))
    print(json.dumps(summary, indent=2, default=str))
    if not summary.get("initialized") or not summary.get("healthy"):
        raise SystemExit(1)


if __name__ == "__main__":
    sys.exit(run())
