from __future__ import annotations

from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from frontend.config import Settings, get_settings
from frontend.main import create_app
from frontend.observability.logging import configure_logging
from frontend.observability.profiler import ProfilerBootstrap
from frontend.observability.tracing import init_tracing


def serve(app: FastAPI, settings: Settings, logger: Any) -> None:
    """Serve until the listener stops. A bind failure exits with status 1."""

    config = uvicorn.Config(app, host=settings.bind_host, port=settings.port, log_config=None, access_log=False)
    server = uvicorn.Server(config)
    try:
        server.run()
    except (OSError, SystemExit) as exc:
        logger.critical("listener failed", host=settings.bind_host, port=settings.port, error=repr(exc))
        raise SystemExit(1) from exc

    if not server.started:
        logger.critical("listener failed", host=settings.bind_host, port=settings.port)
        raise SystemExit(1)


def run(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    log = structlog.get_logger("frontend")

    tracing = init_tracing(
        settings.enable_tracing,
        service_name=settings.service_name,
        service_version=settings.service_version,
        collector_addr=settings.collector_service_addr,
        logger=log,
    )

    if settings.enable_profiler:
        log.info("profiling enabled")
        ProfilerBootstrap(settings.service_name, settings.service_version).start_background()
    else:
        log.info("profiling disabled")

    app = create_app(settings, tracing=tracing, access_logger=structlog.get_logger("access"))

    log.info(
        "starting frontend server",
        url=f"http://{settings.listen_addr}:{settings.port}",
        base_url=settings.base_url,
    )
    try:
        serve(app, settings, log)
    finally:
        tracing.shutdown()
