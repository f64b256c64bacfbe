from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI
from starlette.middleware import Middleware

from frontend.api.home import health_router
from frontend.api.home import router as home_router
from frontend.config import Settings, get_settings
from frontend.observability.middleware import AccessLogMiddleware, SessionMiddleware
from frontend.observability.tracing import TracingHandle, TracingMiddleware, noop_tracing


def build_middleware(settings: Settings, tracing: TracingHandle, access_logger: Any) -> list[Middleware]:
    """Request pipeline, outermost first."""

    return [
        Middleware(TracingMiddleware, tracing=tracing, span_name=settings.service_name),
        Middleware(AccessLogMiddleware, logger=access_logger),
        Middleware(SessionMiddleware, shared_session=settings.enable_single_shared_session),
    ]


def create_app(
    settings: Settings | None = None,
    *,
    tracing: TracingHandle | None = None,
    access_logger: Any = None,
) -> FastAPI:
    settings = settings or get_settings()
    tracing = tracing or noop_tracing(settings.service_name, settings.service_version)
    access_logger = access_logger or structlog.get_logger("access")

    app = FastAPI(
        title="Frontend",
        version=settings.service_version,
        middleware=build_middleware(settings, tracing, access_logger),
    )
    app.state.settings = settings
    app.state.tracing = tracing

    app.include_router(home_router)
    if settings.enable_healthz:
        app.include_router(health_router)
    return app
