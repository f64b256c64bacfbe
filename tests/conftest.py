from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from frontend.config import get_settings
from frontend.main import create_app


_ENV_VARS = (
    "LISTEN_ADDR",
    "PORT",
    "BASE_URL",
    "ENABLE_TRACING",
    "ENABLE_PROFILER",
    "COLLECTOR_SERVICE_ADDR",
    "ENABLE_SINGLE_SHARED_SESSION",
    "ENABLE_HEALTHZ",
    "SERVICE_NAME",
    "SERVICE_VERSION",
    "LOG_LEVEL",
)


def add_context_route(app: FastAPI) -> FastAPI:
    """Expose the request context so tests can see what the middleware built."""

    @app.get("/_ctx")
    async def _ctx(request: Request) -> dict:
        ctx = request.state.request_context
        return {
            "request_id": ctx.request_id,
            "trace_id": ctx.trace_id,
            "span_id": ctx.span_id,
            "sampled": ctx.sampled,
            "baggage": dict(ctx.baggage),
            "session_id": ctx.session_id,
        }

    return app


def make_client(app: FastAPI) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's local .env out of the picture.
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()

    yield

    get_settings.cache_clear()


@pytest.fixture
def app() -> FastAPI:
    return add_context_route(create_app())


@pytest.fixture
def client_factory():
    return make_client


@pytest.fixture
async def api_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    async with make_client(app) as client:
        yield client
