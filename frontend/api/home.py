from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse


GREETING = "🎉 Frontend is up (dummy mode)!\n"

router = APIRouter(tags=["home"])
health_router = APIRouter(tags=["health"])


@router.get("/", response_class=PlainTextResponse)
async def index() -> str:
    return GREETING


@health_router.get("/_healthz", response_class=PlainTextResponse)
async def healthz() -> str:
    return "ok"
