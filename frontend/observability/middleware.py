from __future__ import annotations

import re
import sys
import uuid
from http.cookies import SimpleCookie
from time import perf_counter
from typing import Any, Callable

import structlog
from starlette.datastructures import MutableHeaders
from starlette.requests import HTTPConnection

from frontend.context import get_request_context, set_request_context


SESSION_COOKIE = "shop_session-id"
SESSION_HEADER = "X-Session-ID"
SESSION_MAX_AGE_S = 60 * 60 * 48
SHARED_SESSION_ID = "12345678-1234-1234-1234-123456789123"
REQUEST_ID_HEADER = "X-Request-ID"

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


def is_valid_session_id(value: str | None) -> bool:
    return bool(value) and _SESSION_ID_RE.match(value) is not None


def _session_cookie_header(session_id: str) -> str:
    cookie: SimpleCookie = SimpleCookie()
    cookie[SESSION_COOKIE] = session_id
    cookie[SESSION_COOKIE]["max-age"] = SESSION_MAX_AGE_S
    cookie[SESSION_COOKIE]["path"] = "/"
    cookie[SESSION_COOKIE]["httponly"] = True
    cookie[SESSION_COOKIE]["samesite"] = "lax"
    return cookie.output(header="").strip()


class SessionMiddleware:
    """Makes sure every request carries a session id and hands it back.

    The id comes from the session cookie (or ``X-Session-ID`` header) when a
    well-formed one is presented; otherwise a fresh uuid4 is issued. Either
    way the response sets the cookie and the header.
    """

    def __init__(self, app: Callable[..., Any], shared_session: bool = False) -> None:
        self.app = app
        self.shared_session = shared_session

    def _new_session_id(self) -> str:
        if self.shared_session:
            return SHARED_SESSION_ID
        return str(uuid.uuid4())

    def resolve_session_id(self, scope: dict[str, Any]) -> str:
        conn = HTTPConnection(scope)
        for presented in (conn.cookies.get(SESSION_COOKIE), conn.headers.get(SESSION_HEADER)):
            if is_valid_session_id(presented):
                return presented
        return self._new_session_id()

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        ctx = get_request_context(scope)
        if ctx is not None and ctx.session_id is not None:
            session_id = ctx.session_id
        else:
            session_id = self.resolve_session_id(scope)
            if ctx is not None:
                set_request_context(scope, ctx.with_session(session_id))

        async def send_wrapper(message: dict[str, Any]) -> None:
            if message.get("type") == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers.append("set-cookie", _session_cookie_header(session_id))
                headers[SESSION_HEADER] = session_id

            await send(message)

        await self.app(scope, receive, send_wrapper)


class AccessLogMiddleware:
    """Emits one structured access record per request once it completes."""

    def __init__(self, app: Callable[..., Any], logger: Any = None) -> None:
        self.app = app
        self.logger = logger or structlog.get_logger("access")

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        path = scope.get("path")
        method = scope.get("method")
        ctx = get_request_context(scope)
        request_id = ctx.request_id if ctx is not None else str(uuid.uuid4())

        start = perf_counter()
        status_code: int = 500
        body_bytes = 0

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code, body_bytes

            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 500))
                headers = MutableHeaders(scope=message)
                headers[REQUEST_ID_HEADER] = request_id
            elif message.get("type") == "http.response.body":
                body_bytes += len(message.get("body", b""))

            await send(message)

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            try:
                await self.app(scope, receive, send_wrapper)
            finally:
                elapsed_ms = (perf_counter() - start) * 1000.0
                # Inner layers may have replaced the context (session id).
                ctx = get_request_context(scope)
                self._emit(
                    method=method,
                    path=path,
                    status=status_code,
                    duration_ms=round(elapsed_ms, 3),
                    bytes=body_bytes,
                    request_id=request_id,
                    session=ctx.session_id if ctx is not None else None,
                    trace_id=ctx.trace_id if ctx is not None else None,
                )

    def _emit(self, **fields: Any) -> None:
        try:
            self.logger.info("request complete", **fields)
        except Exception as exc:  # noqa: BLE001
            # The response is already on its way; never fail it over a log line.
            try:
                sys.stderr.write(f"access log write failed: {exc!r}\n")
            except Exception:  # noqa: BLE001
                pass
