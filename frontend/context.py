from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Mapping


STATE_KEY = "request_context"


@dataclass(frozen=True)
class RequestContext:
    """Per-request bag shared by the middleware layers and route handlers.

    Lives in the ASGI scope state from request entry until the response
    finishes. Instances are immutable; layers derive updated copies.
    """

    request_id: str
    trace_id: str
    span_id: str
    sampled: bool
    baggage: Mapping[str, str] = field(default_factory=dict)
    session_id: str | None = None

    def with_session(self, session_id: str) -> RequestContext:
        if self.session_id is not None and self.session_id != session_id:
            raise ValueError("session id is already assigned for this request")
        return dataclasses.replace(self, session_id=session_id)


def get_request_context(scope: Mapping[str, Any]) -> RequestContext | None:
    state = scope.get("state") or {}
    return state.get(STATE_KEY)


def set_request_context(scope: dict[str, Any], ctx: RequestContext) -> None:
    scope.setdefault("state", {})[STATE_KEY] = ctx
