import pytest

from frontend.context import RequestContext, get_request_context, set_request_context


def _ctx(**overrides) -> RequestContext:
    values = {"request_id": "r1", "trace_id": "a" * 32, "span_id": "b" * 16, "sampled": False}
    values.update(overrides)
    return RequestContext(**values)


def test_with_session_returns_new_context() -> None:
    ctx = _ctx()
    tagged = ctx.with_session("s1")
    assert tagged.session_id == "s1"
    assert ctx.session_id is None
    assert tagged.trace_id == ctx.trace_id


def test_session_cannot_be_reassigned() -> None:
    tagged = _ctx().with_session("s1")
    assert tagged.with_session("s1") == tagged
    with pytest.raises(ValueError):
        tagged.with_session("s2")


def test_context_is_frozen() -> None:
    ctx = _ctx()
    with pytest.raises(AttributeError):
        ctx.session_id = "nope"  # type: ignore[misc]


def test_scope_round_trip() -> None:
    scope: dict = {"type": "http"}
    assert get_request_context(scope) is None
    ctx = _ctx()
    set_request_context(scope, ctx)
    assert get_request_context(scope) is ctx
    assert scope["state"]["request_context"] is ctx
