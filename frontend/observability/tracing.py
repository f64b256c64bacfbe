from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

import grpc
import structlog
from opentelemetry import baggage, trace
from opentelemetry.baggage.propagation import W3CBaggagePropagator
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.propagators.textmap import TextMapPropagator
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter
from opentelemetry.sdk.trace.sampling import ALWAYS_OFF
from opentelemetry.trace import SpanKind, Status, StatusCode, format_span_id, format_trace_id
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator
from starlette.datastructures import MutableHeaders

from frontend.context import RequestContext, set_request_context


ExporterFactory = Callable[[str], SpanExporter]

COLLECTOR_CONNECT_TIMEOUT_S = 3.0

# Only the trace context goes back to the caller; baggage is inbound-only.
_RESPONSE_PROPAGATOR = TraceContextTextMapPropagator()


def build_propagator() -> TextMapPropagator:
    return CompositePropagator([TraceContextTextMapPropagator(), W3CBaggagePropagator()])


@dataclass
class TracingHandle:
    """Propagator + tracer provider pair handed to the tracing middleware.

    A disabled handle samples nothing but still mints valid span contexts, so
    every request gets a trace id whether or not spans are exported.
    """

    provider: TracerProvider
    enabled: bool = False
    propagator: TextMapPropagator = field(default_factory=build_propagator)

    @property
    def tracer(self) -> trace.Tracer:
        return self.provider.get_tracer("frontend")

    def shutdown(self) -> None:
        self.provider.shutdown()


def _resource(service_name: str, service_version: str) -> Resource:
    return Resource.create({"service.name": service_name, "service.version": service_version})


def noop_tracing(service_name: str = "frontend", service_version: str = "") -> TracingHandle:
    provider = TracerProvider(sampler=ALWAYS_OFF, resource=_resource(service_name, service_version))
    return TracingHandle(provider=provider, enabled=False)


def connect_otlp_exporter(collector_addr: str, timeout: float = COLLECTOR_CONNECT_TIMEOUT_S) -> SpanExporter:
    """Wait for the collector's gRPC channel, then build an OTLP exporter.

    Raises ``grpc.FutureTimeoutError`` when the collector is unreachable.
    """

    channel = grpc.insecure_channel(collector_addr)
    try:
        grpc.channel_ready_future(channel).result(timeout=timeout)
    finally:
        channel.close()
    return OTLPSpanExporter(endpoint=collector_addr, insecure=True)


def init_tracing(
    enabled: bool,
    *,
    service_name: str = "frontend",
    service_version: str = "",
    collector_addr: str = "localhost:4317",
    exporter_factory: ExporterFactory | None = None,
    logger: Any = None,
) -> TracingHandle:
    log = logger or structlog.get_logger("tracing")

    if not enabled:
        log.info("tracing disabled")
        return noop_tracing(service_name, service_version)

    factory = exporter_factory or connect_otlp_exporter
    try:
        exporter = factory(collector_addr)
    except Exception as exc:  # noqa: BLE001
        log.warning(
            "failed to initialize tracing, continuing without export",
            collector_addr=collector_addr,
            error=repr(exc),
        )
        return noop_tracing(service_name, service_version)

    provider = TracerProvider(resource=_resource(service_name, service_version))
    provider.add_span_processor(BatchSpanProcessor(exporter))
    log.info("tracing enabled", collector_addr=collector_addr)
    return TracingHandle(provider=provider, enabled=True)


def _header_carrier(scope: dict[str, Any]) -> dict[str, str]:
    carrier: dict[str, str] = {}
    for raw_key, raw_value in scope.get("headers") or []:
        key = raw_key.decode("latin-1").lower()
        value = raw_value.decode("latin-1")
        carrier[key] = f"{carrier[key]},{value}" if key in carrier else value
    return carrier


class TracingMiddleware:
    """Opens a server span per request and seeds the request context."""

    def __init__(self, app: Callable[..., Any], tracing: TracingHandle, span_name: str = "frontend") -> None:
        self.app = app
        self.tracing = tracing
        self.span_name = span_name

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        parent = self.tracing.propagator.extract(carrier=_header_carrier(scope))

        with self.tracing.tracer.start_as_current_span(
            self.span_name,
            context=parent,
            kind=SpanKind.SERVER,
            attributes={
                "http.request.method": scope.get("method") or "",
                "url.path": scope.get("path") or "",
            },
        ) as span:
            span_context = span.get_span_context()
            set_request_context(
                scope,
                RequestContext(
                    request_id=str(uuid.uuid4()),
                    trace_id=format_trace_id(span_context.trace_id),
                    span_id=format_span_id(span_context.span_id),
                    sampled=span_context.trace_flags.sampled,
                    baggage=dict(baggage.get_all(context=parent)),
                ),
            )
            outbound = trace.set_span_in_context(span, parent)

            async def send_wrapper(message: dict[str, Any]) -> None:
                if message.get("type") == "http.response.start":
                    status_code = int(message.get("status", 500))
                    span.set_attribute("http.response.status_code", status_code)
                    if status_code >= 500:
                        span.set_status(Status(StatusCode.ERROR))

                    carrier: dict[str, str] = {}
                    _RESPONSE_PROPAGATOR.inject(carrier, context=outbound)
                    headers = MutableHeaders(scope=message)
                    for key, value in carrier.items():
                        headers[key] = value

                await send(message)

            await self.app(scope, receive, send_wrapper)
