import logging
from typing import Optional, Sequence

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from opentelemetry import trace
from prometheus_client import Info, start_http_server
from prometheus_fastapi_instrumentator import Instrumentator

from simple_proxy.config import ProxyConfig
from simple_proxy.errors import ProxyError, UpstreamTransportError
from simple_proxy.forwarder.route import router
from simple_proxy.forwarder.service import Forwarder
from simple_proxy.vars import OTLP_ENDPOINT, OTLP_HEADERS, SERVICE_NAME

logger = logging.getLogger("uvicorn.error")

try:
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider, ReadableSpan
    from opentelemetry.sdk.trace.export import (
        BatchSpanProcessor,
        SpanExporter,
        SpanExportResult,
    )
    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

    _OTEL_AVAILABLE = True
except ImportError:  # pragma: no cover - tracing stays on the no-op API provider
    Resource = TracerProvider = ReadableSpan = BatchSpanProcessor = SpanExporter = SpanExportResult = None  # type: ignore
    FastAPIInstrumentor = OTLPSpanExporter = None  # type: ignore
    _OTEL_AVAILABLE = False


class FilteringSpanExporter(SpanExporter if _OTEL_AVAILABLE else object):
    """
    Wrapper exporter that drops the per-chunk ASGI body spans a streamed
    response produces, so one proxied download does not emit one span per chunk.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        filtered_spans = [
            span
            for span in spans
            if not (
                span.attributes
                and span.attributes.get("asgi.event.type") == "http.response.body"
            )
        ]
        if filtered_spans:
            return self.exporter.export(filtered_spans)
        return SpanExportResult.SUCCESS

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


if _OTEL_AVAILABLE:
    trace.set_tracer_provider(
        TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
    )
    if OTLP_ENDPOINT:
        otlp_exporter = OTLPSpanExporter(
            endpoint=OTLP_ENDPOINT,
            headers=((OTLP_HEADERS).split(",") if OTLP_HEADERS else None),
        )
        trace.get_tracer_provider().add_span_processor(
            BatchSpanProcessor(FilteringSpanExporter(otlp_exporter))
        )

app_info = Info("simple_proxy_app", "Application Info")
app_info.info({"app_name": SERVICE_NAME})


async def handle_proxy_error(request: Request, exc: ProxyError) -> JSONResponse:
    if isinstance(exc, UpstreamTransportError):
        detail = "Gateway timeout" if exc.timeout else f"Bad gateway: {exc}"
    else:
        detail = str(exc)
        logger.warning(f"[Proxy] Rejected {request.method} request: {exc}")
    return JSONResponse(status_code=exc.status_code, content={"detail": detail})


def create_app(
    config: ProxyConfig, transport: Optional[httpx.AsyncBaseTransport] = None
) -> FastAPI:
    """
    Build the proxy application for one upstream.

    The generated docs and OpenAPI routes are switched off so those paths are
    forwarded like any other.
    """
    app = FastAPI(title=SERVICE_NAME, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.config = config
    app.state.forwarder = Forwarder(config, transport=transport)
    app.add_exception_handler(ProxyError, handle_proxy_error)
    app.include_router(router)

    if _OTEL_AVAILABLE:
        FastAPIInstrumentor.instrument_app(app, excluded_urls="")

    return app


def enable_metrics(app: FastAPI, port: int) -> None:
    """Collect request metrics and serve them from a separate port."""
    Instrumentator().instrument(app)
    start_http_server(port)
    logger.info(f"Serving Prometheus metrics on port {port}")
