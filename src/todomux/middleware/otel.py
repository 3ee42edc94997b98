"""OpenTelemetry tracing and metrics middleware.

Creates HTTP server spans and metrics with semantic conventions for each request.

Install with: pip install "todomux[otel]"
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from todomux.rsgi import HTTPProtocol, HTTPScope, Middleware, RSGIHTTPHandler

try:
    from opentelemetry import metrics, trace
    from opentelemetry.propagate import extract
    from opentelemetry.trace import SpanKind, StatusCode, TracerProvider
except ImportError as e:
    msg = (
        "OpenTelemetry middleware requires the 'otel' extra. "
        "Install with: pip install 'todomux[otel]'"
    )
    raise ImportError(msg) from e

from todomux.middleware._recorder import RecordingHTTPProtocol
from todomux.tree import http_route, path_params

_DURATION_BUCKETS = (
    0.001,
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
)


def otel(
    *,
    tracer_provider: TracerProvider | None = None,
    meter_provider: metrics.MeterProvider | None = None,
) -> Middleware:
    """Create OpenTelemetry tracing and metrics middleware.

    Extracts propagated trace context (e.g. ``traceparent``) from the request
    headers and opens a server span named ``METHOD route`` (``METHOD status``
    for unmatched requests). Only depends on ``opentelemetry-api``; bring your
    own SDK and exporters.

    Metrics emitted:
        - ``http.server.request.duration`` (histogram, seconds)
        - ``http.server.active_requests`` (up-down counter)

    Args:
        tracer_provider: Optional TracerProvider. If None, uses the global provider.
        meter_provider: Optional MeterProvider. If None, uses the global provider.
    """
    tracer = trace.get_tracer("todomux", tracer_provider=tracer_provider)
    meter = metrics.get_meter("todomux", meter_provider=meter_provider)
    duration_histogram = meter.create_histogram(
        "http.server.request.duration",
        unit="s",
        description="Duration of HTTP server requests.",
        explicit_bucket_boundaries_advisory=_DURATION_BUCKETS,
    )
    active_requests_counter = meter.create_up_down_counter(
        "http.server.active_requests",
        unit="{request}",
        description="Number of active HTTP server requests.",
    )

    def middleware(handler: RSGIHTTPHandler) -> RSGIHTTPHandler:
        async def traced_handler(scope: HTTPScope, proto: HTTPProtocol) -> None:
            route = http_route.get("")
            method = scope.method

            attributes: dict[str, str | int] = {
                "http.request.method": method,
                "url.path": scope.path,
                "url.scheme": scope.scheme,
                "network.protocol.version": scope.http_version,
                "server.address": scope.server,
                "client.address": scope.client,
            }
            if route:
                attributes["http.route"] = route
            if scope.query_string:
                attributes["url.query"] = scope.query_string
            if user_agent := scope.headers.get("user-agent"):
                attributes["user_agent.original"] = user_agent
            for key, value in path_params.get({}).items():
                attributes[f"http.route.param.{key}"] = value

            metric_attributes: dict[str, str | int] = {
                "http.request.method": method,
                "url.scheme": scope.scheme,
            }
            if route:
                metric_attributes["http.route"] = route

            active_requests_counter.add(1, metric_attributes)
            start = time.perf_counter()
            with tracer.start_as_current_span(
                f"{method} {route}" if route else method,
                context=extract(scope.headers),
                kind=SpanKind.SERVER,
                attributes=attributes,
            ) as span:
                recorder = RecordingHTTPProtocol(proto)
                try:
                    await handler(scope, recorder)
                finally:
                    active_requests_counter.add(-1, metric_attributes)
                    duration_attributes = dict(metric_attributes)
                    if recorder.status is not None:
                        span.set_attribute("http.response.status_code", recorder.status)
                        duration_attributes["http.response.status_code"] = recorder.status
                        if not route:
                            span.update_name(f"{method} {recorder.status}")
                        if recorder.status >= 500:
                            span.set_status(StatusCode.ERROR)
                    duration_histogram.record(
                        time.perf_counter() - start, duration_attributes
                    )

        return traced_handler

    return middleware
