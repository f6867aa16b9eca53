from __future__ import annotations

import os
from typing import Dict, Literal

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanExporter
from opentelemetry.semconv.resource import ResourceAttributes

_CONFIGURED = False


TracingExporter = Literal["otlp", "console", "none"]


def _build_exporter(kind: TracingExporter) -> SpanExporter | None:
    if kind == "none":
        return None
    if kind == "console":
        return ConsoleSpanExporter()

    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    headers_env = os.getenv("OTEL_EXPORTER_OTLP_HEADERS")

    if endpoint:
        headers: Dict[str, str] | None = None
        if headers_env:
            headers = {}
            for pair in headers_env.split(","):
                if not pair:
                    continue
                if "=" not in pair:
                    continue
                key, value = pair.split("=", 1)
                headers[key.strip()] = value.strip()
        return OTLPSpanExporter(endpoint=endpoint, headers=headers)

    return OTLPSpanExporter()


def configure_tracing(
    app: FastAPI,
    *,
    service_name: str,
    service_version: str,
    environment: str,
    exporter: TracingExporter = "none",
) -> None:
    """Configure OpenTelemetry tracing + log correlation for the FastAPI app.

    With ``exporter="none"`` spans are still created (so log lines carry trace
    ids) but nothing is shipped.
    """

    global _CONFIGURED

    resource = Resource.create(
        {
            ResourceAttributes.SERVICE_NAME: service_name,
            ResourceAttributes.SERVICE_VERSION: service_version,
            ResourceAttributes.DEPLOYMENT_ENVIRONMENT: environment,
        }
    )

    if not _CONFIGURED:
        tracer_provider = TracerProvider(resource=resource)
        span_exporter = _build_exporter(exporter)
        if span_exporter is not None:
            tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))
        trace.set_tracer_provider(tracer_provider)
        LoggingInstrumentor().instrument(set_logging_format=False)
        _CONFIGURED = True
    else:
        tracer_provider = trace.get_tracer_provider()

    FastAPIInstrumentor.instrument_app(app, tracer_provider=tracer_provider)


__all__ = ["configure_tracing"]
