"""
OpenTelemetry Tracing
=====================

Distributed tracing for request flow visualization.
"""

import os
from typing import Optional

import structlog
from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = structlog.get_logger(__name__)


def setup_tracing(
    app: FastAPI,
    service_name: str = "chatbi-server",
    otlp_endpoint: Optional[str] = None,
    version: str = "0.1.0",
) -> TracerProvider:
    """
    Set up OpenTelemetry tracing for the application.

    Spans opened by the pipeline through ``opentelemetry.trace`` are no-ops
    until this installs a provider.

    Args:
        app: FastAPI application instance
        service_name: Name of the service for traces
        otlp_endpoint: OTLP collector endpoint (default: from env; "disabled" skips export)
        version: Service version recorded on the resource

    Returns:
        The installed tracer provider
    """
    endpoint = otlp_endpoint or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "disabled")

    resource = Resource.create({
        SERVICE_NAME: service_name,
        "service.version": version,
        "deployment.environment": os.getenv("ENVIRONMENT", "development"),
    })

    provider = TracerProvider(resource=resource)

    if endpoint and endpoint != "disabled":
        try:
            otlp_exporter = OTLPSpanExporter(endpoint=endpoint, insecure=True)
            provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        except Exception as e:
            logger.warning("otlp_exporter_unavailable", endpoint=endpoint, error=str(e))

    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app)
    return provider
