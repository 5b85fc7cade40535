# contract_gateway/shared/observability.py
from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from contract_gateway.shared.config import settings

_provider = None


def setup_observability(app: FastAPI):
    """
    Configures OpenTelemetry for the application.

    1. Sets the global tracer provider (once per process).
    2. Exports spans to the console when DEBUG is on.
    3. Auto-instruments the FastAPI application to trace all HTTP requests.
    """
    global _provider
    if _provider is None:
        resource = Resource.create(attributes={
            "service.name": settings.OTEL_SERVICE_NAME,
            "service.environment": settings.APP_ENV.value,
        })
        _provider = TracerProvider(resource=resource)
        if settings.DEBUG:
            _provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        trace.set_tracer_provider(_provider)

    FastAPIInstrumentor.instrument_app(app, tracer_provider=_provider)


def get_tracer(name: str):
    """
    Utility to get a tracer for manual instrumentation in use cases.
    Usage:
        tracer = get_tracer(__name__)
        with tracer.start_as_current_span("my_custom_logic"):
            ...
    """
    return trace.get_tracer(name)
