# sessionshare/observability/tracing.py
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor, ConsoleSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

_OTEL_INITIALIZED = False


def init_otel(app=None, engine=None, service_name: str = "session-share"):
    """Initialize OpenTelemetry tracing with console exporter.

    Pass FastAPI app and SQLAlchemy async engine to instrument automatically.
    The tracer provider is installed once per process.
    """
    global _OTEL_INITIALIZED

    if not _OTEL_INITIALIZED:
        resource = Resource.create({"service.name": service_name})
        provider = TracerProvider(resource=resource)
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
        trace.set_tracer_provider(provider)
        _OTEL_INITIALIZED = True

    if app is not None:
        FastAPIInstrumentor.instrument_app(app)

    if engine is not None:
        SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)

    return trace.get_tracer(service_name)
