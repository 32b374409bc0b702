"""
Traces and logs shipped to Axiom over OTLP/HTTP.

Without ``AXIOM_TOKEN`` (local runs, tests) the providers are still installed
so ``@trace_span`` works, but nothing leaves the process.
"""

import asyncio
import functools
import logging
from typing import Dict

from opentelemetry import trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from common.core.config import settings

AXIOM_ENDPOINT = "https://api.axiom.co/v1"

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    force=True,
)

_initialized = False
axiom_tracer = None
propagator = None


def _axiom_headers() -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {settings.axiom_token}",
        "X-Axiom-Dataset": settings.axiom_dataset,
    }


def _tracer_provider(resource: Resource) -> TracerProvider:
    provider = TracerProvider(resource=resource)
    if settings.axiom_token:
        exporter = OTLPSpanExporter(
            endpoint=f"{AXIOM_ENDPOINT}/traces", headers=_axiom_headers()
        )
        provider.add_span_processor(BatchSpanProcessor(exporter))
    return provider


def _logger_provider(resource: Resource) -> LoggerProvider:
    provider = LoggerProvider(resource=resource)
    if settings.axiom_token:
        exporter = OTLPLogExporter(
            endpoint=f"{AXIOM_ENDPOINT}/logs", headers=_axiom_headers()
        )
        provider.add_log_record_processor(BatchLogRecordProcessor(exporter))
    return provider


def _initialize_telemetry():
    """Install the tracer and logger providers. Safe to call more than once."""
    global _initialized, axiom_tracer, propagator

    if _initialized:
        return

    resource = Resource(attributes={SERVICE_NAME: settings.otel_service_name})

    trace.set_tracer_provider(_tracer_provider(resource))
    set_logger_provider(_logger_provider(resource))

    axiom_tracer = trace.get_tracer(settings.otel_service_name)
    propagator = TraceContextTextMapPropagator()
    _initialized = True

    logging.getLogger(__name__).info(
        f"Telemetry initialized (export={'on' if settings.axiom_token else 'off'})"
    )


def get_logger(name: str) -> logging.Logger:
    """Use instead of logging.getLogger() so telemetry is always set up first."""
    if not _initialized:
        _initialize_telemetry()
    return logging.getLogger(name)


def trace_span(func):
    """Wrap ``func`` in a span named ``Class.method`` (or the function name)."""

    def _span_name(args) -> str:
        if args and hasattr(args[0], func.__name__):
            return f"{type(args[0]).__name__}.{func.__name__}"
        return func.__name__

    if asyncio.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            with axiom_tracer.start_as_current_span(_span_name(args)):
                return await func(*args, **kwargs)

        return async_wrapper

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        with axiom_tracer.start_as_current_span(_span_name(args)):
            return func(*args, **kwargs)

    return sync_wrapper


def inject_trace_context() -> Dict[str, str]:
    """W3C traceparent headers for messages published from the current span."""
    headers: Dict[str, str] = {}
    propagator.inject(headers)
    return headers
