"""Observability setup for OpenTelemetry, Prometheus metrics, and structured logging."""

import logging

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CollectorRegistry, Counter, generate_latest

from .config import settings

# Prometheus metrics
REGISTRY = CollectorRegistry()

BOOKINGS_CREATED = Counter(
    'bookings_created_total',
    'Total bookings created',
    ['guest'],
    registry=REGISTRY
)

BOOKING_STATUS_CHANGES = Counter(
    'booking_status_changes_total',
    'Booking status transitions',
    ['from_status', 'to_status'],
    registry=REGISTRY
)

CAPACITY_REJECTIONS = Counter(
    'booking_capacity_rejections_total',
    'Bookings refused for lack of capacity',
    ['stage'],
    registry=REGISTRY
)

REFERENCE_COLLISIONS = Counter(
    'booking_reference_collisions_total',
    'Booking reference allocations that had to be retried',
    registry=REGISTRY
)

APPROVAL_DECISIONS = Counter(
    'catalog_approval_decisions_total',
    'Admin approval decisions on global catalog entities',
    ['kind', 'decision'],
    registry=REGISTRY
)


def _add_trace_context(logger, method_name, event_dict):
    """Add the active OpenTelemetry span to log events."""
    span = trace.get_current_span()
    if span and span.is_recording():
        ctx = span.get_span_context()
        event_dict['trace_id'] = format(ctx.trace_id, '032x')
        event_dict['span_id'] = format(ctx.span_id, '016x')
    return event_dict


def setup_structured_logging() -> None:
    """
    Route standard-library logging through structlog.

    Module loggers keep using ``logging.getLogger(__name__)`` with ``extra``
    fields; those fields, plus anything bound to structlog contextvars (such
    as the request ID), end up in the rendered event.
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.ExtraAdder(),
        _add_trace_context,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    renderer = structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, settings.log_level))


def setup_tracing(app_name: str = "tour-marketplace-api"):
    """Setup OpenTelemetry tracing."""
    resource = Resource.create({
        "service.name": app_name,
        "service.version": "1.0.0",
        "environment": settings.environment,
    })

    provider = TracerProvider(resource=resource)
    if settings.otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint)))
    trace.set_tracer_provider(provider)

    return trace.get_tracer(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine):
    """Instrument the SQLAlchemy engine with OpenTelemetry."""
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


class MetricsCollector:
    """Collector for business metrics."""

    @staticmethod
    def record_booking_created(guest: bool):
        """Record a booking creation."""
        BOOKINGS_CREATED.labels(guest=str(guest).lower()).inc()

    @staticmethod
    def record_status_change(from_status: str, to_status: str):
        """Record a booking status transition."""
        BOOKING_STATUS_CHANGES.labels(from_status=from_status, to_status=to_status).inc()

    @staticmethod
    def record_capacity_rejection(stage: str):
        """Record a booking refused at the availability check or the atomic reservation."""
        CAPACITY_REJECTIONS.labels(stage=stage).inc()

    @staticmethod
    def record_reference_collision():
        """Record a retried booking reference allocation."""
        REFERENCE_COLLISIONS.inc()

    @staticmethod
    def record_approval_decision(kind: str, decision: str):
        """Record an admin approve/reject decision."""
        APPROVAL_DECISIONS.labels(kind=kind, decision=decision).inc()


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()
