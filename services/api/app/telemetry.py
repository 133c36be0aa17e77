"""
Observability setup:
  - OpenTelemetry distributed tracing → Jaeger (via OTLP gRPC)
  - Prometheus metrics: suggestion_latency_seconds, suggestion_query_failures_total, …

Both are initialised once at startup and injected into FastAPI via middleware.
"""
import logging

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from prometheus_client import Counter, Histogram

from app.config import settings

logger = logging.getLogger(__name__)

# ─────────────────────────── Prometheus Metrics ───────────────────────────
SUGGESTION_LATENCY = Histogram(
    "suggestion_latency_seconds",
    "End-to-end latency of POST /suggestions",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)

SUGGESTION_CANDIDATES_TOTAL = Counter(
    "suggestion_candidates_total",
    "Candidates scored across all suggestion requests",
)

SUGGESTIONS_RETURNED_TOTAL = Counter(
    "suggestions_returned_total",
    "Suggestions returned to callers (after zero-score filtering and limit)",
)

SUGGESTION_QUERY_FAILURES_TOTAL = Counter(
    "suggestion_query_failures_total",
    "Store reads that failed during scoring and were counted as zero",
    ["component"],
)

AUTH_FAILURES_TOTAL = Counter(
    "auth_failures_total",
    "Requests rejected because the caller identity could not be resolved",
    ["reason"],  # 'missing_token' | 'rejected' | 'provider_error'
)

POST_INGESTION_TOTAL = Counter(
    "post_ingestion_total",
    "Total number of posts ingested",
)


# ─────────────────────────── OpenTelemetry Setup ──────────────────────────
def setup_tracing() -> None:
    """Configure the global OTel TracerProvider with OTLP/Jaeger export."""
    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "deployment.environment": settings.environment,
        }
    )

    provider = TracerProvider(resource=resource)

    try:
        otlp_exporter = OTLPSpanExporter(
            endpoint=settings.otel_exporter_otlp_endpoint,
            insecure=True,
        )
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        logger.info(
            "OTel tracing configured → %s", settings.otel_exporter_otlp_endpoint
        )
    except Exception as exc:
        logger.warning("Could not connect to OTLP exporter: %s — traces disabled", exc)

    trace.set_tracer_provider(provider)

    # Auto-instrument outbound HTTP (auth provider) and database spans
    HTTPXClientInstrumentor().instrument()
    SQLAlchemyInstrumentor().instrument()


def instrument_app(app) -> None:  # noqa: ANN001
    """Call after app is created to add FastAPI request spans."""
    FastAPIInstrumentor.instrument_app(app)
