"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
webhook_requests_total = Counter(
    "payment_webhook_requests_total",
    "Total payment webhook calls",
    ["provider", "method", "outcome"],  # outcome: ok / error code
)

payments_created_total = Counter(
    "payments_created_total",
    "Total payment orders created",
    ["provider", "payment_type"],
)

transaction_transitions_total = Counter(
    "payme_transaction_transitions_total",
    "Payme transaction state transitions",
    ["new_state"],
)

# Histograms
webhook_duration_seconds = Histogram(
    "payment_webhook_duration_seconds",
    "Payment webhook handling duration",
    ["provider", "method"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5],
)


# Metrics endpoint router
router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
