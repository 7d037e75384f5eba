"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Reconciliation metrics
reconciliations = Counter(
    'payment_reconciliations_total',
    'Payment session reconciliation attempts',
    ['flow', 'outcome']  # token/metadata, applied/already_processed/rejected/error
)

reconciliation_latency = Histogram(
    'reconciliation_latency_seconds',
    'Session verification latency, email dispatch included',
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

bookings_synthesized = Counter(
    'bookings_synthesized_total',
    'Bookings created from payment session metadata'
)

# Checkout metrics
checkout_sessions = Counter(
    'checkout_sessions_total',
    'Hosted checkout sessions requested',
    ['kind', 'result']  # token/intent, created/rejected/error
)

payment_links = Counter(
    'payment_links_total',
    'Payment links generated by staff',
    ['result']  # created, rejected
)

# Notification metrics
email_dispatch = Counter(
    'email_dispatch_total',
    'Outbound email attempts',
    ['kind', 'result']  # receipt/finance/..., sent/timeout/failed/skipped
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_reconciliation(flow: str, outcome: str):
    """Record a reconciliation result. Outcome: applied, already_processed, rejected, error"""
    reconciliations.labels(flow=flow, outcome=outcome).inc()


def record_checkout_session(kind: str, result: str):
    checkout_sessions.labels(kind=kind, result=result).inc()


def record_payment_link(result: str):
    payment_links.labels(result=result).inc()


def record_email(kind: str, result: str):
    """Record email dispatch. Result: sent, timeout, failed, skipped"""
    email_dispatch.labels(kind=kind, result=result).inc()
