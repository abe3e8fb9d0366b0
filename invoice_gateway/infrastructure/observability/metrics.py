"""Prometheus metrics for charges, invoice payments and ledger reconciliation"""

from prometheus_client import Counter, Histogram

# Charge metrics
charge_counter = Counter(
    "invoice_gateway_charge_total",
    "Card charges attempted",
    ["outcome"],  # committed | insufficient_limit | partial_failure | failed
)

charged_installments_histogram = Histogram(
    "invoice_gateway_charge_installments",
    "Installments per committed charge",
    buckets=[1, 2, 3, 6, 10, 12, 24, 48],
)

# Invoice metrics
invoice_created_counter = Counter(
    "invoice_gateway_invoice_created_total",
    "Invoices created lazily by get-or-create",
)

invoice_conflict_counter = Counter(
    "invoice_gateway_invoice_conflict_total",
    "Invoice inserts that lost the (card, reference month) uniqueness race",
)

# Payment metrics
payment_counter = Counter(
    "invoice_gateway_payment_total",
    "Invoice payments attempted",
    ["outcome"],  # paid | partial | already_paid | not_found | failed
)

reconciliation_failure_counter = Counter(
    "invoice_gateway_reconciliation_failures_total",
    "Writes that left invoice or card state stale after the ledger was updated",
    ["kind"],  # invoice | limit
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_charge(outcome: str, installments: int = 0) -> None:
    """Record charge outcome; installment distribution only for committed charges"""
    charge_counter.labels(outcome=outcome).inc()
    if outcome == "committed" and installments > 0:
        charged_installments_histogram.observe(installments)


def record_payment(outcome: str) -> None:
    payment_counter.labels(outcome=outcome).inc()
