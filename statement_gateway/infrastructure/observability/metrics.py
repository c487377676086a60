"""Prometheus metrics for monitoring statement ingestion, the extraction oracle and reconciliation"""

from prometheus_client import Counter, Histogram

# Ingestion metrics
upload_counter = Counter(
    "statement_uploads_total",
    "Bank statement uploads processed",
    ["outcome"],  # success | validation_error | extraction_error | upstream_error | persistence_error | error
)

records_ingested_counter = Counter(
    "bank_records_ingested_total",
    "Bank records persisted from uploaded statements",
)

records_dropped_counter = Counter(
    "bank_records_dropped_total",
    "Records returned by the language model that failed validation",
)

# Language model metrics
llm_latency_histogram = Histogram(
    "llm_request_latency_seconds",
    "Language model completion response time",
    buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 40.0, 60.0],
)

retry_counter = Counter(
    "outbound_retries_total",
    "Outbound HTTP calls retried after a retryable failure",
    ["service"],
)

llm_failure_counter = Counter(
    "llm_failures_total",
    "Language model requests that failed after retries",
)

# Reconciliation metrics
payment_status_counter = Counter(
    "payment_status_recomputed_total",
    "Transaction payment status recomputations by resulting status",
    ["status"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_upload(outcome: str, records_ingested: int = 0) -> None:
    """Record the outcome of one statement upload"""
    upload_counter.labels(outcome=outcome).inc()
    if records_ingested:
        records_ingested_counter.inc(records_ingested)
