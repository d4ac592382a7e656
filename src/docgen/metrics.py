# src/docgen/metrics.py

from prometheus_client import Counter, Histogram, REGISTRY


def _registered(name):
    # prometheus_client strips the _total suffix from counter names
    collectors = REGISTRY._names_to_collectors
    return collectors.get(name) or collectors.get(f"{name}_total")


def safe_counter(name, documentation, **kwargs):
    """Avoid duplicate metric registration when modules are re-imported in pytest."""
    try:
        return Counter(name, documentation, **kwargs)
    except ValueError:
        return _registered(name)


def safe_histogram(name, documentation, **kwargs):
    try:
        return Histogram(name, documentation, **kwargs)
    except ValueError:
        return _registered(name)


jobs_finished_total = safe_counter(
    "docgen_jobs_finished_total",
    "Number of generation jobs that reached a terminal status",
    labelnames=["status", "document_type"],
)

job_failures_total = safe_counter(
    "docgen_job_failures_total",
    "Number of failed generation jobs by failure category",
    labelnames=["error_type"],
)

render_duration_seconds = safe_histogram(
    "docgen_render_duration_seconds",
    "Wall-clock time spent rendering one format",
    labelnames=["format"],
)

uploaded_bytes_total = safe_counter(
    "docgen_uploaded_bytes_total",
    "Bytes written to object storage",
    labelnames=["format"],
)

messages_received_total = safe_counter(
    "docgen_messages_received_total",
    "Inbound generation requests delivered by the broker",
)

messages_acked_total = safe_counter(
    "docgen_messages_acked_total",
    "Inbound messages acknowledged after handling",
)

messages_nacked_total = safe_counter(
    "docgen_messages_nacked_total",
    "Inbound messages returned to the broker for redelivery",
)

broker_receive_errors_total = safe_counter(
    "docgen_broker_receive_errors_total",
    "Broker-level receive failures that triggered a backoff",
)

publish_failures_total = safe_counter(
    "docgen_publish_failures_total",
    "Outbound events that could not be published",
)
