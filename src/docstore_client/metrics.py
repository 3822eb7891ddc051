"""
Prometheus metrics for the Document Store Client.

Metrics register on the prometheus_client global REGISTRY at import time;
expose them with the application's usual exporter.
"""

from prometheus_client import Counter, Histogram

MUTATIONS_TOTAL = Counter(
    "docstore_mutations_total",
    "Total number of document mutations by kind and outcome",
    ["kind", "outcome"],
)

RETRY_ATTEMPTS_TOTAL = Counter(
    "docstore_retry_attempts_total",
    "Total number of retries scheduled after a failed attempt",
    ["component", "error_kind"],
)

RETRY_BUDGET_EXHAUSTED_TOTAL = Counter(
    "docstore_retry_budget_exhausted_total",
    "Total number of coordinated calls stopped by the retry cost budget",
    ["component"],
)

REQUEST_CHARGE = Histogram(
    "docstore_request_charge",
    "Request charge (store cost units) per successful mutation, retries included",
    ["kind"],
    buckets=[1, 2.5, 5, 10, 25, 50, 100, 250, 500, 1000],
)

BATCH_ITEMS_TOTAL = Counter(
    "docstore_batch_items_total",
    "Total number of batch items processed by operation and outcome",
    ["operation", "outcome"],
)


class MetricsRegistry:
    """Centralized access to the client's metrics."""

    mutations_total = MUTATIONS_TOTAL
    retry_attempts_total = RETRY_ATTEMPTS_TOTAL
    retry_budget_exhausted_total = RETRY_BUDGET_EXHAUSTED_TOTAL
    request_charge = REQUEST_CHARGE
    batch_items_total = BATCH_ITEMS_TOTAL


# Singleton instance
metrics_registry = MetricsRegistry()
