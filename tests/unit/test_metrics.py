"""
Unit tests for Prometheus metrics emitted by mutations, retries and batches.
"""

import pytest
from prometheus_client import REGISTRY

from docstore_client.errors import RetryBudgetExhaustedError, StoreFailure
from docstore_client.metrics import metrics_registry
from docstore_client.retry import RetryCoordinator


def sample(name, labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_registry_exposes_metrics():
    assert metrics_registry.mutations_total is not None
    assert metrics_registry.request_charge is not None


@pytest.mark.asyncio
async def test_mutation_outcomes_counted(mutator, tenant):
    ok_before = sample("docstore_mutations_total", {"kind": "create", "outcome": "success"})
    bad_before = sample("docstore_mutations_total", {"kind": "update", "outcome": "not_found"})

    await mutator.create({"partitionKey": tenant})
    with pytest.raises(Exception):
        await mutator.update("missing", tenant, {"a": 1})

    assert sample("docstore_mutations_total", {"kind": "create", "outcome": "success"}) == ok_before + 1
    assert sample("docstore_mutations_total", {"kind": "update", "outcome": "not_found"}) == bad_before + 1


@pytest.mark.asyncio
async def test_retry_and_budget_counters(fake_sleep):
    labels = {"component": "metrics-test", "error_kind": "rate_limited"}
    before = sample("docstore_retry_attempts_total", labels)
    exhausted_before = sample("docstore_retry_budget_exhausted_total", {"component": "metrics-test"})

    failures = [StoreFailure(429, request_charge=10) for _ in range(5)]

    async def op():
        raise failures.pop(0)

    coord = RetryCoordinator(
        {"max_cost_budget": 15, "jitter_factor": 0}, component="metrics-test", sleep=fake_sleep
    )
    with pytest.raises(RetryBudgetExhaustedError):
        await coord.run(op)

    assert sample("docstore_retry_attempts_total", labels) == before + 1
    assert sample("docstore_retry_budget_exhausted_total", {"component": "metrics-test"}) == exhausted_before + 1


@pytest.mark.asyncio
async def test_batch_items_counted(batch, tenant):
    ok = {"operation": "create_many", "outcome": "success"}
    bad = {"operation": "create_many", "outcome": "failure"}
    ok_before, bad_before = sample("docstore_batch_items_total", ok), sample("docstore_batch_items_total", bad)

    await batch.create_many([{"partitionKey": tenant}, {"no": "pk"}])

    assert sample("docstore_batch_items_total", ok) == ok_before + 1
    assert sample("docstore_batch_items_total", bad) == bad_before + 1
