"""
Unit tests for the in-memory document store.
"""

import pytest

from docstore_client.concurrency import build_access_condition
from docstore_client.errors import StoreFailure
from docstore_client.memory import InMemoryDocumentStore


@pytest.mark.asyncio
async def test_create_read_and_quoted_versions(store):
    created = await store.create({"id": "a", "partitionKey": "t1", "n": 1})
    assert created.status_code == 201
    assert created.version.startswith('"') and created.version.endswith('"')
    assert created.request_charge == store.charges["create"]

    current = await store.read("a", "t1")
    assert current.resource["n"] == 1
    assert current.version == created.version
    missing = await store.read("a", "other")
    assert missing.resource is None
    assert missing.status_code == 404
    assert missing.request_charge == store.charges["read"]


@pytest.mark.asyncio
async def test_create_duplicate_conflicts(store):
    await store.create({"id": "a", "partitionKey": "t1"})
    with pytest.raises(StoreFailure) as exc_info:
        await store.create({"id": "a", "partitionKey": "t1"})
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_conditional_replace(store):
    v1 = store.seed({"id": "a", "partitionKey": "t1", "n": 1})
    ok = await store.replace("a", "t1", {"n": 2}, build_access_condition(v1))
    assert ok.version != v1
    assert ok.resource == {"n": 2, "id": "a", "partitionKey": "t1", "version": ok.version}

    with pytest.raises(StoreFailure) as exc_info:
        await store.replace("a", "t1", {"n": 3}, build_access_condition(v1))
    assert exc_info.value.status_code == 412
    assert store.get("a", "t1")["n"] == 2


@pytest.mark.asyncio
async def test_unquoted_token_matches(store):
    v1 = store.seed({"id": "a", "partitionKey": "t1"})
    await store.replace("a", "t1", {}, build_access_condition(v1.strip('"')))


@pytest.mark.asyncio
async def test_if_none_match(store):
    store.seed({"id": "a", "partitionKey": "t1"})
    with pytest.raises(StoreFailure) as exc_info:
        await store.replace("a", "t1", {}, build_access_condition("*", "IfNoneMatch"))
    assert exc_info.value.status_code == 412


@pytest.mark.asyncio
async def test_missing_document(store):
    with pytest.raises(StoreFailure) as exc_info:
        await store.replace("nope", "t1", {})
    assert exc_info.value.status_code == 404
    with pytest.raises(StoreFailure):
        await store.delete("nope", "t1")


@pytest.mark.asyncio
async def test_upsert_status(store):
    first = await store.upsert({"id": "a", "partitionKey": "t1"})
    second = await store.upsert({"id": "a", "partitionKey": "t1"})
    assert first.status_code == 201
    assert second.status_code == 200
    assert len(store) == 1


@pytest.mark.asyncio
async def test_delete(store):
    v1 = store.seed({"id": "a", "partitionKey": "t1"})
    resp = await store.delete("a", "t1", build_access_condition(v1))
    assert resp.status_code == 204
    assert store.get("a", "t1") is None


@pytest.mark.asyncio
async def test_failure_injection(store):
    store.seed({"id": "a", "partitionKey": "t1"})
    store.inject_failure("read", StoreFailure(429, retry_after_ms=10), times=2)
    for _ in range(2):
        with pytest.raises(StoreFailure):
            await store.read("a", "t1")
    assert (await store.read("a", "t1")) is not None
    assert store.calls["read"] == 3


@pytest.mark.asyncio
async def test_wildcard_failure_injection(store):
    store.inject_failure("*", StoreFailure(503))
    with pytest.raises(StoreFailure):
        await store.create({"id": "a", "partitionKey": "t1"})
    await store.create({"id": "a", "partitionKey": "t1"})


@pytest.mark.asyncio
async def test_documents_isolated_from_callers():
    store = InMemoryDocumentStore(partition_key_field="tenant")
    doc = {"id": "a", "tenant": "t1", "tags": ["x"]}
    created = await store.create(doc)
    doc["tags"].append("y")
    created.resource["tags"].append("z")
    assert store.get("a", "t1")["tags"] == ["x"]
