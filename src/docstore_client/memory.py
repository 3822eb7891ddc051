"""
In-memory document store for tests and local development.

Invariants:
    - Every successful write assigns a fresh quoted version token
    - Conditional writes are checked and applied without yielding, so
      concurrent writers holding the same version see exactly one winner
    - Documents are deep-copied in and out; callers never share state
      with the store

Failure injection:
    ``inject_failure("replace", StoreFailure(429, retry_after_ms=50))``
    queues a failure raised by the next ``replace`` call before it touches
    any data. Use operation ``"*"`` to fail whichever call comes next.
"""

from __future__ import annotations

import asyncio
import copy
import uuid
from collections import defaultdict, deque
from typing import Any, Deque, Dict, Optional, Tuple

from loguru import logger

from .concurrency import versions_match
from .errors import StoreFailure
from .models import AccessCondition, ConditionKind, VERSION_FIELD
from .store import StoreResponse

DEFAULT_CHARGES: Dict[str, float] = {
    "read": 1.0,
    "create": 5.0,
    "upsert": 5.0,
    "replace": 10.0,
    "delete": 5.0,
}


class InMemoryDocumentStore:
    """``DocumentStore`` backed by a dict keyed on (partition key, id).

    Attributes:
        partition_key_field: Document field holding the partition key
        charges: Request charge reported per operation
        calls: Number of calls made per operation, failed ones included

    Example:
        >>> store = InMemoryDocumentStore()
        >>> created = await store.create({"id": "a", "partitionKey": "t1"})
        >>> current = await store.read("a", "t1")
    """

    def __init__(
        self,
        partition_key_field: str = "partitionKey",
        charges: Optional[Dict[str, float]] = None,
    ) -> None:
        self.partition_key_field = partition_key_field
        self.charges: Dict[str, float] = {**DEFAULT_CHARGES, **(charges or {})}
        self.calls: Dict[str, int] = defaultdict(int)
        self._documents: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self._failures: Dict[str, Deque[BaseException]] = defaultdict(deque)

    # ---------- test helpers ----------

    def inject_failure(self, operation: str, failure: BaseException, times: int = 1) -> None:
        """Queue ``failure`` to be raised by the next ``times`` calls of ``operation``."""
        for _ in range(times):
            self._failures[operation].append(failure)

    def seed(self, document: Dict[str, Any]) -> str:
        """Insert ``document`` directly, bypassing failure injection. Returns its version."""
        doc = self._stamp(copy.deepcopy(document))
        self._documents[self._key_of(doc)] = doc
        return doc[VERSION_FIELD]

    def get(self, document_id: str, partition_key: str) -> Optional[Dict[str, Any]]:
        doc = self._documents.get((partition_key, document_id))
        return copy.deepcopy(doc) if doc is not None else None

    def __len__(self) -> int:
        return len(self._documents)

    # ---------- internals ----------

    def _key_of(self, document: Dict[str, Any]) -> Tuple[str, str]:
        if "id" not in document or self.partition_key_field not in document:
            raise StoreFailure(400, f"document requires 'id' and '{self.partition_key_field}'")
        return (str(document[self.partition_key_field]), str(document["id"]))

    @staticmethod
    def _stamp(document: Dict[str, Any]) -> Dict[str, Any]:
        document[VERSION_FIELD] = f'"{uuid.uuid4()}"'
        return document

    async def _enter(self, operation: str) -> float:
        self.calls[operation] += 1
        await asyncio.sleep(0)
        queued = self._failures[operation] or self._failures["*"]
        if queued:
            failure = queued.popleft()
            logger.debug(f"Injected failure on {operation}: {failure!r}")
            raise failure
        return self.charges.get(operation, 0.0)

    def _check(
        self,
        key: Tuple[str, str],
        condition: Optional[AccessCondition],
        charge: float,
    ) -> Dict[str, Any]:
        current = self._documents.get(key)
        if current is None:
            raise StoreFailure(
                404, f"Document '{key[1]}' not found", request_charge=charge, activity_id=str(uuid.uuid4())
            )
        if condition is None:
            return current
        matches = condition.token == "*" or versions_match(condition.token, current[VERSION_FIELD])
        if (condition.kind is ConditionKind.IF_MATCH) != matches:
            raise StoreFailure(
                412,
                "Precondition failed",
                request_charge=charge,
                activity_id=str(uuid.uuid4()),
            )
        return current

    def _response(self, doc: Optional[Dict[str, Any]], charge: float, status: int) -> StoreResponse:
        return StoreResponse(
            resource=copy.deepcopy(doc) if doc is not None else None,
            version=doc[VERSION_FIELD] if doc is not None else None,
            request_charge=charge,
            status_code=status,
        )

    # ---------- DocumentStore ----------

    async def read(self, document_id: str, partition_key: str) -> Optional[StoreResponse]:
        charge = await self._enter("read")
        doc = self._documents.get((partition_key, document_id))
        return self._response(doc, charge, 200 if doc is not None else 404)

    async def create(self, document: Dict[str, Any]) -> StoreResponse:
        charge = await self._enter("create")
        key = self._key_of(document)
        if key in self._documents:
            raise StoreFailure(
                409,
                f"Document '{key[1]}' already exists",
                request_charge=charge,
                activity_id=str(uuid.uuid4()),
            )
        doc = self._stamp(copy.deepcopy(document))
        self._documents[key] = doc
        return self._response(doc, charge, 201)

    async def upsert(self, document: Dict[str, Any]) -> StoreResponse:
        charge = await self._enter("upsert")
        key = self._key_of(document)
        status = 200 if key in self._documents else 201
        doc = self._stamp(copy.deepcopy(document))
        self._documents[key] = doc
        return self._response(doc, charge, status)

    async def replace(
        self,
        document_id: str,
        partition_key: str,
        document: Dict[str, Any],
        condition: Optional[AccessCondition] = None,
    ) -> StoreResponse:
        charge = await self._enter("replace")
        key = (partition_key, document_id)
        self._check(key, condition, charge)
        doc = self._stamp(copy.deepcopy(document))
        doc["id"] = document_id
        doc[self.partition_key_field] = partition_key
        self._documents[key] = doc
        return self._response(doc, charge, 200)

    async def delete(
        self,
        document_id: str,
        partition_key: str,
        condition: Optional[AccessCondition] = None,
    ) -> StoreResponse:
        charge = await self._enter("delete")
        key = (partition_key, document_id)
        self._check(key, condition, charge)
        del self._documents[key]
        return self._response(None, charge, 204)
