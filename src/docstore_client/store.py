"""Store client protocol consumed by the mutation layer.

The mutation layer never talks to a concrete database; it drives any object
implementing ``DocumentStore``. Conditional writes are the only concurrency
primitive the store is assumed to offer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from .models import AccessCondition


@dataclass(frozen=True)
class StoreResponse:
    """Result of a successful store call.

    Attributes:
        resource: Document as stored, None for deletes
        version: Version token assigned by the store
        request_charge: Cost of the call in store units
        status_code: Store status (200 ok, 201 created, 204 deleted, 404 missing)
    """

    resource: Optional[Dict[str, Any]] = None
    version: Optional[str] = None
    request_charge: float = 0.0
    status_code: int = 200


class DocumentStore(Protocol):
    """Partitioned document store with per-document CAS.

    Failures are raised as ``StoreFailure`` (or any exception carrying a
    status code); the mutation layer classifies them.
    """

    async def read(self, document_id: str, partition_key: str) -> Optional[StoreResponse]:
        """Current document and version.

        A missing document is None, or a response with no resource that still
        reports the read's charge.
        """
        ...

    async def create(self, document: Dict[str, Any]) -> StoreResponse:
        """Insert a new document. Fails with status 409 if the id exists."""
        ...

    async def upsert(self, document: Dict[str, Any]) -> StoreResponse:
        """Insert or overwrite. Status 201 when created, 200 when replaced."""
        ...

    async def replace(
        self,
        document_id: str,
        partition_key: str,
        document: Dict[str, Any],
        condition: Optional[AccessCondition] = None,
    ) -> StoreResponse:
        """Overwrite an existing document.

        Fails with 404 when missing and 412 when ``condition`` does not hold.
        """
        ...

    async def delete(
        self,
        document_id: str,
        partition_key: str,
        condition: Optional[AccessCondition] = None,
    ) -> StoreResponse:
        """Remove a document. Same failure statuses as ``replace``."""
        ...
