from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Type, TypeVar

import pydantic
from loguru import logger

from .config import Settings, get_settings
from .errors import DocStoreError, ValidationError, classify_error
from .metrics import metrics_registry
from .models import DeleteManyItem, SoftDeleteManyItem, UpdateManyItem
from .mutator import DocumentMutator

M = TypeVar("M", bound=pydantic.BaseModel)


@dataclass(frozen=True)
class BatchConfig:
    """Configuration for batch mutations."""

    max_batch_size: int = 100
    concurrency: Optional[int] = None  # None = all items at once


@dataclass
class BatchItemSuccess:
    index: int
    id: str
    data: Optional[dict]
    version: Optional[str]
    request_charge: float = 0.0
    retry_charge: float = 0.0


@dataclass
class BatchItemFailure:
    index: int
    input: Any
    error: DocStoreError

    @property
    def message(self) -> str:
        return self.error.message


@dataclass
class BatchResult:
    """Outcome of a batch. Every input index lands in exactly one list."""

    succeeded: List[BatchItemSuccess] = field(default_factory=list)
    failed: List[BatchItemFailure] = field(default_factory=list)
    total_request_charge: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failed

    def failed_indexes(self) -> List[int]:
        return sorted(f.index for f in self.failed)


class BatchExecutor:
    """
    Runs many independent mutations concurrently with per-item failure isolation.

    Usage:

        batch = BatchExecutor(mutator, BatchConfig(concurrency=10))
        result = await batch.create_many([{"partitionKey": "t1", "name": "a"}, ...])
        for failure in result.failed:
            print(failure.index, failure.error.code)
    """

    def __init__(
        self,
        mutator: DocumentMutator,
        config: Optional[BatchConfig] = None,
        *,
        settings: Optional[Settings] = None,
        log=None,
    ):
        if config is None:
            settings = settings or get_settings()
            config = BatchConfig(
                max_batch_size=settings.MAX_BATCH_SIZE, concurrency=settings.BATCH_CONCURRENCY
            )
        self._mutator = mutator
        self._cfg = config
        self.log = log or logger.bind(component="batch", type_name=mutator.type_name)

    # --------------- public API

    async def create_many(self, inputs: Sequence[Any]) -> BatchResult:
        async def create(raw: Any):
            return await self._mutator.create(raw)

        return await self._run("create_many", inputs, create)

    async def update_many(self, items: Sequence[Any]) -> BatchResult:
        async def update(raw: Any):
            item = self._decode(UpdateManyItem, raw)
            return await self._mutator.update(
                item.id, item.partition_key, item.data, expected_version=item.expected_version
            )

        return await self._run("update_many", items, update)

    async def delete_many(self, items: Sequence[Any]) -> BatchResult:
        async def delete(raw: Any):
            item = self._decode(DeleteManyItem, raw)
            return await self._mutator.delete(
                item.id, item.partition_key, expected_version=item.expected_version
            )

        return await self._run("delete_many", items, delete)

    async def soft_delete_many(self, items: Sequence[Any]) -> BatchResult:
        async def soft_delete(raw: Any):
            item = self._decode(SoftDeleteManyItem, raw)
            return await self._mutator.soft_delete(
                item.id,
                item.partition_key,
                expected_version=item.expected_version,
                deleted_by=item.deleted_by,
                delete_reason=item.delete_reason,
            )

        return await self._run("soft_delete_many", items, soft_delete)

    # --------------- internals

    def _decode(self, model: Type[M], raw: Any) -> M:
        try:
            return model.model_validate(raw)
        except pydantic.ValidationError as exc:
            first = exc.errors()[0]
            raise ValidationError(
                f"Invalid batch item: {'.'.join(str(p) for p in first['loc'])} {first['msg']}",
                component="batch",
                details={"errors": exc.errors(include_url=False)},
            ) from exc

    def _check_size(self, operation: str, items: Any) -> list:
        if not isinstance(items, (list, tuple)):
            raise ValidationError(
                f"{operation} requires a list of items",
                component="batch",
                details={"operation": operation, "provided_type": type(items).__name__},
            )
        if len(items) > self._cfg.max_batch_size:
            raise ValidationError(
                f"Batch size exceeds maximum of {self._cfg.max_batch_size} items for "
                f"{self._mutator.type_name} {operation}",
                component="batch",
                details={
                    "operation": operation,
                    "batch_size": len(items),
                    "max_batch_size": self._cfg.max_batch_size,
                },
            )
        return list(items)

    async def _run(
        self,
        operation: str,
        items: Sequence[Any],
        fn: Callable[[Any], Awaitable[Any]],
    ) -> BatchResult:
        items = self._check_size(operation, items)
        result = BatchResult()
        if not items:
            return result

        sem = asyncio.Semaphore(self._cfg.concurrency) if self._cfg.concurrency else None

        async def one(raw: Any):
            try:
                if sem is None:
                    return await fn(raw)
                async with sem:
                    return await fn(raw)
            except Exception as exc:
                return classify_error(exc, "batch")

        outcomes = await asyncio.gather(*(one(raw) for raw in items))

        for index, (raw, outcome) in enumerate(zip(items, outcomes)):
            if isinstance(outcome, DocStoreError):
                result.failed.append(BatchItemFailure(index=index, input=raw, error=outcome))
                result.total_request_charge += outcome.total_request_charge
                metrics_registry.batch_items_total.labels(operation=operation, outcome="failure").inc()
                continue
            data = getattr(outcome, "data", None)
            result.succeeded.append(
                BatchItemSuccess(
                    index=index,
                    id=getattr(outcome, "deleted_id", None) or (data or {}).get("id"),
                    data=data,
                    version=getattr(outcome, "version", None),
                    request_charge=outcome.request_charge,
                    retry_charge=outcome.retry_charge,
                )
            )
            result.total_request_charge += outcome.request_charge + outcome.retry_charge
            metrics_registry.batch_items_total.labels(operation=operation, outcome="success").inc()

        self.log.info(
            f"{operation}: {len(result.succeeded)} succeeded, {len(result.failed)} failed, "
            f"charge={result.total_request_charge}"
        )
        return result
