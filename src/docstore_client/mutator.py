"""
Single-document mutations over a ``DocumentStore``.

Every mutation except create and upsert follows the same sequence inside one
retry-coordinated call: validate input, read the current document, check
existence and the caller's expected version, compute the new document,
validate its size, then write it back conditioned on the version that was
read. A lost race at the write step surfaces as ``VersionMismatchError``.
"""

from __future__ import annotations

import math
import random
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Dict, Iterator, Optional, TypedDict, TypeVar

from loguru import logger

from .arrays import apply_array_operation, decode_array_operation, is_array_operation
from .concurrency import build_access_condition, versions_match
from .config import Settings, get_settings
from .errors import (
    ConflictError,
    DocStoreError,
    NotFoundError,
    ValidationError,
    VersionMismatchError,
    classify_error,
)
from .metrics import metrics_registry
from .models import (
    CREATED_AT,
    DELETE_REASON,
    DELETED,
    DELETED_AT,
    DELETED_BY,
    RESTORED_AT,
    SYSTEM_FIELDS,
    UPDATED_AT,
    ConditionKind,
    DeleteResult,
    MutationResult,
    NumericResult,
    RestoreResult,
    SoftDeleteResult,
    UpsertResult,
)
from .retry import RetryConfig, RetryContext, RetryCoordinator, SleepFunc, apply_defaults
from .store import DocumentStore, StoreResponse
from .utils import generate_id, utc_now_iso
from .validation import (
    validate_document_size,
    validate_expected_version,
    validate_input_object,
    validate_numeric_amount,
    validate_numeric_field,
    validate_partition_key,
    validate_required_string,
)

R = TypeVar("R")

COMPONENT = "mutator"


class MutatorConfig(TypedDict, total=False):
    type_name: str
    partition_key_field: str
    max_document_bytes: int
    retry: RetryConfig


def _defaults(settings: Settings) -> MutatorConfig:
    return {
        "type_name": settings.TYPE_NAME,
        "partition_key_field": settings.PARTITION_KEY_FIELD,
        "max_document_bytes": settings.MAX_DOCUMENT_BYTES,
    }


class DocumentMutator:
    """Optimistic-concurrency mutations for one document type.

    Example:
        mutator = DocumentMutator(store, {"type_name": "User", "retry": {"max_attempts": 5}})
        created = await mutator.create({"partitionKey": "tenant-1", "name": "Ada"})
        updated = await mutator.update(
            created.data["id"], "tenant-1", {"tags": {"type": "append", "value": "admin"}},
            expected_version=created.version,
        )
    """

    def __init__(
        self,
        store: DocumentStore,
        cfg: Optional[MutatorConfig] = None,
        *,
        settings: Optional[Settings] = None,
        sleep: Optional[SleepFunc] = None,
        rng: Optional[random.Random] = None,
        log=None,
    ):
        settings = settings or get_settings()
        self.store = store
        self.cfg: MutatorConfig = {**_defaults(settings), **(cfg or {})}
        self.type_name = self.cfg["type_name"]
        self.partition_key_field = self.cfg["partition_key_field"]
        self.max_document_bytes = self.cfg["max_document_bytes"]
        self.log = log or logger.bind(component=COMPONENT, type_name=self.type_name)

        self.retry_config = apply_defaults(self.cfg.get("retry"), settings.retry_defaults())
        self._caller_should_retry = self.retry_config.should_retry
        self.coordinator = RetryCoordinator(
            self.retry_config, component=COMPONENT, sleep=sleep, rng=rng, log=self.log
        ).with_should_retry(self._should_retry)

    # ---------- retry policy ----------

    def _should_retry(self, error: DocStoreError, attempt: int) -> Optional[bool]:
        if isinstance(error, (ValidationError, VersionMismatchError, NotFoundError, ConflictError)):
            return False
        if self._caller_should_retry is not None:
            return self._caller_should_retry(error, attempt)
        return None

    async def _execute(self, kind: str, attempt: Callable[[], Awaitable[R]]) -> R:
        ctx = RetryContext()
        try:
            result = await self.coordinator.run(attempt, context=ctx)
        except DocStoreError as err:
            metrics_registry.mutations_total.labels(kind=kind, outcome=err.kind.value).inc()
            self.log.debug(f"{kind} failed: {err.code} {err.message}")
            raise
        result = result.model_copy(update={"retry_charge": ctx.total_cost_consumed})
        metrics_registry.mutations_total.labels(kind=kind, outcome="success").inc()
        metrics_registry.request_charge.labels(kind=kind).observe(result.total_charge)
        return result

    # ---------- shared steps ----------

    def _details(self, document_id: Optional[str], partition_key: Optional[str], **extra: Any) -> Dict[str, Any]:
        return {
            "type_name": self.type_name,
            "document_id": document_id,
            "partition_key": partition_key,
            **extra,
        }

    def _validate_target(self, document_id: Any, partition_key: Any, expected_version: Any):
        return (
            validate_required_string(document_id, "id", COMPONENT),
            validate_partition_key(partition_key, COMPONENT),
            validate_expected_version(expected_version, COMPONENT),
        )

    def _writable(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Drop system fields, which callers may never set."""
        return {
            k: v for k, v in data.items() if k not in SYSTEM_FIELDS and k != self.partition_key_field
        }

    async def _read_current(self, document_id: str, partition_key: str) -> StoreResponse:
        current = await self.store.read(document_id, partition_key)
        if current is None or current.resource is None:
            raise NotFoundError(
                f'Document with id "{document_id}" not found in {self.type_name}',
                component=COMPONENT,
                status_code=404,
                request_charge=current.request_charge if current is not None else 0.0,
                details=self._details(document_id, partition_key),
            )
        return current

    @contextmanager
    def _billed_read(self, current: StoreResponse) -> Iterator[None]:
        """Add the read's charge to any error raised after the read succeeded."""
        try:
            yield
        except DocStoreError as err:
            err.request_charge += current.request_charge
            err.total_request_charge = err.request_charge
            raise

    def _check_version(self, expected: Optional[str], current: StoreResponse, document_id: str) -> None:
        if expected is None or versions_match(expected, current.version):
            return
        raise VersionMismatchError(
            f'Version mismatch for {self.type_name} document "{document_id}". Document has been modified.',
            provided_version=expected,
            current_version=current.version,
            current_document=current.resource,
            component=COMPONENT,
            details=self._details(document_id, current.resource.get(self.partition_key_field)),
        )

    async def _conditional_replace(
        self,
        document_id: str,
        partition_key: str,
        document: Dict[str, Any],
        current: StoreResponse,
    ) -> StoreResponse:
        validate_document_size(document, self.max_document_bytes, COMPONENT)
        condition = build_access_condition(current.version, ConditionKind.IF_MATCH)
        try:
            return await self.store.replace(document_id, partition_key, document, condition)
        except Exception as exc:
            raise self._write_error(exc, document_id, partition_key, current.version) from exc

    def _write_error(
        self, exc: Exception, document_id: str, partition_key: str, read_version: Optional[str]
    ) -> DocStoreError:
        error = classify_error(exc, COMPONENT)
        if isinstance(error, VersionMismatchError):
            return VersionMismatchError(
                f'{self.type_name} document "{document_id}" was modified concurrently',
                provided_version=read_version,
                component=COMPONENT,
                status_code=error.status_code,
                activity_id=error.activity_id,
                request_charge=error.request_charge,
                details=self._details(document_id, partition_key),
            )
        if isinstance(error, ConflictError):
            return ConflictError(
                f'{self.type_name} document with id "{document_id}" already exists',
                component=COMPONENT,
                status_code=error.status_code,
                activity_id=error.activity_id,
                request_charge=error.request_charge,
                details=self._details(document_id, partition_key),
            )
        return error

    # ---------- create / upsert ----------

    async def create(self, input: Dict[str, Any], *, document_id: Optional[str] = None) -> MutationResult:
        data = validate_input_object(input, COMPONENT)
        partition_key = validate_partition_key(data.get(self.partition_key_field), COMPONENT)
        if document_id is not None:
            document_id = validate_required_string(document_id, "id", COMPONENT)
        doc_id = document_id or generate_id()
        fields = self._writable(data)

        async def attempt() -> MutationResult:
            now = utc_now_iso()
            document = {
                **fields,
                "id": doc_id,
                self.partition_key_field: partition_key,
                CREATED_AT: now,
                UPDATED_AT: now,
            }
            validate_document_size(document, self.max_document_bytes, COMPONENT)
            try:
                response = await self.store.create(document)
            except Exception as exc:
                raise self._write_error(exc, doc_id, partition_key, None) from exc
            return MutationResult(
                data=response.resource or document,
                version=response.version or "",
                request_charge=response.request_charge,
            )

        return await self._execute("create", attempt)

    async def upsert(self, document_id: str, partition_key: str, input: Dict[str, Any]) -> UpsertResult:
        doc_id, pk, _ = self._validate_target(document_id, partition_key, None)
        fields = self._writable(validate_input_object(input, COMPONENT))

        async def attempt() -> UpsertResult:
            now = utc_now_iso()
            document = {
                **fields,
                "id": doc_id,
                self.partition_key_field: pk,
                CREATED_AT: now,
                UPDATED_AT: now,
            }
            validate_document_size(document, self.max_document_bytes, COMPONENT)
            try:
                response = await self.store.upsert(document)
            except Exception as exc:
                raise self._write_error(exc, doc_id, pk, None) from exc
            return UpsertResult(
                data=response.resource or document,
                version=response.version or "",
                request_charge=response.request_charge,
                created=response.status_code == 201,
            )

        return await self._execute("upsert", attempt)

    # ---------- update / replace ----------

    async def update(
        self,
        document_id: str,
        partition_key: str,
        input: Dict[str, Any],
        *,
        expected_version: Optional[str] = None,
    ) -> MutationResult:
        doc_id, pk, expected = self._validate_target(document_id, partition_key, expected_version)
        changes = self._writable(validate_input_object(input, COMPONENT))
        operations = {
            key: decode_array_operation(value, field=key)
            for key, value in changes.items()
            if is_array_operation(value)
        }

        async def attempt() -> MutationResult:
            current = await self._read_current(doc_id, pk)
            with self._billed_read(current):
                self._check_version(expected, current, doc_id)

                document = dict(current.resource)
                for key, value in changes.items():
                    if key in operations:
                        document[key] = apply_array_operation(document.get(key), operations[key], field=key)
                    else:
                        document[key] = value
                document.update({"id": doc_id, self.partition_key_field: pk, UPDATED_AT: utc_now_iso()})

                response = await self._conditional_replace(doc_id, pk, document, current)
            return MutationResult(
                data=response.resource or document,
                version=response.version or "",
                request_charge=current.request_charge + response.request_charge,
            )

        return await self._execute("update", attempt)

    async def replace(
        self,
        document_id: str,
        partition_key: str,
        input: Dict[str, Any],
        *,
        expected_version: Optional[str] = None,
    ) -> MutationResult:
        doc_id, pk, expected = self._validate_target(document_id, partition_key, expected_version)
        fields = self._writable(validate_input_object(input, COMPONENT))

        async def attempt() -> MutationResult:
            current = await self._read_current(doc_id, pk)
            with self._billed_read(current):
                self._check_version(expected, current, doc_id)

                # soft-delete state survives a replace
                carried = {k: current.resource[k] for k in SYSTEM_FIELDS if k in current.resource}
                carried.pop("version", None)
                document = {
                    **fields,
                    **carried,
                    "id": doc_id,
                    self.partition_key_field: pk,
                    UPDATED_AT: utc_now_iso(),
                }

                response = await self._conditional_replace(doc_id, pk, document, current)
            return MutationResult(
                data=response.resource or document,
                version=response.version or "",
                request_charge=current.request_charge + response.request_charge,
            )

        return await self._execute("replace", attempt)

    # ---------- delete / soft delete / restore ----------

    async def delete(
        self,
        document_id: str,
        partition_key: str,
        *,
        expected_version: Optional[str] = None,
    ) -> DeleteResult:
        doc_id, pk, expected = self._validate_target(document_id, partition_key, expected_version)

        async def attempt() -> DeleteResult:
            current = await self._read_current(doc_id, pk)
            with self._billed_read(current):
                self._check_version(expected, current, doc_id)
                condition = build_access_condition(current.version, ConditionKind.IF_MATCH)
                try:
                    response = await self.store.delete(doc_id, pk, condition)
                except Exception as exc:
                    raise self._write_error(exc, doc_id, pk, current.version) from exc
            return DeleteResult(
                deleted_id=doc_id,
                request_charge=current.request_charge + response.request_charge,
            )

        return await self._execute("delete", attempt)

    async def soft_delete(
        self,
        document_id: str,
        partition_key: str,
        *,
        expected_version: Optional[str] = None,
        deleted_by: Optional[str] = None,
        delete_reason: Optional[str] = None,
    ) -> SoftDeleteResult:
        doc_id, pk, expected = self._validate_target(document_id, partition_key, expected_version)
        for name, value in (("deleted_by", deleted_by), ("delete_reason", delete_reason)):
            if value is not None and not isinstance(value, str):
                raise ValidationError(
                    f"{name} must be a string",
                    component=COMPONENT,
                    details=self._details(doc_id, pk, field=name, provided_type=type(value).__name__),
                )

        async def attempt() -> SoftDeleteResult:
            current = await self._read_current(doc_id, pk)
            if current.resource.get(DELETED) is True:
                return SoftDeleteResult(
                    deleted_id=doc_id,
                    version=current.version or "",
                    data=current.resource,
                    already_deleted=True,
                    request_charge=current.request_charge,
                )
            with self._billed_read(current):
                self._check_version(expected, current, doc_id)

                now = utc_now_iso()
                document = {
                    **current.resource,
                    DELETED: True,
                    DELETED_AT: now,
                    RESTORED_AT: None,
                    UPDATED_AT: now,
                }
                if deleted_by:
                    document[DELETED_BY] = deleted_by
                if delete_reason:
                    document[DELETE_REASON] = delete_reason

                response = await self._conditional_replace(doc_id, pk, document, current)
            return SoftDeleteResult(
                deleted_id=doc_id,
                version=response.version or "",
                data=response.resource or document,
                request_charge=current.request_charge + response.request_charge,
            )

        return await self._execute("soft_delete", attempt)

    async def restore(
        self,
        document_id: str,
        partition_key: str,
        *,
        expected_version: Optional[str] = None,
    ) -> RestoreResult:
        doc_id, pk, expected = self._validate_target(document_id, partition_key, expected_version)

        async def attempt() -> RestoreResult:
            current = await self._read_current(doc_id, pk)
            with self._billed_read(current):
                self._check_version(expected, current, doc_id)
                if current.resource.get(DELETED) is not True:
                    raise ValidationError(
                        f'Document "{doc_id}" is not soft-deleted and cannot be restored',
                        component=COMPONENT,
                        details=self._details(doc_id, pk, deleted_status=current.resource.get(DELETED)),
                    )

                now = utc_now_iso()
                document = {
                    **current.resource,
                    DELETED: False,
                    DELETED_AT: None,
                    DELETED_BY: None,
                    DELETE_REASON: None,
                    RESTORED_AT: now,
                    UPDATED_AT: now,
                }
                response = await self._conditional_replace(doc_id, pk, document, current)
            return RestoreResult(
                data=response.resource or document,
                version=response.version or "",
                request_charge=current.request_charge + response.request_charge,
                restored_at=now,
            )

        return await self._execute("restore", attempt)

    # ---------- atomic numeric ----------

    async def increment(
        self,
        document_id: str,
        partition_key: str,
        field: str,
        by: float = 1,
        *,
        expected_version: Optional[str] = None,
    ) -> NumericResult:
        return await self._adjust("increment", document_id, partition_key, field, by, expected_version)

    async def decrement(
        self,
        document_id: str,
        partition_key: str,
        field: str,
        by: float = 1,
        *,
        expected_version: Optional[str] = None,
    ) -> NumericResult:
        return await self._adjust("decrement", document_id, partition_key, field, by, expected_version)

    async def _adjust(
        self,
        kind: str,
        document_id: Any,
        partition_key: Any,
        field: Any,
        by: Any,
        expected_version: Any,
    ) -> NumericResult:
        doc_id, pk, expected = self._validate_target(document_id, partition_key, expected_version)
        field = validate_required_string(field, "field", COMPONENT)
        if field in SYSTEM_FIELDS or field == self.partition_key_field:
            raise ValidationError(
                f"Field '{field}' is a system field and cannot be {kind}ed",
                component=COMPONENT,
                details=self._details(doc_id, pk, field=field),
            )
        amount = validate_numeric_amount(by, "by", COMPONENT)
        sign = 1 if kind == "increment" else -1

        async def attempt() -> NumericResult:
            current = await self._read_current(doc_id, pk)
            with self._billed_read(current):
                self._check_version(expected, current, doc_id)
                previous = validate_numeric_field(current.resource, field, COMPONENT)
                new_value = previous + sign * amount
                if not math.isfinite(new_value):
                    raise ValidationError(
                        f"Result of {kind} on '{field}' is not a finite number",
                        component=COMPONENT,
                        details=self._details(doc_id, pk, field=field, previous_value=previous, by=amount),
                    )
                document = {**current.resource, field: new_value, UPDATED_AT: utc_now_iso()}

                response = await self._conditional_replace(doc_id, pk, document, current)
            return NumericResult(
                data=response.resource or document,
                version=response.version or "",
                request_charge=current.request_charge + response.request_charge,
                previous_value=previous,
                new_value=new_value,
            )

        return await self._execute(kind, attempt)
