"""
Document Store Client Library

Optimistic-concurrency mutations over a partitioned document store: typed
error classification, coordinated retries with a cost budget, version-checked
single-document mutations and failure-isolated batches.

Usage:
    from docstore_client import DocumentMutator, BatchExecutor, InMemoryDocumentStore

    store = InMemoryDocumentStore()
    mutator = DocumentMutator(store, {"type_name": "User", "retry": {"max_attempts": 5}})
    created = await mutator.create({"partitionKey": "tenant-1", "name": "Ada"})
    await mutator.increment(created.data["id"], "tenant-1", "logins", expected_version=created.version)

    batch = BatchExecutor(mutator)
    result = await batch.create_many([{"partitionKey": "tenant-1", "name": "Grace"}])

Logging uses loguru and is disabled by default; enable it with
``logger.enable("docstore_client")``.
"""

from loguru import logger

from .batch import BatchConfig, BatchExecutor, BatchItemFailure, BatchItemSuccess, BatchResult
from .concurrency import build_access_condition, normalize_version, versions_match
from .config import Settings, get_settings
from .errors import (
    ConfigurationError,
    ConflictError,
    DocStoreError,
    ErrorKind,
    NotFoundError,
    RetryBudgetExhaustedError,
    StoreFailure,
    ValidationError,
    VersionMismatchError,
    classify_error,
    is_retryable,
)
from .memory import InMemoryDocumentStore
from .models import (
    AccessCondition,
    ConditionKind,
    DeleteResult,
    MutationResult,
    NumericResult,
    RestoreResult,
    SoftDeleteResult,
    UpsertResult,
)
from .mutator import DocumentMutator, MutatorConfig
from .operations import OperationConfig, build_mutation_api, is_operation_enabled, resolver_name
from .retry import (
    ResolvedRetryConfig,
    RetryConfig,
    RetryContext,
    RetryCoordinator,
    RetryStrategy,
    apply_defaults,
    compute_delay,
    with_retry,
)
from .store import DocumentStore, StoreResponse

logger.disable("docstore_client")

__version__ = "1.0.0"
__all__ = [
    "AccessCondition",
    "BatchConfig",
    "BatchExecutor",
    "BatchItemFailure",
    "BatchItemSuccess",
    "BatchResult",
    "ConditionKind",
    "ConfigurationError",
    "ConflictError",
    "DeleteResult",
    "DocStoreError",
    "DocumentMutator",
    "DocumentStore",
    "ErrorKind",
    "InMemoryDocumentStore",
    "MutationResult",
    "MutatorConfig",
    "NotFoundError",
    "NumericResult",
    "OperationConfig",
    "ResolvedRetryConfig",
    "RestoreResult",
    "RetryBudgetExhaustedError",
    "RetryConfig",
    "RetryContext",
    "RetryCoordinator",
    "RetryStrategy",
    "Settings",
    "SoftDeleteResult",
    "StoreFailure",
    "StoreResponse",
    "UpsertResult",
    "ValidationError",
    "VersionMismatchError",
    "apply_defaults",
    "build_access_condition",
    "build_mutation_api",
    "classify_error",
    "compute_delay",
    "get_settings",
    "is_operation_enabled",
    "is_retryable",
    "normalize_version",
    "resolver_name",
    "versions_match",
    "with_retry",
]
