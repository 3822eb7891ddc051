"""
Operation selection and naming for the produced mutation API.

``OperationConfig`` chooses which mutation kinds are exposed and under which
names; ``build_mutation_api`` turns a mutator and batch executor into a
name -> coroutine function mapping honouring that choice.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Mapping, Optional

from .batch import BatchExecutor
from .errors import ConfigurationError
from .mutator import DocumentMutator

SINGLE_OPERATIONS = (
    "create",
    "upsert",
    "update",
    "replace",
    "delete",
    "soft_delete",
    "restore",
    "increment",
    "decrement",
)
BATCH_OPERATIONS = ("create_many", "update_many", "delete_many", "soft_delete_many")
VALID_OPERATIONS: FrozenSet[str] = frozenset(SINGLE_OPERATIONS + BATCH_OPERATIONS)

MutationFn = Callable[..., Awaitable[Any]]


def _invalid(message: str, **details: Any) -> ConfigurationError:
    return ConfigurationError(message, component="operations", details=details)


@dataclass(frozen=True)
class OperationConfig:
    """Which operations are exposed and what they are called.

    ``include`` None means every operation; a ``rename`` to None hides the
    operation.
    """

    include: Optional[FrozenSet[str]] = None
    exclude: FrozenSet[str] = frozenset()
    rename: Mapping[str, Optional[str]] = field(default_factory=dict)

    def __post_init__(self):
        if self.include is not None:
            object.__setattr__(self, "include", frozenset(self.include))
        object.__setattr__(self, "exclude", frozenset(self.exclude or ()))
        object.__setattr__(self, "rename", dict(self.rename or {}))
        self.validate()

    def validate(self) -> None:
        named = [*(self.include or ()), *self.exclude, *self.rename]
        for operation in named:
            if operation not in VALID_OPERATIONS:
                raise _invalid(
                    f"Invalid operation: '{operation}'. Valid operations are: "
                    f"{', '.join(sorted(VALID_OPERATIONS))}",
                    operation=operation,
                )

        conflicts = sorted((self.include or frozenset()) & self.exclude)
        if conflicts:
            raise _invalid(
                f"Operations cannot be in both include and exclude lists: {', '.join(conflicts)}",
                operations=conflicts,
            )

        for operation, name in self.rename.items():
            if name is not None and (not isinstance(name, str) or not name.strip()):
                raise _invalid(
                    f"Rename for '{operation}' must be a non-empty string or None",
                    operation=operation,
                )

        seen: Dict[str, str] = {}
        for operation in sorted(VALID_OPERATIONS):
            name = resolver_name(operation, self)
            if name is None or not is_operation_enabled(operation, self):
                continue
            if name in seen:
                raise _invalid(
                    f"Operations '{seen[name]}' and '{operation}' resolve to the same name '{name}'",
                    name=name,
                )
            seen[name] = operation


def is_operation_enabled(operation: str, config: Optional[OperationConfig] = None) -> bool:
    if config is None:
        return True
    if operation in config.exclude:
        return False
    if config.include is not None and operation not in config.include:
        return False
    if operation in config.rename and config.rename[operation] is None:
        return False
    return True


def resolver_name(operation: str, config: Optional[OperationConfig] = None) -> Optional[str]:
    if config is None or operation not in config.rename:
        return operation
    return config.rename[operation]


def build_mutation_api(
    mutator: DocumentMutator,
    batch: Optional[BatchExecutor] = None,
    config: Optional[OperationConfig] = None,
) -> Dict[str, MutationFn]:
    """Map each enabled operation's (possibly renamed) name to its coroutine function.

    Batch operations are only exposed when ``batch`` is given.
    """
    available: Dict[str, MutationFn] = {op: getattr(mutator, op) for op in SINGLE_OPERATIONS}
    if batch is not None:
        available.update({op: getattr(batch, op) for op in BATCH_OPERATIONS})

    api: Dict[str, MutationFn] = {}
    for operation, fn in available.items():
        if not is_operation_enabled(operation, config):
            continue
        api[resolver_name(operation, config)] = fn
    return api
