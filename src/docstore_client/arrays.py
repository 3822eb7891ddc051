"""
Array operations applied by update mutations.

An update input value is treated as an array operation when it is one of the
operation models, or a mapping whose ``type`` names a known operation. Such a
mapping is decoded strictly: a malformed operation is a validation failure,
not a plain value.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

import pydantic

from .errors import ValidationError
from .models import (
    ARRAY_OPERATION_TYPES,
    AppendOp,
    InsertOp,
    PrependOp,
    RemoveOp,
    SetOp,
    SpliceOp,
    _ArrayOp,
    array_operation_adapter,
)


def is_array_operation(value: Any) -> bool:
    if isinstance(value, _ArrayOp):
        return True
    if not isinstance(value, Mapping):
        return False
    tag = value.get("type")
    return isinstance(tag, str) and tag in ARRAY_OPERATION_TYPES


def decode_array_operation(raw: Any, *, field: Optional[str] = None) -> _ArrayOp:
    """Decode a raw mapping into a typed array operation.

    Raises:
        ValidationError: unknown tag, missing or extra keys, bad index
    """
    if isinstance(raw, _ArrayOp):
        return raw
    try:
        return array_operation_adapter.validate_python(raw)
    except pydantic.ValidationError as exc:
        raise ValidationError(
            f"Invalid array operation for field '{field}': {exc.errors()[0]['msg']}",
            component="array-operations",
            details={"field": field, "operation": raw, "errors": exc.errors(include_url=False)},
        ) from exc


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def apply_array_operation(current: Any, operation: _ArrayOp, *, field: Optional[str] = None) -> List[Any]:
    """Return a new list with ``operation`` applied to ``current``.

    A missing (None) current value is treated as an empty list. ``current`` is
    never mutated.
    """
    if current is None:
        current = []
    if not isinstance(current, (list, tuple)):
        raise ValidationError(
            f"Field '{field}' is not an array",
            component="array-operations",
            details={"field": field, "operation": operation.type, "actual_type": type(current).__name__},
        )
    items = list(current)
    details = {"field": field, "operation": operation.type, "length": len(items)}

    if isinstance(operation, SetOp):
        return _as_list(operation.value)

    if isinstance(operation, AppendOp):
        return items + _as_list(operation.value)

    if isinstance(operation, PrependOp):
        return _as_list(operation.value) + items

    if isinstance(operation, RemoveOp):
        unwanted = _as_list(operation.value)
        return [item for item in items if item not in unwanted]

    if isinstance(operation, InsertOp):
        if operation.index > len(items):
            raise ValidationError(
                f"INSERT index {operation.index} out of bounds (0-{len(items)})",
                component="array-operations",
                details={**details, "index": operation.index},
            )
        items.insert(operation.index, operation.value)
        return items

    if isinstance(operation, SpliceOp):
        if operation.index >= len(items):
            raise ValidationError(
                f"SPLICE index {operation.index} out of bounds (0-{len(items) - 1})",
                component="array-operations",
                details={**details, "index": operation.index},
            )
        end = operation.index + operation.delete_count
        replacement = [] if operation.value is None else _as_list(operation.value)
        items[operation.index : end] = replacement
        return items

    raise ValidationError(
        f"Invalid array operation type: {operation.type}",
        component="array-operations",
        details=details,
    )
