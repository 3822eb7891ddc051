"""
Input validators shared by mutations and batches.

All failures raise ``ValidationError`` with the offending field, the provided
value's type and the expected constraint in ``details``.
"""

from __future__ import annotations

import math
import re
from typing import Any, Dict, Mapping, Optional

from .errors import ValidationError
from .models import SYSTEM_FIELDS
from .utils import describe_type, serialized_size

MAX_PARTITION_KEY_LENGTH = 2048
DEFAULT_MAX_DOCUMENT_BYTES = 2 * 1024 * 1024

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")


def validate_required_string(value: Any, field_name: str, component: str = "validation") -> str:
    """Return ``value`` stripped; reject None, non-strings and blank strings."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(
            f"{field_name} is required and must be a non-empty string",
            component=component,
            details={"field": field_name, "provided_type": describe_type(value)},
        )
    return value.strip()


def validate_partition_key(value: Any, component: str = "validation") -> str:
    # checked before stripping: str.strip() also removes \x1c-\x1f and \x85
    if isinstance(value, str) and _CONTROL_CHARS.search(value):
        raise ValidationError(
            "Partition key contains invalid control characters",
            component=component,
            details={"field": "partition key"},
        )
    value = validate_required_string(value, "partition key", component)
    if len(value) > MAX_PARTITION_KEY_LENGTH:
        raise ValidationError(
            f"Partition key exceeds maximum length of {MAX_PARTITION_KEY_LENGTH} characters",
            component=component,
            details={"provided_length": len(value), "max_length": MAX_PARTITION_KEY_LENGTH},
        )
    return value


def validate_input_object(value: Any, component: str = "validation") -> Dict[str, Any]:
    if not isinstance(value, Mapping):
        raise ValidationError(
            "Input must be an object",
            component=component,
            details={"provided_type": describe_type(value), "expected": "object"},
        )
    return dict(value)


def validate_expected_version(value: Any, component: str = "validation") -> Optional[str]:
    """None means "no version check"; anything else must be a non-empty string."""
    if value is None:
        return None
    return validate_required_string(value, "expected version", component)


def validate_numeric_amount(value: Any, field_name: str = "by", component: str = "validation") -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError(
            f"{field_name} must be a finite number",
            component=component,
            details={"field": field_name, "provided_type": describe_type(value), "provided_value": repr(value)},
        )
    return value


def validate_numeric_field(document: Mapping[str, Any], field: str, component: str = "validation") -> float:
    """Current value of ``field`` on ``document``; must exist and be a finite number."""
    if field in SYSTEM_FIELDS:
        raise ValidationError(
            f"Field '{field}' is a system field and cannot be modified",
            component=component,
            details={"field": field},
        )
    if field not in document:
        raise ValidationError(
            f"Field '{field}' does not exist on document",
            component=component,
            details={"field": field, "expected": "number"},
        )
    value = document[field]
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError(
            f"Field '{field}' is not a number",
            component=component,
            details={"field": field, "provided_type": describe_type(value), "expected": "number"},
        )
    return value


def validate_document_size(
    document: Dict[str, Any],
    max_bytes: int = DEFAULT_MAX_DOCUMENT_BYTES,
    component: str = "validation",
) -> int:
    size = serialized_size(document)
    if size > max_bytes:
        raise ValidationError(
            f"Document size {size} bytes exceeds maximum of {max_bytes} bytes",
            component=component,
            details={"size_bytes": size, "max_bytes": max_bytes, "document_id": document.get("id")},
        )
    return size
