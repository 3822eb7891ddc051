"""
Utility functions for the Document Store Client.

Includes time helpers, id generation and serialized-size estimation.
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict


def generate_id() -> str:
    """Generate a UUID string for a new document."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string, the format stored on documents."""
    return utc_now().isoformat()


def serialized_size(document: Dict[str, Any]) -> int:
    """Size in bytes of the document as the store would receive it (UTF-8 JSON)."""
    return len(json.dumps(document, default=str, separators=(",", ":")).encode("utf-8"))


def describe_type(value: Any) -> str:
    """Short type name for error details."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__
