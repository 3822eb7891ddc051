"""
Optimistic concurrency helpers.

Version tokens are opaque strings assigned by the store. Stores and callers do
not agree on quoting (``"abc"`` vs ``abc``), so every comparison goes through
``normalize_version``.
"""

from __future__ import annotations

from typing import Optional, Union

from .errors import ValidationError
from .models import AccessCondition, ConditionKind

_QUOTES = ('"', "'")


def normalize_version(token: Optional[str]) -> Optional[str]:
    """Trim whitespace and strip one layer of matching quotes.

    Returns None for a missing or empty token. Normalizing twice gives the
    same result, except for tokens wrapped in more than one layer of quotes:
    ``'""abc""'`` becomes ``'"abc"'`` and only a second call reaches ``abc``.
    Stores never emit such tokens, and peeling every layer would make
    ``"abc"`` and ``""abc""`` the same version.
    """
    if token is None:
        return None
    value = str(token).strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in _QUOTES:
        value = value[1:-1].strip()
    return value or None


def versions_match(provided: Optional[str], current: Optional[str]) -> bool:
    a = normalize_version(provided)
    b = normalize_version(current)
    if a is None and b is None:
        return True
    if a is None or b is None:
        return False
    return a == b


def build_access_condition(
    token: Optional[str],
    kind: Union[ConditionKind, str] = ConditionKind.IF_MATCH,
) -> AccessCondition:
    """Build the precondition for a conditional write.

    Raises:
        ValidationError: token is missing or blank, or kind is unknown
    """
    if token is None or not str(token).strip():
        raise ValidationError(
            "Access condition requires a non-empty version token",
            component="concurrency",
            details={"token": token},
        )
    try:
        condition_kind = ConditionKind(kind)
    except ValueError:
        raise ValidationError(
            f"Unknown access condition kind: {kind}",
            component="concurrency",
            details={"kind": str(kind)},
        ) from None
    return AccessCondition(kind=condition_kind, token=str(token).strip())
