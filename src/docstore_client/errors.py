"""
Error types and failure classification for the Document Store Client.

Raw failures coming out of a store client (``StoreFailure`` or any SDK-style
exception carrying a status code) are translated into one typed hierarchy by
``classify_error``. Every error exposes an ``ErrorKind`` and a ``retryable``
verdict that the retry coordinator uses as its default decision.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Closed set of error kinds produced by the client."""

    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    VERSION_MISMATCH = "version_mismatch"
    BAD_INPUT = "bad_input"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    INTERNAL = "internal"
    BAD_GATEWAY = "bad_gateway"
    GATEWAY_TIMEOUT = "gateway_timeout"
    BUDGET_EXHAUSTED = "budget_exhausted"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.RATE_LIMITED,
        ErrorKind.UNAVAILABLE,
        ErrorKind.TIMEOUT,
        ErrorKind.INTERNAL,
        ErrorKind.BAD_GATEWAY,
        ErrorKind.GATEWAY_TIMEOUT,
    }
)


def is_retryable_kind(kind: ErrorKind) -> bool:
    """Default retry verdict for an error kind."""
    return kind in RETRYABLE_KINDS


class StoreFailure(Exception):
    """Raw failure raised by a store client.

    Carries only what the remote store reported; classification into the typed
    hierarchy happens in ``classify_error``.
    """

    def __init__(
        self,
        status_code: int,
        message: str = "",
        *,
        retry_after_ms: Optional[float] = None,
        activity_id: Optional[str] = None,
        request_charge: Optional[float] = None,
        substatus: Optional[int] = None,
    ) -> None:
        super().__init__(message or f"store request failed with status {status_code}")
        self.status_code = status_code
        self.message = message
        self.retry_after_ms = retry_after_ms
        self.activity_id = activity_id
        self.request_charge = request_charge
        self.substatus = substatus


class DocStoreError(Exception):
    """Base error for all Document Store Client failures.

    Attributes:
        message: Human readable message
        kind: Error kind used for retry decisions
        component: Component that raised or classified the error
        status_code: Store status code, when the error came from the store
        activity_id: Store diagnostic id
        request_charge: Cost incurred by the failed call
        retry_after_ms: Retry hint reported by the store
        details: Structured context (document id, partition key, field, ...)
        total_request_charge: Cost of every attempt of the coordinated call
    """

    default_kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        *,
        kind: Optional[ErrorKind] = None,
        component: str = "docstore",
        status_code: Optional[int] = None,
        activity_id: Optional[str] = None,
        request_charge: float = 0.0,
        retry_after_ms: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind
        self.component = component
        self.status_code = status_code
        self.activity_id = activity_id
        self.request_charge = float(request_charge or 0.0)
        self.retry_after_ms = retry_after_ms
        self.details: Dict[str, Any] = details or {}
        self.total_request_charge = self.request_charge
        self.timestamp = datetime.now(timezone.utc).isoformat()

    @property
    def retryable(self) -> bool:
        return is_retryable_kind(self.kind)

    @property
    def code(self) -> str:
        return self.kind.value.upper()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": type(self).__name__,
            "message": self.message,
            "code": self.code,
            "retryable": self.retryable,
            "component": self.component,
            "status_code": self.status_code,
            "activity_id": self.activity_id,
            "request_charge": self.request_charge,
            "timestamp": self.timestamp,
            "details": self.details,
        }


class ValidationError(DocStoreError):
    """Caller input is invalid. Never retried and never wraps a store error."""

    default_kind = ErrorKind.VALIDATION


class ConfigurationError(DocStoreError):
    """Invalid client or operation configuration."""

    default_kind = ErrorKind.CONFIGURATION


class NotFoundError(DocStoreError):
    default_kind = ErrorKind.NOT_FOUND


class ConflictError(DocStoreError):
    """A document with the same id already exists."""

    default_kind = ErrorKind.CONFLICT


class VersionMismatchError(DocStoreError):
    """Optimistic concurrency check failed.

    Carries both versions and, when it was read, the current document so the
    caller can re-apply its change.
    """

    default_kind = ErrorKind.VERSION_MISMATCH

    def __init__(
        self,
        message: str,
        *,
        provided_version: Optional[str] = None,
        current_version: Optional[str] = None,
        current_document: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.provided_version = provided_version
        self.current_version = current_version
        self.current_document = current_document
        self.details.setdefault("provided_version", provided_version)
        self.details.setdefault("current_version", current_version)


class BadInputError(DocStoreError):
    default_kind = ErrorKind.BAD_INPUT


class UnauthorizedError(DocStoreError):
    default_kind = ErrorKind.UNAUTHORIZED


class ForbiddenError(DocStoreError):
    default_kind = ErrorKind.FORBIDDEN


class RateLimitedError(DocStoreError):
    default_kind = ErrorKind.RATE_LIMITED


class UnavailableError(DocStoreError):
    default_kind = ErrorKind.UNAVAILABLE


class RequestTimeoutError(DocStoreError):
    default_kind = ErrorKind.TIMEOUT


class InternalServerError(DocStoreError):
    default_kind = ErrorKind.INTERNAL


class BadGatewayError(DocStoreError):
    default_kind = ErrorKind.BAD_GATEWAY


class GatewayTimeoutError(DocStoreError):
    default_kind = ErrorKind.GATEWAY_TIMEOUT


class UnknownStoreError(DocStoreError):
    default_kind = ErrorKind.UNKNOWN


class RetryBudgetExhaustedError(DocStoreError):
    """Cumulative retry cost reached the configured budget."""

    default_kind = ErrorKind.BUDGET_EXHAUSTED

    def __init__(self, last_error: DocStoreError, consumed: float, budget: float) -> None:
        super().__init__(
            f"Retry cost budget exhausted: {consumed}/{budget}. Last error: {last_error.message}",
            component=last_error.component,
            status_code=last_error.status_code,
            activity_id=last_error.activity_id,
            request_charge=last_error.request_charge,
            details={**last_error.details, "consumed": consumed, "budget": budget},
        )
        self.last_error = last_error
        self.consumed = consumed
        self.budget = budget


_STATUS_ERRORS: Dict[int, type[DocStoreError]] = {
    400: BadInputError,
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NotFoundError,
    408: RequestTimeoutError,
    409: ConflictError,
    412: VersionMismatchError,
    429: RateLimitedError,
    500: InternalServerError,
    502: BadGatewayError,
    503: UnavailableError,
    504: GatewayTimeoutError,
}

_DEFAULT_MESSAGES: Dict[int, str] = {
    400: "Bad request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not found",
    408: "Request timeout",
    409: "Conflict",
    412: "Precondition failed",
    429: "Request rate is large",
    500: "Internal server error",
    502: "Bad gateway",
    503: "Service temporarily unavailable",
    504: "Gateway timeout",
}


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def extract_failure_metadata(error: BaseException) -> Dict[str, Any]:
    """Pull status code, cost, retry hint and diagnostic id off a raw failure.

    Understands ``StoreFailure`` as well as SDK exceptions exposing
    ``status_code``/``code`` attributes and ``x-ms-*`` response headers.
    """
    meta: Dict[str, Any] = {}

    for attr in ("status_code", "code", "statusCode"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            meta["status_code"] = value
            break

    activity_id = getattr(error, "activity_id", None)
    if isinstance(activity_id, str):
        meta["activity_id"] = activity_id

    substatus = getattr(error, "substatus", None) or getattr(error, "sub_status", None)
    if isinstance(substatus, int):
        meta["substatus"] = substatus

    headers = getattr(error, "headers", None)
    if not isinstance(headers, dict):
        headers = {}

    retry_after = _as_float(getattr(error, "retry_after_ms", None))
    if retry_after is None:
        retry_after = _as_float(headers.get("x-ms-retry-after-ms") or headers.get("retry-after-ms"))
    if retry_after is not None:
        meta["retry_after_ms"] = retry_after

    charge = _as_float(getattr(error, "request_charge", None))
    if charge is None:
        charge = _as_float(headers.get("x-ms-request-charge"))
    if charge is not None:
        meta["request_charge"] = charge

    if "activity_id" not in meta and isinstance(headers.get("x-ms-activity-id"), str):
        meta["activity_id"] = headers["x-ms-activity-id"]

    return meta


def classify_error(error: BaseException, component: str = "docstore") -> DocStoreError:
    """Translate any failure into the typed hierarchy.

    Already-typed errors pass through unchanged.
    """
    if isinstance(error, DocStoreError):
        return error

    meta = extract_failure_metadata(error)
    status = meta.get("status_code")
    message = getattr(error, "message", None) or str(error)
    kwargs: Dict[str, Any] = dict(
        component=component,
        status_code=status,
        activity_id=meta.get("activity_id"),
        request_charge=meta.get("request_charge", 0.0),
        retry_after_ms=meta.get("retry_after_ms"),
        details={"original_error": str(error), "substatus": meta.get("substatus")},
    )

    if status in _STATUS_ERRORS:
        return _STATUS_ERRORS[status](message or _DEFAULT_MESSAGES[status], **kwargs)

    if status is None and (isinstance(error, TimeoutError) or "timeout" in message.lower()):
        return RequestTimeoutError(message or "Request timeout", **kwargs)

    return UnknownStoreError(message or type(error).__name__, **kwargs)


def is_retryable(error: BaseException) -> bool:
    return classify_error(error).retryable
