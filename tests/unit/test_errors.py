"""
Unit tests for error classification.
"""

import pytest

from docstore_client.errors import (
    BadGatewayError,
    BadInputError,
    ConflictError,
    ErrorKind,
    ForbiddenError,
    GatewayTimeoutError,
    InternalServerError,
    NotFoundError,
    RateLimitedError,
    RequestTimeoutError,
    RetryBudgetExhaustedError,
    StoreFailure,
    UnauthorizedError,
    UnavailableError,
    UnknownStoreError,
    ValidationError,
    VersionMismatchError,
    classify_error,
    extract_failure_metadata,
    is_retryable,
)


@pytest.mark.parametrize(
    "status,cls,retryable",
    [
        (429, RateLimitedError, True),
        (503, UnavailableError, True),
        (408, RequestTimeoutError, True),
        (500, InternalServerError, True),
        (502, BadGatewayError, True),
        (504, GatewayTimeoutError, True),
        (400, BadInputError, False),
        (401, UnauthorizedError, False),
        (403, ForbiddenError, False),
        (404, NotFoundError, False),
        (409, ConflictError, False),
        (412, VersionMismatchError, False),
        (418, UnknownStoreError, False),
    ],
)
def test_status_mapping(status, cls, retryable):
    """Each store status maps to one typed error with a fixed retry verdict."""
    err = classify_error(StoreFailure(status, "boom"))
    assert type(err) is cls
    assert err.retryable is retryable
    assert err.status_code == status


def test_metadata_carried_over():
    """Charge, retry hint and diagnostic id survive classification."""
    failure = StoreFailure(429, "slow down", retry_after_ms=250, activity_id="act-1", request_charge=2.5)
    err = classify_error(failure, component="mutator")
    assert err.retry_after_ms == 250
    assert err.activity_id == "act-1"
    assert err.request_charge == 2.5
    assert err.total_request_charge == 2.5
    assert err.component == "mutator"
    assert err.message == "slow down"


def test_sdk_style_exception_headers():
    """SDK exceptions expose code and x-ms-* headers instead of attributes."""

    class SdkError(Exception):
        def __init__(self):
            super().__init__("Request rate is large")
            self.code = 429
            self.headers = {
                "x-ms-retry-after-ms": "120",
                "x-ms-request-charge": "3.25",
                "x-ms-activity-id": "abc",
            }

    meta = extract_failure_metadata(SdkError())
    assert meta == {"status_code": 429, "retry_after_ms": 120.0, "request_charge": 3.25, "activity_id": "abc"}

    err = classify_error(SdkError())
    assert isinstance(err, RateLimitedError)
    assert err.retry_after_ms == 120.0


def test_timeout_without_status():
    """A bare timeout with no status is treated as a retryable timeout."""
    assert isinstance(classify_error(TimeoutError("socket timeout")), RequestTimeoutError)
    assert isinstance(classify_error(Exception("operation Timeout exceeded")), RequestTimeoutError)
    assert is_retryable(TimeoutError())


def test_unknown_error_is_terminal():
    """Anything unrecognised is classified as terminal unknown."""
    err = classify_error(ValueError("invalid argument"))
    assert isinstance(err, UnknownStoreError)
    assert err.kind is ErrorKind.UNKNOWN
    assert not err.retryable


def test_typed_errors_pass_through():
    """Already-classified errors come back unchanged."""
    original = ValidationError("bad id", details={"field": "id"})
    assert classify_error(original) is original


def test_bool_status_ignored():
    """Boolean attributes are never mistaken for status codes."""

    class Weird(Exception):
        code = True

    assert classify_error(Weird("x")).status_code is None


def test_budget_error_wraps_last_error():
    """Budget exhaustion keeps the last classified error and both amounts."""
    last = classify_error(StoreFailure(429, request_charge=10))
    err = RetryBudgetExhaustedError(last, consumed=30.0, budget=25.0)
    assert err.last_error is last
    assert err.kind is ErrorKind.BUDGET_EXHAUSTED
    assert not err.retryable
    assert err.details["consumed"] == 30.0
    assert "30.0/25.0" in err.message


def test_to_dict():
    err = VersionMismatchError("modified", provided_version='"a"', current_version='"b"')
    d = err.to_dict()
    assert d["code"] == "VERSION_MISMATCH"
    assert d["retryable"] is False
    assert d["details"]["provided_version"] == '"a"'
    assert d["details"]["current_version"] == '"b"'
