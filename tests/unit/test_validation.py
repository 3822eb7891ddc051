"""
Unit tests for input validators.
"""

import math

import pytest

from docstore_client.errors import ValidationError
from docstore_client.validation import (
    MAX_PARTITION_KEY_LENGTH,
    validate_document_size,
    validate_expected_version,
    validate_input_object,
    validate_numeric_amount,
    validate_numeric_field,
    validate_partition_key,
    validate_required_string,
)


def test_required_string():
    assert validate_required_string("  abc ", "id") == "abc"
    for bad in (None, "", "   ", 5, ["a"]):
        with pytest.raises(ValidationError) as exc_info:
            validate_required_string(bad, "id")
        assert exc_info.value.details["field"] == "id"


def test_partition_key_limits():
    assert validate_partition_key("tenant-1") == "tenant-1"
    validate_partition_key("x" * MAX_PARTITION_KEY_LENGTH)
    with pytest.raises(ValidationError):
        validate_partition_key("x" * (MAX_PARTITION_KEY_LENGTH + 1))


@pytest.mark.parametrize("bad", ["a\x00b", "tab\there", "bell\x07", "c1\x85", "c1\x1c", "\x1ftenant"])
def test_partition_key_control_chars(bad):
    with pytest.raises(ValidationError):
        validate_partition_key(bad)


def test_input_object():
    assert validate_input_object({"a": 1}) == {"a": 1}
    for bad in (None, [1], "x", 3):
        with pytest.raises(ValidationError) as exc_info:
            validate_input_object(bad)
        assert exc_info.value.details["expected"] == "object"


def test_expected_version():
    assert validate_expected_version(None) is None
    assert validate_expected_version('"v1"') == '"v1"'
    with pytest.raises(ValidationError):
        validate_expected_version("  ")


def test_numeric_amount():
    assert validate_numeric_amount(5) == 5
    assert validate_numeric_amount(-2.5) == -2.5
    for bad in (True, "5", None, math.inf, math.nan):
        with pytest.raises(ValidationError):
            validate_numeric_amount(bad)


def test_numeric_field():
    doc = {"count": 3, "ratio": 0.5, "name": "x", "flag": True, "big": math.inf}
    assert validate_numeric_field(doc, "count") == 3
    assert validate_numeric_field(doc, "ratio") == 0.5
    for field in ("missing", "name", "flag", "big", "version", "createdAt"):
        with pytest.raises(ValidationError):
            validate_numeric_field(doc, field)


def test_document_size():
    doc = {"id": "a", "blob": "x" * 100}
    size = validate_document_size(doc, max_bytes=1000)
    assert 100 < size < 1000
    with pytest.raises(ValidationError) as exc_info:
        validate_document_size(doc, max_bytes=50)
    assert exc_info.value.details["max_bytes"] == 50
    assert exc_info.value.details["document_id"] == "a"
