"""
Unit tests for version token handling.
"""

import pytest

from docstore_client.concurrency import build_access_condition, normalize_version, versions_match
from docstore_client.errors import ValidationError
from docstore_client.models import ConditionKind


def test_normalize_strips_one_layer_of_quotes():
    assert normalize_version('"abc"') == "abc"
    assert normalize_version("'abc'") == "abc"
    assert normalize_version('  "abc"  ') == "abc"
    assert normalize_version("abc") == "abc"
    assert normalize_version('" abc "') == "abc"


def test_normalize_nested_quotes_peels_one_layer():
    """Only the outer layer goes, so doubly quoted tokens are the one case
    where a second normalization still changes the value."""
    once = normalize_version('""abc""')
    assert once == '"abc"'
    assert normalize_version(once) == "abc"


def test_normalize_empty_is_none():
    assert normalize_version(None) is None
    assert normalize_version("") is None
    assert normalize_version("   ") is None
    assert normalize_version('""') is None
    assert normalize_version('"  "') is None


@pytest.mark.parametrize("token", ['"0000-1111"', "0000-1111", " '0a' ", "W/\"x\"", '" abc "', "' 0a'"])
def test_normalize_idempotent(token):
    once = normalize_version(token)
    assert normalize_version(once) == once


def test_versions_match():
    assert versions_match(None, None)
    assert not versions_match("a", None)
    assert not versions_match(None, "a")
    assert versions_match('"a"', "a")
    assert versions_match("a", " 'a' ")
    assert not versions_match('"a"', '"b"')


def test_build_access_condition():
    cond = build_access_condition('"v1"')
    assert cond.kind is ConditionKind.IF_MATCH
    assert cond.token == '"v1"'

    cond = build_access_condition("*", "IfNoneMatch")
    assert cond.kind is ConditionKind.IF_NONE_MATCH


@pytest.mark.parametrize("token", [None, "", "   "])
def test_build_access_condition_rejects_empty(token):
    with pytest.raises(ValidationError):
        build_access_condition(token)


def test_build_access_condition_rejects_unknown_kind():
    with pytest.raises(ValidationError):
        build_access_condition("v1", "IfSomething")
