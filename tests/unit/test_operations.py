"""
Unit tests for operation selection, renames and the produced mutation API.
"""

import pytest

from docstore_client.errors import ConfigurationError
from docstore_client.operations import (
    BATCH_OPERATIONS,
    SINGLE_OPERATIONS,
    OperationConfig,
    build_mutation_api,
    is_operation_enabled,
    resolver_name,
)


def test_everything_enabled_by_default():
    assert all(is_operation_enabled(op) for op in SINGLE_OPERATIONS + BATCH_OPERATIONS)
    assert resolver_name("create") == "create"


def test_include_and_exclude():
    cfg = OperationConfig(include={"create", "update"})
    assert is_operation_enabled("create", cfg)
    assert not is_operation_enabled("delete", cfg)

    cfg = OperationConfig(exclude={"delete"})
    assert not is_operation_enabled("delete", cfg)
    assert is_operation_enabled("restore", cfg)


def test_rename_and_hide():
    cfg = OperationConfig(rename={"create": "addUser", "restore": None})
    assert resolver_name("create", cfg) == "addUser"
    assert resolver_name("restore", cfg) is None
    assert not is_operation_enabled("restore", cfg)
    assert resolver_name("update", cfg) == "update"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"include": {"read"}},
        {"exclude": {"truncate"}},
        {"rename": {"drop": "x"}},
        {"include": {"create", "delete"}, "exclude": {"delete"}},
        {"rename": {"create": ""}},
        {"rename": {"create": "update"}},
    ],
)
def test_invalid_configs(kwargs):
    with pytest.raises(ConfigurationError):
        OperationConfig(**kwargs)


def test_rename_collision_ignored_when_target_disabled():
    cfg = OperationConfig(rename={"create": "update"}, exclude={"update"})
    assert resolver_name("create", cfg) == "update"


def test_build_api_single_only(mutator):
    api = build_mutation_api(mutator)
    assert set(api) == set(SINGLE_OPERATIONS)
    assert api["increment"] == mutator.increment


def test_build_api_with_batch_and_config(mutator, batch):
    cfg = OperationConfig(
        include={"create", "create_many", "soft_delete", "restore"},
        rename={"soft_delete": "archive", "restore": None},
    )
    api = build_mutation_api(mutator, batch, cfg)
    assert set(api) == {"create", "create_many", "archive"}
    assert api["archive"] == mutator.soft_delete
    assert api["create_many"] == batch.create_many


@pytest.mark.asyncio
async def test_api_functions_are_callable(mutator, batch, tenant):
    api = build_mutation_api(mutator, batch, OperationConfig(rename={"create": "addUser"}))
    created = await api["addUser"]({"partitionKey": tenant, "name": "Ada"})
    bumped = await api["update"](created.data["id"], tenant, {"name": "Grace"})
    assert bumped.data["name"] == "Grace"
