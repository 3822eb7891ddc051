"""
Pydantic data models for the Document Store Client.

Covers access conditions, the closed set of array operations accepted by
update mutations, mutation payloads and batch item inputs.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    TypeAdapter,
    field_validator,
)

# --- system fields ---

ID_FIELD = "id"
VERSION_FIELD = "version"
CREATED_AT = "createdAt"
UPDATED_AT = "updatedAt"
DELETED = "deleted"
DELETED_AT = "deletedAt"
DELETED_BY = "deletedBy"
DELETE_REASON = "deleteReason"
RESTORED_AT = "restoredAt"

SOFT_DELETE_FIELDS = (DELETED, DELETED_AT, DELETED_BY, DELETE_REASON, RESTORED_AT)
SYSTEM_FIELDS = frozenset({ID_FIELD, VERSION_FIELD, CREATED_AT, UPDATED_AT, *SOFT_DELETE_FIELDS})


class ConditionKind(str, Enum):
    IF_MATCH = "IfMatch"
    IF_NONE_MATCH = "IfNoneMatch"


class AccessCondition(BaseModel):
    """Precondition attached to a conditional write."""

    model_config = ConfigDict(frozen=True)

    kind: ConditionKind
    token: str

    @field_validator("token")
    def _non_empty(cls, v):
        if not v or not v.strip():
            raise ValueError("access condition token cannot be empty")
        return v


# --- array operations ---


class _ArrayOp(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)


class SetOp(_ArrayOp):
    type: Literal["set"]
    value: Any


class AppendOp(_ArrayOp):
    type: Literal["append"]
    value: Any


class PrependOp(_ArrayOp):
    type: Literal["prepend"]
    value: Any


class RemoveOp(_ArrayOp):
    type: Literal["remove"]
    value: Any


class InsertOp(_ArrayOp):
    type: Literal["insert"]
    index: Annotated[StrictInt, Field(ge=0)]
    value: Any


class SpliceOp(_ArrayOp):
    type: Literal["splice"]
    index: Annotated[StrictInt, Field(ge=0)]
    delete_count: Annotated[StrictInt, Field(ge=0)] = Field(
        1, validation_alias=AliasChoices("deleteCount", "delete_count")
    )
    value: Optional[Any] = None


ArrayOperation = Annotated[
    Union[SetOp, AppendOp, PrependOp, RemoveOp, InsertOp, SpliceOp],
    Field(discriminator="type"),
]
ARRAY_OPERATION_TYPES = frozenset({"set", "append", "prepend", "remove", "insert", "splice"})

array_operation_adapter: TypeAdapter = TypeAdapter(ArrayOperation)


# --- mutation payloads ---


class MutationResult(BaseModel):
    """Outcome of a single-document mutation.

    ``request_charge`` is the cost of the call that succeeded; ``retry_charge``
    is what failed attempts of the same call consumed before it.
    """

    data: Dict[str, Any]
    version: str
    request_charge: float = 0.0
    retry_charge: float = 0.0

    @property
    def total_charge(self) -> float:
        return self.request_charge + self.retry_charge


class UpsertResult(MutationResult):
    created: bool = False


class NumericResult(MutationResult):
    previous_value: float
    new_value: float


class RestoreResult(MutationResult):
    restored_at: str


class DeleteResult(BaseModel):
    success: bool = True
    deleted_id: str
    request_charge: float = 0.0
    retry_charge: float = 0.0

    @property
    def total_charge(self) -> float:
        return self.request_charge + self.retry_charge


class SoftDeleteResult(DeleteResult):
    version: str
    data: Optional[Dict[str, Any]] = None
    already_deleted: bool = False


# --- batch item inputs ---

_PK_ALIASES = AliasChoices("partition_key", "partitionKey", "pk")
_VERSION_ALIASES = AliasChoices("expected_version", "expectedVersion", "etag")


class _BatchItem(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    id: str
    partition_key: str = Field(validation_alias=_PK_ALIASES)
    expected_version: Optional[str] = Field(None, validation_alias=_VERSION_ALIASES)


class UpdateManyItem(_BatchItem):
    data: Dict[str, Any]


class DeleteManyItem(_BatchItem):
    pass


class SoftDeleteManyItem(_BatchItem):
    deleted_by: Optional[str] = Field(None, validation_alias=AliasChoices("deleted_by", "deletedBy"))
    delete_reason: Optional[str] = Field(
        None, validation_alias=AliasChoices("delete_reason", "deleteReason")
    )
