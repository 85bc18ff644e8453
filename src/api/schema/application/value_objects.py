"""Request value objects for schema operations.

The tenant is not part of these requests: a SchemaService instance is
scoped to one tenant when it is constructed.

``expected_version`` is the optimistic-concurrency token. Operations that
accept it as optional skip the version check when it is None.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from shared_kernel.schema_primitives import (
    DataType,
    IndexType,
    NullsPosition,
    ReferentialAction,
    RelationType,
    SortDirection,
)


@dataclass(frozen=True)
class ColumnSpec:
    """A user column requested as part of table creation."""

    logical_name: str
    data_type: DataType
    is_nullable: bool = True
    is_unique: bool = False
    is_primary_key: bool = False
    is_indexed: bool = False
    default_value: str | None = None
    check_expression: str | None = None


@dataclass(frozen=True)
class CreateTableRequest:
    logical_name: str
    columns: tuple[ColumnSpec, ...] = ()
    descriptor: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class UpdateTableRequest:
    table_id: UUID
    expected_version: int
    logical_name: str | None = None


@dataclass(frozen=True)
class AddColumnRequest:
    table_id: UUID
    expected_version: int
    logical_name: str
    data_type: DataType
    is_nullable: bool = True
    is_unique: bool = False
    is_indexed: bool = False
    default_value: str | None = None
    check_expression: str | None = None


@dataclass(frozen=True)
class UpdateColumnRequest:
    column_id: UUID
    expected_version: int
    logical_name: str | None = None
    default_value: str | None = None


@dataclass(frozen=True)
class IndexColumnSpec:
    column_id: UUID
    direction: SortDirection = SortDirection.ASCENDING
    nulls_position: NullsPosition = NullsPosition.LAST


@dataclass(frozen=True)
class CreateIndexRequest:
    table_id: UUID
    logical_name: str
    columns: tuple[IndexColumnSpec, ...]
    index_type: IndexType = IndexType.BTREE
    is_unique: bool = False
    where_clause: str | None = None
    expected_version: int | None = None


@dataclass(frozen=True)
class CreateRelationRequest:
    logical_name: str
    source_table_id: UUID
    source_column_id: UUID
    target_table_id: UUID
    target_column_id: UUID
    relation_type: RelationType = RelationType.ONE_TO_MANY
    on_delete: ReferentialAction = ReferentialAction.NO_ACTION
    on_update: ReferentialAction = ReferentialAction.NO_ACTION
    expected_version: int | None = None
