"""Schema descriptors shared by the schema and data contexts.

Descriptors are the metadata records describing one dynamic schema object.
They are immutable snapshots; the schema context creates new ones for every
change instead of mutating them in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from ulid import ULID

from shared_kernel.schema_primitives.data_types import (
    DataType,
    IndexType,
    NullsPosition,
    ReferentialAction,
    RelationType,
    SortDirection,
)

# Logical names of the four system-managed columns, in creation order.
ID_COLUMN = "id"
TENANT_COLUMN = "tenant_id"
CREATED_AT_COLUMN = "created_at"
UPDATED_AT_COLUMN = "updated_at"
SYSTEM_COLUMNS = (ID_COLUMN, TENANT_COLUMN, CREATED_AT_COLUMN, UPDATED_AT_COLUMN)


def new_id() -> UUID:
    """Generate a time-sortable UUID backed by a ULID."""
    return ULID().to_uuid()


@dataclass(frozen=True)
class ColumnDescriptor:
    """Metadata for one column of a dynamic table."""

    column_id: UUID
    table_id: UUID
    logical_name: str
    physical_name: str
    data_type: DataType
    native_type: str
    ordinal_position: int
    is_nullable: bool = True
    is_unique: bool = False
    is_primary_key: bool = False
    is_indexed: bool = False
    is_encrypted: bool = False
    default_value: str | None = None
    check_expression: str | None = None
    is_active: bool = True

    @property
    def is_system(self) -> bool:
        """Whether the column is one of the system-managed columns."""
        return self.logical_name in SYSTEM_COLUMNS


@dataclass(frozen=True)
class TableDescriptor:
    """Metadata for a dynamic table and its active columns."""

    table_id: UUID
    tenant_id: UUID
    logical_name: str
    physical_name: str
    schema_version: int = 1
    descriptor: dict[str, Any] = field(default_factory=dict)
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
    columns: tuple[ColumnDescriptor, ...] = ()

    def find_column(self, logical_name: str) -> ColumnDescriptor | None:
        """Look up an active column by logical name (case-insensitive)."""
        wanted = logical_name.lower()
        for column in self.columns:
            if column.logical_name.lower() == wanted:
                return column
        return None

    def find_column_by_id(self, column_id: UUID) -> ColumnDescriptor | None:
        """Look up an active column by id."""
        for column in self.columns:
            if column.column_id == column_id:
                return column
        return None

    @property
    def primary_key(self) -> ColumnDescriptor | None:
        """The primary key column, if any."""
        for column in self.columns:
            if column.is_primary_key:
                return column
        return None


@dataclass(frozen=True)
class IndexColumn:
    """One column of an index, with ordering options."""

    column_id: UUID
    physical_name: str
    direction: SortDirection = SortDirection.ASCENDING
    nulls_position: NullsPosition = NullsPosition.LAST


@dataclass(frozen=True)
class IndexDescriptor:
    """Metadata for an index on a dynamic table."""

    index_id: UUID
    table_id: UUID
    logical_name: str
    physical_name: str
    columns: tuple[IndexColumn, ...]
    index_type: IndexType = IndexType.BTREE
    is_unique: bool = False
    where_clause: str | None = None
    is_active: bool = True
    created_at: datetime | None = None


@dataclass(frozen=True)
class RelationDescriptor:
    """Metadata for a foreign-key relation between two dynamic tables."""

    relation_id: UUID
    tenant_id: UUID
    logical_name: str
    source_table_id: UUID
    source_column_id: UUID
    target_table_id: UUID
    target_column_id: UUID
    relation_type: RelationType
    on_delete: ReferentialAction = ReferentialAction.NO_ACTION
    on_update: ReferentialAction = ReferentialAction.NO_ACTION
    is_active: bool = True
    created_at: datetime | None = None
