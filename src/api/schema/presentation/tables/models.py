"""Pydantic models for table API requests and responses."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from schema.application.value_objects import ColumnSpec
from schema.domain.value_objects import ChangeLogEntry
from shared_kernel.schema_primitives import ColumnDescriptor, DataType, TableDescriptor


class ColumnSpecModel(BaseModel):
    """A user column declared while creating a table."""

    logical_name: str = Field(..., min_length=1, max_length=255, description="Column name")
    data_type: DataType = Field(..., description="Abstract data type")
    is_nullable: bool = Field(default=True)
    is_unique: bool = Field(default=False)
    is_primary_key: bool = Field(default=False)
    is_indexed: bool = Field(default=False)
    default_value: str | None = Field(
        default=None, description="SQL default expression, e.g. 'draft' or now()"
    )
    check_expression: str | None = Field(
        default=None, description="SQL check constraint expression"
    )

    def to_spec(self) -> ColumnSpec:
        return ColumnSpec(
            logical_name=self.logical_name,
            data_type=self.data_type,
            is_nullable=self.is_nullable,
            is_unique=self.is_unique,
            is_primary_key=self.is_primary_key,
            is_indexed=self.is_indexed,
            default_value=self.default_value,
            check_expression=self.check_expression,
        )


class CreateTableRequest(BaseModel):
    """Request model for creating a table.

    The system columns (id, tenant_id, created_at, updated_at) are added
    automatically and must not be listed.
    """

    logical_name: str = Field(..., min_length=1, max_length=255, description="Table name")
    columns: list[ColumnSpecModel] = Field(default_factory=list)
    descriptor: dict[str, Any] = Field(
        default_factory=dict, description="Free-form metadata stored with the table"
    )


class UpdateTableRequest(BaseModel):
    """Request model for renaming a table."""

    expected_version: int = Field(..., ge=1, description="Version the caller last saw")
    logical_name: str | None = Field(default=None, min_length=1, max_length=255)


class ColumnResponse(BaseModel):
    """Response model for a column."""

    id: str = Field(..., description="Column ID")
    table_id: str
    logical_name: str
    physical_name: str
    data_type: DataType
    native_type: str
    ordinal_position: int
    is_nullable: bool
    is_unique: bool
    is_primary_key: bool
    is_indexed: bool
    is_system: bool
    default_value: str | None = None
    check_expression: str | None = None

    @classmethod
    def from_domain(cls, column: ColumnDescriptor) -> ColumnResponse:
        return cls(
            id=str(column.column_id),
            table_id=str(column.table_id),
            logical_name=column.logical_name,
            physical_name=column.physical_name,
            data_type=column.data_type,
            native_type=column.native_type,
            ordinal_position=column.ordinal_position,
            is_nullable=column.is_nullable,
            is_unique=column.is_unique,
            is_primary_key=column.is_primary_key,
            is_indexed=column.is_indexed,
            is_system=column.is_system,
            default_value=column.default_value,
            check_expression=column.check_expression,
        )


class TableResponse(BaseModel):
    """Response model for a table."""

    id: str = Field(..., description="Table ID")
    tenant_id: str
    logical_name: str
    physical_name: str
    schema_version: int
    descriptor: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    columns: list[ColumnResponse] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, table: TableDescriptor) -> TableResponse:
        """Convert a table descriptor to an API response.

        Args:
            table: Table descriptor, with or without its columns loaded

        Returns:
            TableResponse with columns in ordinal order
        """
        return cls(
            id=str(table.table_id),
            tenant_id=str(table.tenant_id),
            logical_name=table.logical_name,
            physical_name=table.physical_name,
            schema_version=table.schema_version,
            descriptor=dict(table.descriptor),
            created_at=table.created_at,
            updated_at=table.updated_at,
            columns=[ColumnResponse.from_domain(c) for c in table.columns],
        )


class ChangeLogEntryResponse(BaseModel):
    """Response model for one audit trail entry."""

    id: str
    table_id: str
    operation: str
    schema_version: int
    changes: dict[str, Any]
    performed_by: str | None = None
    performed_at: datetime | None = None

    @classmethod
    def from_domain(cls, entry: ChangeLogEntry) -> ChangeLogEntryResponse:
        return cls(
            id=str(entry.change_id),
            table_id=str(entry.table_id),
            operation=entry.operation.value,
            schema_version=entry.schema_version,
            changes=dict(entry.changes),
            performed_by=entry.performed_by,
            performed_at=entry.performed_at,
        )
