"""Pydantic models for index API requests and responses."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from schema.application.value_objects import IndexColumnSpec
from shared_kernel.schema_primitives import (
    IndexDescriptor,
    IndexType,
    NullsPosition,
    SortDirection,
)


class IndexColumnModel(BaseModel):
    """One indexed column with its ordering options."""

    column_id: UUID
    direction: SortDirection = SortDirection.ASCENDING
    nulls_position: NullsPosition = NullsPosition.LAST

    def to_spec(self) -> IndexColumnSpec:
        return IndexColumnSpec(
            column_id=self.column_id,
            direction=self.direction,
            nulls_position=self.nulls_position,
        )


class CreateIndexRequest(BaseModel):
    """Request model for creating an index."""

    logical_name: str = Field(..., min_length=1, max_length=255)
    columns: list[IndexColumnModel] = Field(..., min_length=1)
    index_type: IndexType = IndexType.BTREE
    is_unique: bool = False
    where_clause: str | None = Field(
        default=None, description="Predicate for a partial index"
    )
    expected_version: int | None = Field(default=None, ge=1)


class IndexResponse(BaseModel):
    """Response model for an index."""

    id: str
    table_id: str
    logical_name: str
    physical_name: str
    columns: list[IndexColumnModel]
    index_type: IndexType
    is_unique: bool
    where_clause: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_domain(cls, index: IndexDescriptor) -> IndexResponse:
        return cls(
            id=str(index.index_id),
            table_id=str(index.table_id),
            logical_name=index.logical_name,
            physical_name=index.physical_name,
            columns=[
                IndexColumnModel(
                    column_id=c.column_id,
                    direction=c.direction,
                    nulls_position=c.nulls_position,
                )
                for c in index.columns
            ],
            index_type=index.index_type,
            is_unique=index.is_unique,
            where_clause=index.where_clause,
            created_at=index.created_at,
        )
