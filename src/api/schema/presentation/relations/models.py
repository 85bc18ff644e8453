"""Pydantic models for relation API requests and responses."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from shared_kernel.schema_primitives import (
    ReferentialAction,
    RelationDescriptor,
    RelationType,
)


class CreateRelationRequest(BaseModel):
    """Request model for creating a foreign-key relation."""

    logical_name: str = Field(..., min_length=1, max_length=255)
    source_table_id: UUID
    source_column_id: UUID
    target_table_id: UUID
    target_column_id: UUID
    relation_type: RelationType = RelationType.ONE_TO_MANY
    on_delete: ReferentialAction = ReferentialAction.NO_ACTION
    on_update: ReferentialAction = ReferentialAction.NO_ACTION
    expected_version: int | None = Field(
        default=None, ge=1, description="Expected version of the source table"
    )


class RelationResponse(BaseModel):
    """Response model for a relation."""

    id: str
    logical_name: str
    source_table_id: str
    source_column_id: str
    target_table_id: str
    target_column_id: str
    relation_type: RelationType
    on_delete: ReferentialAction
    on_update: ReferentialAction
    created_at: datetime | None = None

    @classmethod
    def from_domain(cls, relation: RelationDescriptor) -> RelationResponse:
        return cls(
            id=str(relation.relation_id),
            logical_name=relation.logical_name,
            source_table_id=str(relation.source_table_id),
            source_column_id=str(relation.source_column_id),
            target_table_id=str(relation.target_table_id),
            target_column_id=str(relation.target_column_id),
            relation_type=relation.relation_type,
            on_delete=relation.on_delete,
            on_update=relation.on_update,
            created_at=relation.created_at,
        )
