"""HTTP routes for relation management."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from infrastructure.http_errors import to_http_exception
from schema.application.services import SchemaService
from schema.application.value_objects import (
    CreateRelationRequest as CreateRelationCommand,
)
from schema.dependencies import get_schema_service
from schema.presentation.relations.models import (
    CreateRelationRequest,
    RelationResponse,
)
from shared_kernel.exceptions import MorphError

router = APIRouter(
    prefix="/relations",
    tags=["relations"],
)


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create relation")
async def create_relation(
    request: CreateRelationRequest,
    service: Annotated[SchemaService, Depends(get_schema_service)],
) -> RelationResponse:
    """Create a foreign key from a source column to a target column.

    Raises:
        HTTPException: 404 if a table or column does not exist
        HTTPException: 409 if the relation name is taken or the version is stale
        HTTPException: 500 if the database rejects the constraint, e.g.
            because existing rows violate it
    """
    try:
        relation = await service.create_relation(
            CreateRelationCommand(
                logical_name=request.logical_name,
                source_table_id=request.source_table_id,
                source_column_id=request.source_column_id,
                target_table_id=request.target_table_id,
                target_column_id=request.target_column_id,
                relation_type=request.relation_type,
                on_delete=request.on_delete,
                on_update=request.on_update,
                expected_version=request.expected_version,
            )
        )
        return RelationResponse.from_domain(relation)

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "INTERNAL_ERROR", "message": "Failed to create relation"},
        )


@router.get("", summary="List relations")
async def list_relations(
    service: Annotated[SchemaService, Depends(get_schema_service)],
) -> list[RelationResponse]:
    try:
        relations = await service.list_relations()
        return [RelationResponse.from_domain(r) for r in relations]

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "INTERNAL_ERROR", "message": "Failed to list relations"},
        )


@router.delete(
    "/{relation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete relation",
)
async def delete_relation(
    relation_id: UUID,
    service: Annotated[SchemaService, Depends(get_schema_service)],
    expected_version: Annotated[int | None, Query(ge=1)] = None,
) -> None:
    """Drop a relation's foreign key constraint."""
    try:
        await service.delete_relation(relation_id, expected_version=expected_version)

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "INTERNAL_ERROR", "message": "Failed to delete relation"},
        )
