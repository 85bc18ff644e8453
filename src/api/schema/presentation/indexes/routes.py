"""HTTP routes for index management."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from infrastructure.http_errors import to_http_exception
from schema.application.services import SchemaService
from schema.application.value_objects import CreateIndexRequest as CreateIndexCommand
from schema.dependencies import get_schema_service
from schema.presentation.indexes.models import CreateIndexRequest, IndexResponse
from shared_kernel.exceptions import MorphError

router = APIRouter(tags=["indexes"])


@router.post(
    "/tables/{table_id}/indexes",
    status_code=status.HTTP_201_CREATED,
    summary="Create index",
)
async def create_index(
    table_id: UUID,
    request: CreateIndexRequest,
    service: Annotated[SchemaService, Depends(get_schema_service)],
) -> IndexResponse:
    """Create an index over one or more columns of a table.

    Raises:
        HTTPException: 404 if the table or a column does not exist
        HTTPException: 409 if the index name is taken or the version is stale
    """
    try:
        index = await service.create_index(
            CreateIndexCommand(
                table_id=table_id,
                logical_name=request.logical_name,
                columns=tuple(c.to_spec() for c in request.columns),
                index_type=request.index_type,
                is_unique=request.is_unique,
                where_clause=request.where_clause,
                expected_version=request.expected_version,
            )
        )
        return IndexResponse.from_domain(index)

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "INTERNAL_ERROR", "message": "Failed to create index"},
        )


@router.get("/tables/{table_id}/indexes", summary="List indexes")
async def list_indexes(
    table_id: UUID,
    service: Annotated[SchemaService, Depends(get_schema_service)],
) -> list[IndexResponse]:
    """List a table's active indexes."""
    try:
        indexes = await service.list_indexes(table_id)
        return [IndexResponse.from_domain(i) for i in indexes]

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "INTERNAL_ERROR", "message": "Failed to list indexes"},
        )


@router.delete(
    "/indexes/{index_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete index",
)
async def delete_index(
    index_id: UUID,
    service: Annotated[SchemaService, Depends(get_schema_service)],
    expected_version: Annotated[int | None, Query(ge=1)] = None,
) -> None:
    try:
        await service.delete_index(index_id, expected_version=expected_version)

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "INTERNAL_ERROR", "message": "Failed to delete index"},
        )
