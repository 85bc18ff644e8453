"""HTTP routes for column management."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from infrastructure.http_errors import to_http_exception
from schema.application.services import SchemaService
from schema.application.value_objects import (
    AddColumnRequest as AddColumnCommand,
    UpdateColumnRequest as UpdateColumnCommand,
)
from schema.dependencies import get_schema_service
from schema.presentation.columns.models import AddColumnRequest, UpdateColumnRequest
from schema.presentation.tables.models import ColumnResponse
from shared_kernel.exceptions import MorphError

router = APIRouter(tags=["columns"])


@router.post(
    "/tables/{table_id}/columns",
    status_code=status.HTTP_201_CREATED,
    summary="Add column",
)
async def add_column(
    table_id: UUID,
    request: AddColumnRequest,
    service: Annotated[SchemaService, Depends(get_schema_service)],
) -> ColumnResponse:
    """Add a column to a table.

    Raises:
        HTTPException: 400 for an invalid or reserved name
        HTTPException: 404 if the table does not exist
        HTTPException: 409 on a stale expected_version or a duplicate name
    """
    try:
        column = await service.add_column(
            AddColumnCommand(
                table_id=table_id,
                expected_version=request.expected_version,
                logical_name=request.logical_name,
                data_type=request.data_type,
                is_nullable=request.is_nullable,
                is_unique=request.is_unique,
                is_indexed=request.is_indexed,
                default_value=request.default_value,
                check_expression=request.check_expression,
            )
        )
        return ColumnResponse.from_domain(column)

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "INTERNAL_ERROR", "message": "Failed to add column"},
        )


@router.patch("/columns/{column_id}", summary="Update column")
async def update_column(
    column_id: UUID,
    request: UpdateColumnRequest,
    service: Annotated[SchemaService, Depends(get_schema_service)],
) -> ColumnResponse:
    """Rename a column and/or change its default value."""
    try:
        column = await service.update_column(
            UpdateColumnCommand(
                column_id=column_id,
                expected_version=request.expected_version,
                logical_name=request.logical_name,
                default_value=request.default_value,
            )
        )
        return ColumnResponse.from_domain(column)

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "INTERNAL_ERROR", "message": "Failed to update column"},
        )


@router.delete(
    "/columns/{column_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete column",
)
async def delete_column(
    column_id: UUID,
    service: Annotated[SchemaService, Depends(get_schema_service)],
    expected_version: Annotated[int | None, Query(ge=1)] = None,
) -> None:
    """Drop a user column. System columns cannot be dropped."""
    try:
        await service.delete_column(column_id, expected_version=expected_version)

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "INTERNAL_ERROR", "message": "Failed to delete column"},
        )
