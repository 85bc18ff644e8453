"""HTTP routes for dynamic table management."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from infrastructure.http_errors import to_http_exception
from schema.application.services import SchemaService
from schema.application.value_objects import (
    CreateTableRequest as CreateTableCommand,
    UpdateTableRequest as UpdateTableCommand,
)
from schema.dependencies import get_schema_service
from schema.presentation.tables.models import (
    ChangeLogEntryResponse,
    CreateTableRequest,
    TableResponse,
    UpdateTableRequest,
)
from shared_kernel.exceptions import MorphError, TableNotFoundError

router = APIRouter(
    prefix="/tables",
    tags=["tables"],
)


def _internal_error(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"code": "INTERNAL_ERROR", "message": message},
    )


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create table",
    responses={
        201: {"description": "Table created"},
        400: {"description": "Invalid table or column definition"},
        409: {"description": "A table with this name already exists"},
        423: {"description": "Schema lock could not be acquired"},
    },
)
async def create_table(
    request: CreateTableRequest,
    service: Annotated[SchemaService, Depends(get_schema_service)],
) -> TableResponse:
    """Create a dynamic table in the caller's tenant.

    Args:
        request: Table name, user columns and free-form descriptor
        service: Schema service, tenant scoped

    Returns:
        TableResponse including the system and user columns

    Raises:
        HTTPException: 400 on invalid names or expressions
        HTTPException: 409 if the table name already exists in the tenant
        HTTPException: 500 for unexpected errors
    """
    try:
        table = await service.create_table(
            CreateTableCommand(
                logical_name=request.logical_name,
                columns=tuple(c.to_spec() for c in request.columns),
                descriptor=request.descriptor,
            )
        )
        return TableResponse.from_domain(table)

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise _internal_error("Failed to create table")


@router.get("", summary="List tables")
async def list_tables(
    service: Annotated[SchemaService, Depends(get_schema_service)],
    include_columns: Annotated[bool, Query()] = False,
) -> list[TableResponse]:
    """List active tables in the caller's tenant."""
    try:
        tables = await service.list_tables(include_columns=include_columns)
        return [TableResponse.from_domain(t) for t in tables]

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise _internal_error("Failed to list tables")


@router.get("/by-name/{logical_name}", summary="Get table by name")
async def get_table_by_name(
    logical_name: str,
    service: Annotated[SchemaService, Depends(get_schema_service)],
) -> TableResponse:
    """Get an active table and its columns by logical name.

    Raises:
        HTTPException: 404 if no active table has this name in the tenant
    """
    try:
        table = await service.get_table(logical_name)
        if table is None:
            raise to_http_exception(TableNotFoundError(logical_name))
        return TableResponse.from_domain(table)

    except HTTPException:
        raise
    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise _internal_error("Failed to retrieve table")


@router.get("/{table_id}", summary="Get table")
async def get_table(
    table_id: UUID,
    service: Annotated[SchemaService, Depends(get_schema_service)],
) -> TableResponse:
    """Get an active table and its columns by id.

    Raises:
        HTTPException: 404 if the table is missing or belongs to another tenant
    """
    try:
        table = await service.get_table_by_id(table_id)
        if table is None:
            raise to_http_exception(TableNotFoundError(str(table_id)))
        return TableResponse.from_domain(table)

    except HTTPException:
        raise
    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise _internal_error("Failed to retrieve table")


@router.patch("/{table_id}", summary="Rename table")
async def update_table(
    table_id: UUID,
    request: UpdateTableRequest,
    service: Annotated[SchemaService, Depends(get_schema_service)],
) -> TableResponse:
    """Rename a table. Its physical name is unchanged.

    Raises:
        HTTPException: 404 if the table does not exist
        HTTPException: 409 on a stale expected_version or a name clash
    """
    try:
        table = await service.update_table(
            UpdateTableCommand(
                table_id=table_id,
                expected_version=request.expected_version,
                logical_name=request.logical_name,
            )
        )
        return TableResponse.from_domain(table)

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise _internal_error("Failed to update table")


@router.delete(
    "/{table_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete table",
)
async def delete_table(
    table_id: UUID,
    service: Annotated[SchemaService, Depends(get_schema_service)],
    expected_version: Annotated[int | None, Query(ge=1)] = None,
) -> None:
    """Drop a table and every relation pointing at it.

    Raises:
        HTTPException: 404 if the table does not exist
        HTTPException: 409 on a stale expected_version
    """
    try:
        await service.delete_table(table_id, expected_version=expected_version)

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise _internal_error("Failed to delete table")


@router.get("/{table_id}/history", summary="Table change history")
async def get_table_history(
    table_id: UUID,
    service: Annotated[SchemaService, Depends(get_schema_service)],
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> list[ChangeLogEntryResponse]:
    """Return the table's newest schema changes, newest first."""
    try:
        entries = await service.get_history(table_id, limit=limit)
        return [ChangeLogEntryResponse.from_domain(e) for e in entries]

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise _internal_error("Failed to retrieve table history")
