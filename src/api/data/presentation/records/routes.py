"""HTTP routes for records of dynamic tables."""

from __future__ import annotations

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from data.application.services import DataService
from data.dependencies import get_data_service
from data.presentation.filters import (
    apply_filters,
    apply_ordering,
    parse_filter_string,
)
from data.presentation.records.models import RecordPage, UpsertRequest
from infrastructure.http_errors import to_http_exception
from infrastructure.tenant_dependencies import get_tenant_context
from shared_kernel.exceptions import MorphError, RecordNotFoundError
from shared_kernel.middleware.tenant_context import TenantContext

router = APIRouter(
    prefix="/tables/{table}/records",
    tags=["records"],
)


def _internal_error(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"code": "INTERNAL_ERROR", "message": message},
    )


@router.get("", summary="List records")
async def list_records(
    table: str,
    service: Annotated[DataService, Depends(get_data_service)],
    tenant: Annotated[TenantContext, Depends(get_tenant_context)],
    filter: Annotated[
        str | None, Query(description="column:operator:value terms, comma separated")
    ] = None,
    order_by: Annotated[
        str | None, Query(description="Comma-separated columns; prefix - for descending")
    ] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=1000)] = 50,
) -> RecordPage:
    """List a page of records, optionally filtered and ordered.

    Raises:
        HTTPException: 400 on a malformed filter or invalid value
        HTTPException: 404 if the table or a column does not exist
    """
    try:
        builder = service.query(tenant.tenant_id, table)
        if filter:
            apply_filters(builder, parse_filter_string(filter))
        total = await builder.count()

        apply_ordering(builder, order_by)
        builder.limit(page_size).offset((page - 1) * page_size)
        items = await builder.to_list()
        return RecordPage(items=items, total=total, page=page, page_size=page_size)

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise _internal_error("Failed to list records")


@router.get("/{record_id}", summary="Get record")
async def get_record(
    table: str,
    record_id: UUID,
    service: Annotated[DataService, Depends(get_data_service)],
    tenant: Annotated[TenantContext, Depends(get_tenant_context)],
) -> dict[str, Any]:
    try:
        record = await service.get_by_id(tenant.tenant_id, table, record_id)
        if record is None:
            raise to_http_exception(RecordNotFoundError(table, str(record_id)))
        return record

    except HTTPException:
        raise
    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise _internal_error("Failed to get record")


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create record")
async def create_record(
    table: str,
    data: Annotated[dict[str, Any], Body()],
    service: Annotated[DataService, Depends(get_data_service)],
    tenant: Annotated[TenantContext, Depends(get_tenant_context)],
) -> dict[str, Any]:
    """Insert one record and return it with generated values.

    Raises:
        HTTPException: 400 with per-field errors if the data is invalid
        HTTPException: 403 if the data names another tenant
        HTTPException: 404 if the table does not exist
    """
    try:
        return await service.insert(tenant.tenant_id, table, data)

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise _internal_error("Failed to create record")


@router.put("", summary="Upsert record")
async def upsert_record(
    table: str,
    request: UpsertRequest,
    service: Annotated[DataService, Depends(get_data_service)],
    tenant: Annotated[TenantContext, Depends(get_tenant_context)],
) -> dict[str, Any]:
    try:
        return await service.upsert(
            tenant.tenant_id, table, request.data, request.key_columns
        )

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise _internal_error("Failed to upsert record")


@router.patch("/{record_id}", summary="Update record")
async def update_record(
    table: str,
    record_id: UUID,
    data: Annotated[dict[str, Any], Body()],
    service: Annotated[DataService, Depends(get_data_service)],
    tenant: Annotated[TenantContext, Depends(get_tenant_context)],
) -> dict[str, Any]:
    """Update the given fields of one record.

    Raises:
        HTTPException: 400 with per-field errors if the data is invalid
        HTTPException: 404 if the table or record does not exist
    """
    try:
        return await service.update(tenant.tenant_id, table, record_id, data)

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise _internal_error("Failed to update record")


@router.delete(
    "/{record_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete record",
)
async def delete_record(
    table: str,
    record_id: UUID,
    service: Annotated[DataService, Depends(get_data_service)],
    tenant: Annotated[TenantContext, Depends(get_tenant_context)],
) -> None:
    try:
        deleted = await service.delete(tenant.tenant_id, table, record_id)
        if not deleted:
            raise to_http_exception(RecordNotFoundError(table, str(record_id)))

    except HTTPException:
        raise
    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise _internal_error("Failed to delete record")
