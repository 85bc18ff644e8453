"""HTTP routes for batch data operations."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status

from data.application.services import DataService
from data.dependencies import get_data_service
from data.presentation.batch.models import (
    AffectedRowsResponse,
    BatchOperationResultResponse,
    BatchRequest,
    BatchResponse,
    BulkDeleteRequest,
    BulkInsertRequest,
    BulkUpdateRequest,
)
from data.presentation.filters import apply_filters
from infrastructure.http_errors import to_http_exception
from infrastructure.tenant_dependencies import get_tenant_context
from shared_kernel.exceptions import MorphError
from shared_kernel.middleware.tenant_context import TenantContext

router = APIRouter(
    prefix="/batch",
    tags=["batch"],
)


def _internal_error(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"code": "INTERNAL_ERROR", "message": message},
    )


@router.post("", summary="Execute mixed batch")
async def execute_batch(
    request: BatchRequest,
    service: Annotated[DataService, Depends(get_data_service)],
    tenant: Annotated[TenantContext, Depends(get_tenant_context)],
) -> BatchResponse:
    """Run inserts, updates, upserts and deletes across tables.

    Each operation commits on its own; failures are reported per operation
    and do not undo earlier successes.
    """
    try:
        results = await service.execute_batch(
            tenant.tenant_id, [op.to_domain() for op in request.operations]
        )
        succeeded = sum(1 for r in results if r.success)
        return BatchResponse(
            results=[BatchOperationResultResponse.from_domain(r) for r in results],
            succeeded=succeeded,
            failed=len(results) - succeeded,
        )

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise _internal_error("Failed to execute batch")


@router.post(
    "/tables/{table}/insert",
    status_code=status.HTTP_201_CREATED,
    summary="Bulk insert",
)
async def bulk_insert(
    table: str,
    request: BulkInsertRequest,
    service: Annotated[DataService, Depends(get_data_service)],
    tenant: Annotated[TenantContext, Depends(get_tenant_context)],
) -> list[dict[str, Any]]:
    """Insert rows atomically.

    Raises:
        HTTPException: 400 listing every invalid field as rows[i].field
    """
    try:
        return await service.insert_batch(tenant.tenant_id, table, request.rows)

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise _internal_error("Failed to insert records")


@router.post("/tables/{table}/update", summary="Bulk update")
async def bulk_update(
    table: str,
    request: BulkUpdateRequest,
    service: Annotated[DataService, Depends(get_data_service)],
    tenant: Annotated[TenantContext, Depends(get_tenant_context)],
) -> AffectedRowsResponse:
    try:
        where = apply_filters(service.query(tenant.tenant_id, table), request.filters)
        affected = await service.update_batch(tenant.tenant_id, table, request.data, where)
        return AffectedRowsResponse(affected_rows=affected)

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise _internal_error("Failed to update records")


@router.post("/tables/{table}/delete", summary="Bulk delete")
async def bulk_delete(
    table: str,
    request: BulkDeleteRequest,
    service: Annotated[DataService, Depends(get_data_service)],
    tenant: Annotated[TenantContext, Depends(get_tenant_context)],
) -> AffectedRowsResponse:
    try:
        where = apply_filters(service.query(tenant.tenant_id, table), request.filters)
        affected = await service.delete_batch(tenant.tenant_id, table, where)
        return AffectedRowsResponse(affected_rows=affected)

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise _internal_error("Failed to delete records")
