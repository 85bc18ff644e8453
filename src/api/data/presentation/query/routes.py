"""HTTP route for structured logical queries."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from data.application.query_builder import QueryBuilder
from data.application.services import DataService
from data.dependencies import get_data_service
from data.domain.query import JoinKind
from data.presentation.filters import apply_filters
from data.presentation.query.models import QueryRequest, QueryResponse
from infrastructure.http_errors import to_http_exception
from infrastructure.tenant_dependencies import get_tenant_context
from shared_kernel.exceptions import MorphError
from shared_kernel.middleware.tenant_context import TenantContext

router = APIRouter(
    prefix="/query",
    tags=["query"],
)


def build_query(builder: QueryBuilder, request: QueryRequest) -> QueryBuilder:
    """Replay a structured query request onto a builder."""
    if request.select:
        builder.select(*request.select)
    for agg in request.aggregates:
        builder.select_aggregate(agg.function, agg.column, agg.alias)
    for join in request.joins:
        if join.kind == JoinKind.LEFT:
            builder.left_join(join.table, join.source_column, join.target_column)
        else:
            builder.join(join.table, join.source_column, join.target_column)
    apply_filters(builder, request.filters)
    if request.group_by:
        builder.group_by(*request.group_by)
    for having in request.having:
        builder.having(having.function, having.column, having.operator, having.value)
    for order in request.order_by:
        if order.descending:
            builder.order_by_desc(order.column)
        else:
            builder.order_by(order.column)
    if request.limit is not None:
        builder.limit(request.limit)
    if request.offset is not None:
        builder.offset(request.offset)
    return builder


@router.post("", summary="Run query")
async def run_query(
    request: QueryRequest,
    service: Annotated[DataService, Depends(get_data_service)],
    tenant: Annotated[TenantContext, Depends(get_tenant_context)],
) -> QueryResponse:
    """Run a logical query against the tenant's tables.

    Raises:
        HTTPException: 400 on an unknown operator or invalid value
        HTTPException: 404 if a table or column does not exist
    """
    try:
        builder = build_query(service.query(tenant.tenant_id, request.table), request)
        rows = await builder.to_list()
        total = await builder.count() if request.include_total else None
        return QueryResponse(rows=rows, total=total, logical_sql=builder.to_logical_sql())

    except MorphError as e:
        raise to_http_exception(e)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "INTERNAL_ERROR", "message": "Failed to run query"},
        )
