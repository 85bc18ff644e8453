"""Pydantic models for the structured query endpoint."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from data.domain.query import AggregateFunction, JoinKind
from data.presentation.filters import FilterModel


class AggregateModel(BaseModel):
    function: AggregateFunction
    column: str = Field(..., min_length=1, description="Column name, or * for count")
    alias: str | None = None


class JoinModel(BaseModel):
    """Join of another table of the same tenant."""

    table: str = Field(..., min_length=1)
    source_column: str = Field(..., min_length=1)
    target_column: str = Field(..., min_length=1)
    kind: JoinKind = JoinKind.INNER


class OrderModel(BaseModel):
    column: str = Field(..., min_length=1)
    descending: bool = False


class HavingModel(BaseModel):
    function: AggregateFunction
    column: str = Field(..., min_length=1)
    operator: str = "eq"
    value: Any = None


class QueryRequest(BaseModel):
    """A logical query. Every name is a logical table or column name.

    Columns of joined tables are referenced as ``table.column`` and come
    back under the same key.
    """

    table: str = Field(..., min_length=1)
    select: list[str] = Field(default_factory=list, description="Empty selects all columns")
    aggregates: list[AggregateModel] = Field(default_factory=list)
    filters: list[FilterModel] = Field(default_factory=list)
    joins: list[JoinModel] = Field(default_factory=list)
    order_by: list[OrderModel] = Field(default_factory=list)
    group_by: list[str] = Field(default_factory=list)
    having: list[HavingModel] = Field(default_factory=list)
    limit: int | None = Field(default=None, ge=0, le=10000)
    offset: int | None = Field(default=None, ge=0)
    include_total: bool = Field(
        default=False, description="Also count every matching row, ignoring paging"
    )


class QueryResponse(BaseModel):
    rows: list[dict[str, Any]]
    total: int | None = None
    logical_sql: str
