"""Pydantic models for batch API requests and responses."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from data.domain.value_objects import (
    BatchOperation,
    BatchOperationResult,
    BatchOperationType,
)
from data.presentation.filters import FilterModel


class BatchOperationModel(BaseModel):
    """One operation of a mixed batch."""

    operation: BatchOperationType
    table: str = Field(..., min_length=1)
    record_id: UUID | None = Field(default=None, description="Required for update and delete")
    data: dict[str, Any] = Field(default_factory=dict)
    key_columns: list[str] = Field(default_factory=list, description="Required for upsert")

    def to_domain(self) -> BatchOperation:
        return BatchOperation(
            operation=self.operation,
            table=self.table,
            record_id=self.record_id,
            data=self.data,
            key_columns=tuple(self.key_columns),
        )


class BatchRequest(BaseModel):
    operations: list[BatchOperationModel] = Field(..., min_length=1, max_length=1000)


class BatchOperationResultResponse(BaseModel):
    index: int
    success: bool
    data: dict[str, Any] | None = None
    affected_rows: int = 0
    error_code: str | None = None
    error_message: str | None = None

    @classmethod
    def from_domain(cls, result: BatchOperationResult) -> BatchOperationResultResponse:
        return cls(
            index=result.index,
            success=result.success,
            data=result.data,
            affected_rows=result.affected_rows,
            error_code=result.error_code,
            error_message=result.error_message,
        )


class BatchResponse(BaseModel):
    """Per-operation outcomes of a mixed batch."""

    results: list[BatchOperationResultResponse]
    succeeded: int
    failed: int


class BulkInsertRequest(BaseModel):
    """Rows inserted together; one invalid row rejects them all."""

    rows: list[dict[str, Any]] = Field(..., min_length=1, max_length=10000)


class BulkUpdateRequest(BaseModel):
    data: dict[str, Any] = Field(..., min_length=1)
    filters: list[FilterModel] = Field(default_factory=list)


class BulkDeleteRequest(BaseModel):
    """Filtered delete. At least one filter is required."""

    filters: list[FilterModel] = Field(..., min_length=1)


class AffectedRowsResponse(BaseModel):
    affected_rows: int
