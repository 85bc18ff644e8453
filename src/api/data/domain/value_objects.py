"""Value objects for row-level data operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import StrEnum
from typing import Any, Union
from uuid import UUID

RowValue = Union[
    None, bool, int, float, str, Decimal, UUID, date, datetime, time, list, dict
]
Row = dict[str, Any]


class BatchOperationType(StrEnum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    UPSERT = "upsert"


@dataclass(frozen=True)
class BatchOperation:
    """One operation of a mixed batch.

    Attributes:
        operation: What to do
        table: Logical table name
        record_id: Target row for update and delete
        data: Row data for insert, update and upsert
        key_columns: Conflict keys for upsert
    """

    operation: BatchOperationType
    table: str
    record_id: UUID | None = None
    data: Row = field(default_factory=dict)
    key_columns: tuple[str, ...] = ()


@dataclass(frozen=True)
class BatchOperationResult:
    """Outcome of one operation of a mixed batch."""

    index: int
    success: bool
    data: Row | None = None
    affected_rows: int = 0
    error_code: str | None = None
    error_message: str | None = None
