"""Data domain layer: logical query model and row operation value objects."""

from data.domain.query import (
    AggregateFunction,
    AggregateProjection,
    Condition,
    Conjunction,
    FilterOperator,
    HavingCondition,
    Join,
    JoinKind,
    Ordering,
    OutputColumn,
    QuerySpec,
    TranslatedQuery,
)
from data.domain.value_objects import (
    BatchOperation,
    BatchOperationResult,
    BatchOperationType,
    Row,
    RowValue,
)

__all__ = [
    "AggregateFunction",
    "AggregateProjection",
    "BatchOperation",
    "BatchOperationResult",
    "BatchOperationType",
    "Condition",
    "Conjunction",
    "FilterOperator",
    "HavingCondition",
    "Join",
    "JoinKind",
    "Ordering",
    "OutputColumn",
    "QuerySpec",
    "Row",
    "RowValue",
    "TranslatedQuery",
]
