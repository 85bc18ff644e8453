"""Logical query model.

A QuerySpec records what a caller asked for using logical table and column
names only. Translation to physical SQL happens later, once the table
descriptors are known.

Column references are either bare (``"email"``, resolved against the base
table) or qualified with a joined table's logical name (``"orders.total"``).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any, Mapping

from shared_kernel.schema_primitives import DataType, TypeMapper


class FilterOperator(StrEnum):
    """Comparison operators available to filters and HAVING clauses."""

    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    LIKE = "like"
    NOT_LIKE = "not_like"
    ILIKE = "ilike"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IN = "in"
    NOT_IN = "not_in"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"

    @classmethod
    def parse(cls, raw: str) -> FilterOperator:
        """Parse an operator from its name or a symbolic alias.

        Accepts the enum values plus ``=``, ``==``, ``!=``, ``<>``, ``>``,
        ``>=``, ``<``, ``<=``, ``startswith`` and ``endswith``.

        Raises:
            ValueError: If the operator is unknown
        """
        normalized = raw.strip().lower()
        alias = _OPERATOR_ALIASES.get(normalized)
        if alias is not None:
            return alias
        return cls(normalized)

    @property
    def takes_value(self) -> bool:
        return self not in (FilterOperator.IS_NULL, FilterOperator.IS_NOT_NULL)

    @property
    def takes_list(self) -> bool:
        return self in (FilterOperator.IN, FilterOperator.NOT_IN)


_OPERATOR_ALIASES: dict[str, FilterOperator] = {
    "=": FilterOperator.EQ,
    "==": FilterOperator.EQ,
    "!=": FilterOperator.NEQ,
    "<>": FilterOperator.NEQ,
    ">": FilterOperator.GT,
    ">=": FilterOperator.GTE,
    "<": FilterOperator.LT,
    "<=": FilterOperator.LTE,
    "startswith": FilterOperator.STARTS_WITH,
    "endswith": FilterOperator.ENDS_WITH,
    "notlike": FilterOperator.NOT_LIKE,
}


class AggregateFunction(StrEnum):
    COUNT = "count"
    COUNT_DISTINCT = "count_distinct"
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"


class Conjunction(StrEnum):
    AND = "and"
    OR = "or"


class JoinKind(StrEnum):
    INNER = "inner"
    LEFT = "left"


@dataclass(frozen=True)
class Condition:
    """One filter predicate.

    ``conjunction`` says how the predicate combines with the ones before
    it; it is ignored for the first predicate.
    """

    column: str
    operator: FilterOperator
    value: Any = None
    conjunction: Conjunction = Conjunction.AND


@dataclass(frozen=True)
class AggregateProjection:
    function: AggregateFunction
    column: str
    alias: str | None = None


@dataclass(frozen=True)
class Join:
    """Join of another logical table of the same tenant.

    ``source_column`` belongs to the base table (or an earlier join when
    qualified); ``target_column`` belongs to the joined table.
    """

    table: str
    source_column: str
    target_column: str
    kind: JoinKind = JoinKind.INNER


@dataclass(frozen=True)
class Ordering:
    column: str
    descending: bool = False


@dataclass(frozen=True)
class HavingCondition:
    function: AggregateFunction
    column: str
    operator: FilterOperator
    value: Any = None


@dataclass
class QuerySpec:
    """Accumulated logical query against one base table."""

    table: str
    columns: list[str] = field(default_factory=list)
    select_all: bool = False
    aggregates: list[AggregateProjection] = field(default_factory=list)
    conditions: list[Condition] = field(default_factory=list)
    joins: list[Join] = field(default_factory=list)
    orderings: list[Ordering] = field(default_factory=list)
    group_by: list[str] = field(default_factory=list)
    having: list[HavingCondition] = field(default_factory=list)
    limit: int | None = None
    offset: int | None = None

    def copy(self, **changes: Any) -> QuerySpec:
        """Return an independent copy, optionally with fields replaced."""
        copied = replace(
            self,
            columns=list(self.columns),
            aggregates=list(self.aggregates),
            conditions=list(self.conditions),
            joins=list(self.joins),
            orderings=list(self.orderings),
            group_by=list(self.group_by),
            having=list(self.having),
        )
        return replace(copied, **changes) if changes else copied

    @property
    def joined_tables(self) -> list[str]:
        return [j.table for j in self.joins]


@dataclass(frozen=True)
class OutputColumn:
    """How a physical result column maps back to a logical row key."""

    name: str
    data_type: DataType | None = None


@dataclass(frozen=True)
class TranslatedQuery:
    """Executable SQL text with its bind parameters.

    ``outputs`` maps lower-cased physical result column names to their
    logical row keys; result columns not listed (aggregate aliases) are
    passed through unchanged.
    """

    sql: str
    parameters: dict[str, Any] = field(default_factory=dict)
    outputs: Mapping[str, OutputColumn] = field(default_factory=dict)

    def map_row(self, row: Mapping[str, Any]) -> dict[str, Any]:
        """Map a physical result row to logical keys, decoding stored values."""
        mapped: dict[str, Any] = {}
        for key, value in row.items():
            output = self.outputs.get(key.lower())
            if output is None:
                mapped[key] = value
            elif output.data_type is None:
                mapped[output.name] = value
            else:
                mapped[output.name] = TypeMapper.from_storage_value(
                    output.data_type, value
                )
        return mapped
