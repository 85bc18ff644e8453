"""Fluent logical query builder.

A QueryBuilder accumulates a QuerySpec using logical names only, then
resolves the base and joined tables through the catalog on its first
terminal call. Descriptors are cached for the builder's lifetime.

Example:
    >>> rows = await (
    ...     service.query(tenant_id, "orders")
    ...     .where("status", "eq", "open")
    ...     .order_by_desc("created_at")
    ...     .limit(20)
    ...     .to_list()
    ... )
"""

from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, TypeVar
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from data.application.observability import DefaultQueryProbe, QueryProbe
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
    QuerySpec,
)
from data.domain.value_objects import Row
from data.ports.repositories import IRowRepository, ITableCatalog
from data.ports.translation import IQueryTranslator
from shared_kernel.exceptions import TableNotFoundError, ValidationError
from shared_kernel.schema_primitives import TableDescriptor

T = TypeVar("T")


def _operator(operator: FilterOperator | str) -> FilterOperator:
    if isinstance(operator, FilterOperator):
        return operator
    try:
        return FilterOperator.parse(operator)
    except ValueError as e:
        raise ValidationError(f"unknown operator '{operator}'", field="operator") from e


def _aggregate(function: AggregateFunction | str) -> AggregateFunction:
    if isinstance(function, AggregateFunction):
        return function
    try:
        return AggregateFunction(function.strip().lower())
    except ValueError as e:
        raise ValidationError(
            f"unknown aggregate '{function}'", field="aggregate"
        ) from e


class QueryBuilder:
    """Accumulates a logical query against one table of one tenant.

    Accumulating methods return the builder itself. Terminal coroutines
    execute on the given session; they open a transaction of their own
    unless one is already active.
    """

    def __init__(
        self,
        session: AsyncSession,
        tenant_id: UUID,
        table: str,
        catalog: ITableCatalog,
        rows: IRowRepository,
        translator: IQueryTranslator,
        probe: QueryProbe | None = None,
    ):
        self._session = session
        self._tenant_id = tenant_id
        self._catalog = catalog
        self._rows = rows
        self._translator = translator
        self._probe = probe or DefaultQueryProbe()
        self._spec = QuerySpec(table=table)
        self._tables: dict[str, TableDescriptor] = {}

    @property
    def table(self) -> str:
        return self._spec.table

    @property
    def tenant_id(self) -> UUID:
        return self._tenant_id

    @property
    def spec(self) -> QuerySpec:
        """An independent copy of the accumulated query."""
        return self._spec.copy()

    # Projection

    def select(self, *columns: str) -> QueryBuilder:
        self._spec.columns.extend(columns)
        return self

    def select_all(self) -> QueryBuilder:
        self._spec.select_all = True
        return self

    def select_aggregate(
        self,
        function: AggregateFunction | str,
        column: str,
        alias: str | None = None,
    ) -> QueryBuilder:
        self._spec.aggregates.append(
            AggregateProjection(_aggregate(function), column, alias)
        )
        return self

    # Predicates

    def where(
        self, column: str, operator: FilterOperator | str, value: Any = None
    ) -> QueryBuilder:
        return self._add_condition(column, operator, value, Conjunction.AND)

    def and_where(
        self, column: str, operator: FilterOperator | str, value: Any = None
    ) -> QueryBuilder:
        return self._add_condition(column, operator, value, Conjunction.AND)

    def or_where(
        self, column: str, operator: FilterOperator | str, value: Any = None
    ) -> QueryBuilder:
        return self._add_condition(column, operator, value, Conjunction.OR)

    def where_in(self, column: str, values: list[Any]) -> QueryBuilder:
        return self._add_condition(column, FilterOperator.IN, list(values), Conjunction.AND)

    def where_not_in(self, column: str, values: list[Any]) -> QueryBuilder:
        return self._add_condition(
            column, FilterOperator.NOT_IN, list(values), Conjunction.AND
        )

    def where_null(self, column: str) -> QueryBuilder:
        return self._add_condition(column, FilterOperator.IS_NULL, None, Conjunction.AND)

    def where_not_null(self, column: str) -> QueryBuilder:
        return self._add_condition(
            column, FilterOperator.IS_NOT_NULL, None, Conjunction.AND
        )

    def _add_condition(
        self,
        column: str,
        operator: FilterOperator | str,
        value: Any,
        conjunction: Conjunction,
    ) -> QueryBuilder:
        op = _operator(operator)
        if op.takes_list and not isinstance(value, (list, tuple, set)):
            raise ValidationError(f"'{op.value}' requires a list of values", field=column)
        self._spec.conditions.append(Condition(column, op, value, conjunction))
        return self

    # Joins

    def join(self, table: str, source_column: str, target_column: str) -> QueryBuilder:
        self._spec.joins.append(Join(table, source_column, target_column, JoinKind.INNER))
        return self

    def left_join(
        self, table: str, source_column: str, target_column: str
    ) -> QueryBuilder:
        self._spec.joins.append(Join(table, source_column, target_column, JoinKind.LEFT))
        return self

    # Ordering, grouping and paging

    def order_by(self, column: str) -> QueryBuilder:
        self._spec.orderings.append(Ordering(column))
        return self

    def order_by_desc(self, column: str) -> QueryBuilder:
        self._spec.orderings.append(Ordering(column, descending=True))
        return self

    def group_by(self, *columns: str) -> QueryBuilder:
        self._spec.group_by.extend(columns)
        return self

    def having(
        self,
        aggregate: AggregateFunction | str,
        column: str,
        operator: FilterOperator | str,
        value: Any = None,
    ) -> QueryBuilder:
        self._spec.having.append(
            HavingCondition(_aggregate(aggregate), column, _operator(operator), value)
        )
        return self

    def limit(self, count: int) -> QueryBuilder:
        if count < 0:
            raise ValidationError("limit must not be negative", field="limit")
        self._spec.limit = count
        return self

    def offset(self, count: int) -> QueryBuilder:
        if count < 0:
            raise ValidationError("offset must not be negative", field="offset")
        self._spec.offset = count
        return self

    def after(self, column: str, value: Any, page_size: int) -> QueryBuilder:
        """Keyset page of rows strictly after ``value`` in ascending order."""
        self.where(column, FilterOperator.GT, value)
        self.order_by(column)
        return self.limit(page_size)

    def before(self, column: str, value: Any, page_size: int) -> QueryBuilder:
        """Keyset page of rows strictly before ``value`` in descending order."""
        self.where(column, FilterOperator.LT, value)
        self.order_by_desc(column)
        return self.limit(page_size)

    # Diagnostics

    def to_logical_sql(self) -> str:
        """The query in logical names. Needs no metadata and hits no database."""
        return self._translator.render_logical(self._spec).sql

    def parameters(self) -> dict[str, Any]:
        return dict(self._translator.render_logical(self._spec).parameters)

    # Terminals

    async def to_list(self) -> list[Row]:
        async def work() -> list[Row]:
            base, joined = await self._descriptors()
            query = self._translator.translate_select(
                self._spec, base, joined, self._tenant_id
            )
            rows = await self._rows.fetch_all(query.sql, query.parameters)
            return [query.map_row(row) for row in rows]

        return await self._execute("to_list", work, len)

    async def first_or_none(self) -> Row | None:
        async def work() -> Row | None:
            base, joined = await self._descriptors()
            query = self._translator.translate_select(
                self._spec.copy(limit=1), base, joined, self._tenant_id
            )
            row = await self._rows.fetch_one(query.sql, query.parameters)
            return query.map_row(row) if row is not None else None

        return await self._execute(
            "first_or_none", work, lambda row: 0 if row is None else 1
        )

    async def count(self) -> int:
        async def work() -> int:
            base, joined = await self._descriptors()
            query = self._translator.translate_count(
                self._spec, base, joined, self._tenant_id
            )
            value = await self._rows.fetch_scalar(query.sql, query.parameters)
            return int(value or 0)

        return await self._execute("count", work, lambda _: 1)

    async def sum(self, column: str) -> Any:
        return await self._scalar_aggregate(AggregateFunction.SUM, column)

    async def avg(self, column: str) -> Any:
        return await self._scalar_aggregate(AggregateFunction.AVG, column)

    async def min(self, column: str) -> Any:
        return await self._scalar_aggregate(AggregateFunction.MIN, column)

    async def max(self, column: str) -> Any:
        return await self._scalar_aggregate(AggregateFunction.MAX, column)

    async def _scalar_aggregate(self, function: AggregateFunction, column: str) -> Any:
        async def work() -> Any:
            base, joined = await self._descriptors()
            query = self._translator.translate_aggregate(
                self._spec, base, joined, self._tenant_id, function, column
            )
            return await self._rows.fetch_scalar(query.sql, query.parameters)

        return await self._execute(function.value, work, lambda _: 1)

    async def _descriptors(self) -> tuple[TableDescriptor, dict[str, TableDescriptor]]:
        """Resolve the base table and every joined table, caching results.

        Raises:
            TableNotFoundError: If any referenced table does not exist
        """
        base = await self._descriptor(self._spec.table)
        joined = {}
        for name in self._spec.joined_tables:
            joined[name] = await self._descriptor(name)
        return base, joined

    async def _descriptor(self, logical_name: str) -> TableDescriptor:
        cached = self._tables.get(logical_name)
        if cached is not None:
            return cached
        table = await self._catalog.get_table(self._tenant_id, logical_name)
        if table is None:
            raise TableNotFoundError(logical_name)
        self._tables[logical_name] = table
        return table

    async def _execute(
        self,
        terminal: str,
        work: Callable[[], Awaitable[T]],
        size: Callable[[T], int],
    ) -> T:
        started = time.perf_counter()
        try:
            if self._session.in_transaction():
                result = await work()
            else:
                async with self._session.begin():
                    result = await work()
        except Exception as e:
            self._probe.query_failed(table=self._spec.table, terminal=terminal, error=str(e))
            raise

        self._probe.query_executed(
            table=self._spec.table,
            terminal=terminal,
            row_count=size(result),
            duration_ms=(time.perf_counter() - started) * 1000,
        )
        return result
