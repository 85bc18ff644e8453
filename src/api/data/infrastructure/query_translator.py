"""Translation of logical queries into physical PostgreSQL.

Every identifier in the generated SQL comes from a table or column
descriptor, never from caller input, and every value is a bind parameter
named ``p0``, ``p1``, ... in order of appearance. The base table is always
filtered by tenant, and joined tables are restricted to the same tenant in
their join condition.
"""

from __future__ import annotations

from typing import Any, Mapping
from uuid import UUID

from data.domain.query import (
    AggregateFunction,
    Conjunction,
    FilterOperator,
    JoinKind,
    OutputColumn,
    QuerySpec,
    TranslatedQuery,
)
from shared_kernel.exceptions import (
    ColumnNotFoundError,
    TableNotFoundError,
    ValidationError,
)
from shared_kernel.schema_primitives import (
    TENANT_COLUMN,
    ColumnDescriptor,
    TableDescriptor,
    TypeMapper,
)
from shared_kernel.sql import quote_identifier, quote_qualified

TENANT_PARAMETER = "tenant"

_COMPARISON_SQL: dict[FilterOperator, str] = {
    FilterOperator.EQ: "=",
    FilterOperator.NEQ: "<>",
    FilterOperator.GT: ">",
    FilterOperator.GTE: ">=",
    FilterOperator.LT: "<",
    FilterOperator.LTE: "<=",
    FilterOperator.LIKE: "LIKE",
    FilterOperator.NOT_LIKE: "NOT LIKE",
    FilterOperator.ILIKE: "ILIKE",
    FilterOperator.CONTAINS: "ILIKE",
    FilterOperator.STARTS_WITH: "ILIKE",
    FilterOperator.ENDS_WITH: "ILIKE",
}

_PATTERN_OPERATORS = frozenset(
    {
        FilterOperator.LIKE,
        FilterOperator.NOT_LIKE,
        FilterOperator.ILIKE,
        FilterOperator.CONTAINS,
        FilterOperator.STARTS_WITH,
        FilterOperator.ENDS_WITH,
    }
)

_AGGREGATE_SQL: dict[AggregateFunction, str] = {
    AggregateFunction.COUNT: "COUNT({})",
    AggregateFunction.COUNT_DISTINCT: "COUNT(DISTINCT {})",
    AggregateFunction.SUM: "SUM({})",
    AggregateFunction.AVG: "AVG({})",
    AggregateFunction.MIN: "MIN({})",
    AggregateFunction.MAX: "MAX({})",
}


def aggregate_alias(function: AggregateFunction, column: str) -> str:
    """Default result name of an aggregate projection, e.g. ``sum_total``."""
    if column == "*":
        return function.value
    return f"{function.value}_{column.replace('.', '_')}"


def _pattern(operator: FilterOperator, value: Any) -> str:
    text = "" if value is None else str(value)
    if operator == FilterOperator.CONTAINS:
        return f"%{text}%"
    if operator == FilterOperator.STARTS_WITH:
        return f"{text}%"
    if operator == FilterOperator.ENDS_WITH:
        return f"%{text}"
    return text


class _Parameters:
    """Allocates sequential bind parameter names."""

    def __init__(self):
        self.values: dict[str, Any] = {}
        self._count = 0

    def add(self, value: Any) -> str:
        name = f"p{self._count}"
        self._count += 1
        self.values[name] = value
        return f":{name}"


class _Scope:
    """Resolves logical column references against the query's tables."""

    def __init__(
        self,
        spec: QuerySpec,
        base: TableDescriptor,
        joined: Mapping[str, TableDescriptor],
    ):
        self.spec = spec
        self.base = base
        self.joined: dict[str, TableDescriptor] = {}
        for join in spec.joins:
            if join.table == spec.table or join.table in self.joined:
                raise ValidationError(
                    f"table '{join.table}' appears more than once", field="joins"
                )
            table = joined.get(join.table)
            if table is None:
                raise TableNotFoundError(join.table)
            self.joined[join.table] = table

    def resolve(
        self, reference: str, default: TableDescriptor | None = None
    ) -> tuple[TableDescriptor, ColumnDescriptor]:
        """Resolve a bare or ``table.column`` reference.

        Raises:
            ColumnNotFoundError: If the column does not exist on the table
        """
        home = default or self.base
        column = home.find_column(reference)
        if column is not None:
            return home, column

        if "." in reference:
            prefix, name = reference.split(".", 1)
            table = self._table_named(prefix)
            if table is not None:
                column = table.find_column(name)
                if column is None:
                    raise ColumnNotFoundError(table.logical_name, name)
                return table, column

        raise ColumnNotFoundError(home.logical_name, reference)

    def expression(
        self, reference: str, default: TableDescriptor | None = None
    ) -> tuple[str, ColumnDescriptor]:
        table, column = self.resolve(reference, default)
        return quote_qualified(table.physical_name, column.physical_name), column

    def output_name(self, table: TableDescriptor, column: ColumnDescriptor) -> str:
        if table is self.base:
            return column.logical_name
        return f"{table.logical_name}.{column.logical_name}"

    def tables(self) -> list[TableDescriptor]:
        return [self.base, *self.joined.values()]

    def _table_named(self, logical_name: str) -> TableDescriptor | None:
        if logical_name == self.spec.table:
            return self.base
        return self.joined.get(logical_name)


class QueryTranslator:
    """Stateless translator from QuerySpec to physical SQL."""

    def translate_select(
        self,
        spec: QuerySpec,
        base: TableDescriptor,
        joined: Mapping[str, TableDescriptor],
        tenant_id: UUID,
    ) -> TranslatedQuery:
        scope = _Scope(spec, base, joined)
        params = _Parameters()

        projection, outputs, aliases = self._projection(scope)
        sql = f"SELECT {projection} FROM {self._from(scope)}"
        sql += f" WHERE {self._where(scope, params, tenant_id)}"
        sql += self._group_and_having(scope, params)

        if spec.orderings:
            terms = []
            for ordering in spec.orderings:
                if ordering.column in aliases:
                    expr = quote_identifier(ordering.column)
                else:
                    expr, _ = scope.expression(ordering.column)
                terms.append(f"{expr} {'DESC' if ordering.descending else 'ASC'}")
            sql += " ORDER BY " + ", ".join(terms)

        sql += self._paging(spec)
        return TranslatedQuery(sql=sql, parameters=params.values, outputs=outputs)

    def translate_count(
        self,
        spec: QuerySpec,
        base: TableDescriptor,
        joined: Mapping[str, TableDescriptor],
        tenant_id: UUID,
    ) -> TranslatedQuery:
        scope = _Scope(spec, base, joined)
        params = _Parameters()

        body = f"FROM {self._from(scope)} WHERE {self._where(scope, params, tenant_id)}"
        if spec.group_by or spec.having:
            grouped = self._group_and_having(scope, params)
            sql = f"SELECT COUNT(*) FROM (SELECT 1 {body}{grouped}) AS grouped"
        else:
            sql = f"SELECT COUNT(*) {body}"
        return TranslatedQuery(sql=sql, parameters=params.values)

    def translate_aggregate(
        self,
        spec: QuerySpec,
        base: TableDescriptor,
        joined: Mapping[str, TableDescriptor],
        tenant_id: UUID,
        function: AggregateFunction,
        column: str,
    ) -> TranslatedQuery:
        scope = _Scope(spec, base, joined)
        params = _Parameters()

        aggregate = self._aggregate(scope, function, column)
        sql = (
            f"SELECT {aggregate} FROM {self._from(scope)} "
            f"WHERE {self._where(scope, params, tenant_id)}"
        )
        return TranslatedQuery(sql=sql, parameters=params.values)

    def translate_where(
        self, spec: QuerySpec, base: TableDescriptor, tenant_id: UUID
    ) -> TranslatedQuery:
        if spec.joins:
            raise ValidationError(
                "batch updates and deletes cannot join other tables", field="joins"
            )
        scope = _Scope(spec, base, {})
        params = _Parameters()
        return TranslatedQuery(
            sql=self._where(scope, params, tenant_id), parameters=params.values
        )

    def render_logical(self, spec: QuerySpec) -> TranslatedQuery:
        """Render the query with logical names and no tenant predicate."""
        params = _Parameters()

        def ref(name: str) -> str:
            if "." in name:
                table, column = name.split(".", 1)
                return quote_qualified(table, column)
            return quote_identifier(name)

        items: list[str] = []
        if spec.select_all or (not spec.columns and not spec.aggregates):
            items.append("*")
        items.extend(ref(c) for c in spec.columns)
        for agg in spec.aggregates:
            target = "*" if agg.column == "*" else ref(agg.column)
            alias = agg.alias or aggregate_alias(agg.function, agg.column)
            items.append(
                f"{_AGGREGATE_SQL[agg.function].format(target)} AS {quote_identifier(alias)}"
            )

        sql = f"SELECT {', '.join(items)} FROM {quote_identifier(spec.table)}"
        for join in spec.joins:
            keyword = "LEFT JOIN" if join.kind == JoinKind.LEFT else "INNER JOIN"
            sql += (
                f" {keyword} {quote_identifier(join.table)} ON "
                f"{ref(join.source_column)} = {ref(join.target_column)}"
            )

        predicates = [
            (c.conjunction, self._predicate(ref(c.column), c.operator, c.value, None, params))
            for c in spec.conditions
        ]
        if predicates:
            sql += f" WHERE {self._combine(predicates)}"
        if spec.group_by:
            sql += " GROUP BY " + ", ".join(ref(c) for c in spec.group_by)
        if spec.having:
            terms = []
            for having in spec.having:
                target = "*" if having.column == "*" else ref(having.column)
                expr = _AGGREGATE_SQL[having.function].format(target)
                terms.append(
                    self._predicate(expr, having.operator, having.value, None, params)
                )
            sql += " HAVING " + " AND ".join(terms)
        if spec.orderings:
            sql += " ORDER BY " + ", ".join(
                f"{ref(o.column)} {'DESC' if o.descending else 'ASC'}"
                for o in spec.orderings
            )
        sql += self._paging(spec)
        return TranslatedQuery(sql=sql, parameters=params.values)

    # Clauses

    def _projection(
        self, scope: _Scope
    ) -> tuple[str, dict[str, OutputColumn], set[str]]:
        spec = scope.spec
        items: list[str] = []
        outputs: dict[str, OutputColumn] = {}

        if spec.select_all or (not spec.columns and not spec.aggregates):
            for table in scope.tables():
                items.append(f"{quote_identifier(table.physical_name)}.*")
                for column in table.columns:
                    outputs[column.physical_name.lower()] = OutputColumn(
                        scope.output_name(table, column), column.data_type
                    )

        for reference in spec.columns:
            table, column = scope.resolve(reference)
            items.append(quote_qualified(table.physical_name, column.physical_name))
            outputs[column.physical_name.lower()] = OutputColumn(
                scope.output_name(table, column), column.data_type
            )

        aliases: set[str] = set()
        for agg in spec.aggregates:
            alias = agg.alias or aggregate_alias(agg.function, agg.column)
            aliases.add(alias)
            items.append(
                f"{self._aggregate(scope, agg.function, agg.column)} AS {quote_identifier(alias)}"
            )

        return ", ".join(items), outputs, aliases

    def _aggregate(self, scope: _Scope, function: AggregateFunction, column: str) -> str:
        if column == "*":
            if function != AggregateFunction.COUNT:
                raise ValidationError(
                    f"{function.value} requires a column", field="aggregates"
                )
            return "COUNT(*)"
        expr, _ = scope.expression(column)
        return _AGGREGATE_SQL[function].format(expr)

    def _from(self, scope: _Scope) -> str:
        sql = quote_identifier(scope.base.physical_name)
        for join in scope.spec.joins:
            table = scope.joined[join.table]
            source, _ = scope.expression(join.source_column)
            target, _ = scope.expression(join.target_column, default=table)
            tenant_column = table.find_column(TENANT_COLUMN)
            keyword = "LEFT JOIN" if join.kind == JoinKind.LEFT else "INNER JOIN"
            sql += (
                f" {keyword} {quote_identifier(table.physical_name)} "
                f"ON {source} = {target}"
            )
            if tenant_column is not None:
                tenant = quote_qualified(table.physical_name, tenant_column.physical_name)
                sql += f" AND {tenant} = :{TENANT_PARAMETER}"
        return sql

    def _where(self, scope: _Scope, params: _Parameters, tenant_id: UUID) -> str:
        tenant_column = scope.base.find_column(TENANT_COLUMN)
        if tenant_column is None:
            raise ColumnNotFoundError(scope.base.logical_name, TENANT_COLUMN)
        params.values[TENANT_PARAMETER] = tenant_id
        tenant = quote_qualified(scope.base.physical_name, tenant_column.physical_name)
        clause = f"{tenant} = :{TENANT_PARAMETER}"

        predicates = []
        for condition in scope.spec.conditions:
            expr, column = scope.expression(condition.column)
            predicates.append(
                (
                    condition.conjunction,
                    self._predicate(
                        expr, condition.operator, condition.value, column, params
                    ),
                )
            )
        if predicates:
            clause += f" AND ({self._combine(predicates)})"
        return clause

    def _group_and_having(self, scope: _Scope, params: _Parameters) -> str:
        spec = scope.spec
        sql = ""
        if spec.group_by:
            sql += " GROUP BY " + ", ".join(
                scope.expression(c)[0] for c in spec.group_by
            )
        if spec.having:
            terms = []
            for having in spec.having:
                expr = self._aggregate(scope, having.function, having.column)
                terms.append(
                    self._predicate(expr, having.operator, having.value, None, params)
                )
            sql += " HAVING " + " AND ".join(terms)
        return sql

    @staticmethod
    def _paging(spec: QuerySpec) -> str:
        sql = ""
        if spec.limit is not None:
            sql += f" LIMIT {int(spec.limit)}"
        if spec.offset is not None:
            sql += f" OFFSET {int(spec.offset)}"
        return sql

    @staticmethod
    def _combine(predicates: list[tuple[Conjunction, str]]) -> str:
        sql = predicates[0][1]
        for conjunction, predicate in predicates[1:]:
            sql += f" {'OR' if conjunction == Conjunction.OR else 'AND'} {predicate}"
        return sql

    def _predicate(
        self,
        expr: str,
        operator: FilterOperator,
        value: Any,
        column: ColumnDescriptor | None,
        params: _Parameters,
    ) -> str:
        if operator == FilterOperator.IS_NULL:
            return f"{expr} IS NULL"
        if operator == FilterOperator.IS_NOT_NULL:
            return f"{expr} IS NOT NULL"

        if operator.takes_list:
            values = list(value or [])
            if not values:
                # Empty IN matches nothing; empty NOT IN matches everything
                return "FALSE" if operator == FilterOperator.IN else "TRUE"
            names = ", ".join(params.add(self._bind(v, column)) for v in values)
            keyword = "IN" if operator == FilterOperator.IN else "NOT IN"
            return f"{expr} {keyword} ({names})"

        if operator in _PATTERN_OPERATORS:
            return f"{expr} {_COMPARISON_SQL[operator]} {params.add(_pattern(operator, value))}"

        return f"{expr} {_COMPARISON_SQL[operator]} {params.add(self._bind(value, column))}"

    @staticmethod
    def _bind(value: Any, column: ColumnDescriptor | None) -> Any:
        """Coerce a filter value to the column's type for binding.

        Raises:
            ValidationError: If the value cannot represent the column's type
        """
        if column is None or value is None:
            return value
        try:
            coerced = TypeMapper.coerce_value(column.data_type, value)
        except ValueError as e:
            raise ValidationError(str(e), field=column.logical_name) from e
        if TypeMapper.to_native_type(column.data_type) == "text" and not isinstance(
            coerced, str
        ):
            # Filter strings parse numerals eagerly; text columns compare as text
            coerced = str(coerced)
        return TypeMapper.to_storage_value(column.data_type, coerced)
