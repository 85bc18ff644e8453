"""Filter parsing shared by the data routes.

Filters arrive either as structured JSON (``FilterModel``) or, on list
endpoints, as a compact query string::

    ?filter=status:eq:open,total:gte:100,region:in:eu|us

Each term is ``column:operator[:value]``. Values are parsed as booleans,
``null``, integers and decimals before falling back to strings; ``in`` and
``not_in`` take ``|``-separated lists.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, Field

from data.application.query_builder import QueryBuilder
from data.domain.query import Conjunction, FilterOperator
from shared_kernel.exceptions import ValidationError


class FilterModel(BaseModel):
    """One filter predicate in logical names."""

    column: str = Field(..., min_length=1)
    operator: str = Field(default="eq", description="Operator name or symbol, e.g. gte or >=")
    value: Any = None
    conjunction: Conjunction = Conjunction.AND


def parse_scalar(raw: str) -> Any:
    lowered = raw.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered == "null":
        return None
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return Decimal(raw)
    except InvalidOperation:
        return raw


def parse_filter_string(raw: str) -> list[FilterModel]:
    """Parse the compact ``column:operator:value`` form.

    Raises:
        ValidationError: If a term is malformed or names an unknown operator
    """
    filters: list[FilterModel] = []
    for term in raw.split(","):
        term = term.strip()
        if not term:
            continue
        parts = term.split(":", 2)
        if len(parts) < 2 or not parts[0]:
            raise ValidationError(
                f"expected column:operator[:value], got '{term}'", field="filter"
            )
        column, operator = parts[0], parts[1]
        try:
            op = FilterOperator.parse(operator)
        except ValueError as e:
            raise ValidationError(f"unknown operator '{operator}'", field="filter") from e

        value: Any = None
        if op.takes_list:
            value = [parse_scalar(v) for v in parts[2].split("|")] if len(parts) > 2 else []
        elif op.takes_value:
            if len(parts) < 3:
                raise ValidationError(f"operator '{op.value}' needs a value", field="filter")
            value = parse_scalar(parts[2])
        filters.append(FilterModel(column=column, operator=op.value, value=value))
    return filters


def apply_filters(builder: QueryBuilder, filters: list[FilterModel]) -> QueryBuilder:
    for f in filters:
        if f.conjunction == Conjunction.OR:
            builder.or_where(f.column, f.operator, f.value)
        else:
            builder.where(f.column, f.operator, f.value)
    return builder


def apply_ordering(builder: QueryBuilder, raw: str | None) -> QueryBuilder:
    """Apply a comma-separated ordering where ``-column`` sorts descending."""
    if not raw:
        return builder
    for term in raw.split(","):
        term = term.strip()
        if not term:
            continue
        if term.startswith("-"):
            builder.order_by_desc(term[1:])
        else:
            builder.order_by(term.lstrip("+"))
    return builder
