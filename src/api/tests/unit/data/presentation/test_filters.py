"""Unit tests for filter parsing."""

from decimal import Decimal
from unittest.mock import create_autospec

import pytest

from data.application.query_builder import QueryBuilder
from data.domain.query import Conjunction
from data.presentation.filters import (
    FilterModel,
    apply_filters,
    apply_ordering,
    parse_filter_string,
    parse_scalar,
)
from shared_kernel.exceptions import ValidationError


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("true", True),
        ("FALSE", False),
        ("null", None),
        ("42", 42),
        ("-3", -3),
        ("9.75", Decimal("9.75")),
        ("open", "open"),
    ],
)
def test_parse_scalar(raw, expected):
    assert parse_scalar(raw) == expected


class TestParseFilterString:
    def test_multiple_terms(self):
        filters = parse_filter_string("status:eq:open, total:>=:100")

        assert [(f.column, f.operator, f.value) for f in filters] == [
            ("status", "eq", "open"),
            ("total", "gte", 100),
        ]

    def test_list_values(self):
        (f,) = parse_filter_string("region:in:eu|us|1")
        assert f.value == ["eu", "us", 1]

    def test_value_may_contain_colons(self):
        (f,) = parse_filter_string("starts:eq:10:30")
        assert f.value == "10:30"

    def test_null_checks_take_no_value(self):
        (f,) = parse_filter_string("email:is_null")
        assert f.operator == "is_null"
        assert f.value is None

    def test_empty_terms_are_skipped(self):
        assert parse_filter_string(",,") == []

    @pytest.mark.parametrize("raw", ["status", ":eq:x", "status:eq", "status:between:1"])
    def test_malformed(self, raw):
        with pytest.raises(ValidationError):
            parse_filter_string(raw)


class TestApply:
    def test_conjunctions(self):
        builder = create_autospec(QueryBuilder, instance=True)

        apply_filters(
            builder,
            [
                FilterModel(column="status", value="open"),
                FilterModel(column="status", value="new", conjunction=Conjunction.OR),
            ],
        )

        builder.where.assert_called_once_with("status", "eq", "open")
        builder.or_where.assert_called_once_with("status", "eq", "new")

    def test_ordering(self):
        builder = create_autospec(QueryBuilder, instance=True)

        apply_ordering(builder, "-created_at, +status,total")

        builder.order_by_desc.assert_called_once_with("created_at")
        assert [c.args for c in builder.order_by.call_args_list] == [("status",), ("total",)]

    def test_no_ordering(self):
        builder = create_autospec(QueryBuilder, instance=True)
        assert apply_ordering(builder, None) is builder
        builder.order_by.assert_not_called()
