"""Abstract column types and their mapping onto PostgreSQL.

The abstract type vocabulary is what tenants use when defining columns.
TypeMapper turns it into native column types, default expressions,
recommended index kinds and storage-ready values.
"""

from __future__ import annotations

import json
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from enum import StrEnum
from typing import Any
from uuid import UUID


class DataType(StrEnum):
    """Abstract column data types."""

    TEXT = "text"
    LONG_TEXT = "long_text"
    INTEGER = "integer"
    BIG_INTEGER = "big_integer"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    DATE_TIME = "date_time"
    TIME = "time"
    UUID = "uuid"
    JSON = "json"
    ARRAY = "array"
    EMAIL = "email"
    URL = "url"
    PHONE = "phone"
    SINGLE_SELECT = "single_select"
    MULTI_SELECT = "multi_select"
    RELATION = "relation"
    ROLLUP = "rollup"
    FORMULA = "formula"
    ATTACHMENT = "attachment"
    CREATED_TIME = "created_time"
    MODIFIED_TIME = "modified_time"
    CREATED_BY = "created_by"
    MODIFIED_BY = "modified_by"


class IndexType(StrEnum):
    """Physical index access methods."""

    BTREE = "btree"
    HASH = "hash"
    GIST = "gist"
    GIN = "gin"
    BRIN = "brin"


class SortDirection(StrEnum):
    """Sort direction of an index column."""

    ASCENDING = "asc"
    DESCENDING = "desc"


class NullsPosition(StrEnum):
    """Placement of NULLs within an index column."""

    FIRST = "first"
    LAST = "last"


class RelationType(StrEnum):
    """Cardinality of a relation between two tables."""

    ONE_TO_ONE = "one_to_one"
    ONE_TO_MANY = "one_to_many"
    MANY_TO_MANY = "many_to_many"


class ReferentialAction(StrEnum):
    """Foreign-key referential actions."""

    NO_ACTION = "no_action"
    CASCADE = "cascade"
    SET_NULL = "set_null"
    SET_DEFAULT = "set_default"
    RESTRICT = "restrict"

    @property
    def sql(self) -> str:
        """SQL keyword form, e.g. ``SET NULL``."""
        return self.value.replace("_", " ").upper()


_NATIVE_TYPES: dict[DataType, str] = {
    DataType.TEXT: "text",
    DataType.LONG_TEXT: "text",
    DataType.EMAIL: "text",
    DataType.URL: "text",
    DataType.PHONE: "text",
    DataType.SINGLE_SELECT: "text",
    DataType.FORMULA: "text",
    DataType.INTEGER: "integer",
    DataType.BIG_INTEGER: "bigint",
    DataType.DECIMAL: "numeric",
    DataType.BOOLEAN: "boolean",
    DataType.DATE: "date",
    DataType.DATE_TIME: "timestamptz",
    DataType.CREATED_TIME: "timestamptz",
    DataType.MODIFIED_TIME: "timestamptz",
    DataType.TIME: "time",
    DataType.UUID: "uuid",
    DataType.RELATION: "uuid",
    DataType.CREATED_BY: "uuid",
    DataType.MODIFIED_BY: "uuid",
    DataType.JSON: "jsonb",
    DataType.ARRAY: "jsonb",
    DataType.MULTI_SELECT: "jsonb",
    DataType.ROLLUP: "jsonb",
    DataType.ATTACHMENT: "jsonb",
}

# Types indexed with GIN.
_STRUCTURED_TYPES = frozenset(
    {DataType.JSON, DataType.ARRAY, DataType.MULTI_SELECT, DataType.ATTACHMENT}
)

# Every jsonb-backed type; values are serialized to JSON text before binding.
_JSON_TYPES = frozenset(
    t for t, native in _NATIVE_TYPES.items() if native == "jsonb"
)

_TIMESTAMP_TYPES = frozenset(
    {DataType.DATE_TIME, DataType.CREATED_TIME, DataType.MODIFIED_TIME}
)

_UUID_TYPES = frozenset(
    {DataType.UUID, DataType.RELATION, DataType.CREATED_BY, DataType.MODIFIED_BY}
)


class TypeMapper:
    """Stateless mapping between abstract types and PostgreSQL.

    All methods are pure. An unknown DataType is a programming error and
    surfaces as a KeyError rather than a user-facing validation failure.
    """

    @staticmethod
    def to_native_type(data_type: DataType) -> str:
        """Return the PostgreSQL column type for an abstract type."""
        return _NATIVE_TYPES[data_type]

    @staticmethod
    def default_expression(data_type: DataType) -> str | None:
        """Return the server-side default for system-managed timestamp types."""
        if data_type in (DataType.CREATED_TIME, DataType.MODIFIED_TIME):
            return "now()"
        return None

    @staticmethod
    def recommended_index_type(data_type: DataType) -> IndexType:
        """Recommend an index kind: inverted for structured values, b-tree otherwise."""
        if data_type in _STRUCTURED_TYPES:
            return IndexType.GIN
        return IndexType.BTREE

    @staticmethod
    def is_structured(data_type: DataType) -> bool:
        """Whether values of this type are stored as serialized JSON."""
        return data_type in _JSON_TYPES

    @staticmethod
    def to_storage_value(data_type: DataType, value: Any) -> Any:
        """Convert a value into the form bound to the database."""
        if value is None:
            return None
        if data_type in _JSON_TYPES:
            return json.dumps(value)
        return value

    @staticmethod
    def from_storage_value(data_type: DataType, value: Any) -> Any:
        """Convert a stored value back into its application form."""
        if value is None:
            return None
        if data_type in _JSON_TYPES and isinstance(value, str):
            return json.loads(value)
        return value

    @staticmethod
    def coerce_value(data_type: DataType, value: Any) -> Any:
        """Coerce a wire value (typically from JSON) into its native Python type.

        JSON carries dates, UUIDs and decimals as strings; the database
        driver needs real objects to bind them.

        Args:
            data_type: Abstract type of the target column
            value: Incoming value

        Returns:
            The coerced value; values already of the right type pass through

        Raises:
            ValueError: If the value cannot represent the target type
        """
        if value is None:
            return None

        if data_type in _TIMESTAMP_TYPES:
            if isinstance(value, str):
                return datetime.fromisoformat(value)
            if not isinstance(value, datetime):
                raise ValueError(f"expected a timestamp, got {type(value).__name__}")
            return value

        if data_type == DataType.DATE:
            if isinstance(value, str):
                return date.fromisoformat(value)
            if not isinstance(value, date):
                raise ValueError(f"expected a date, got {type(value).__name__}")
            return value

        if data_type == DataType.TIME:
            if isinstance(value, str):
                return time.fromisoformat(value)
            if not isinstance(value, time):
                raise ValueError(f"expected a time, got {type(value).__name__}")
            return value

        if data_type in _UUID_TYPES:
            if isinstance(value, UUID):
                return value
            return UUID(str(value))

        if data_type in (DataType.INTEGER, DataType.BIG_INTEGER):
            if isinstance(value, bool):
                raise ValueError("expected an integer, got bool")
            if isinstance(value, int):
                return value
            if isinstance(value, str) and value.strip().lstrip("-").isdigit():
                return int(value)
            raise ValueError(f"expected an integer, got {value!r}")

        if data_type == DataType.DECIMAL:
            if isinstance(value, bool):
                raise ValueError("expected a number, got bool")
            try:
                return Decimal(str(value))
            except InvalidOperation as e:
                raise ValueError(f"expected a number, got {value!r}") from e

        if data_type == DataType.BOOLEAN:
            if not isinstance(value, bool):
                raise ValueError(f"expected a boolean, got {value!r}")
            return value

        return value
