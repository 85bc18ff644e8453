"""DDL statement builders.

Pure text-generation functions turning definitions into PostgreSQL DDL.
No function here performs I/O; every identifier passes through
quote_identifier so names can never inject SQL.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from shared_kernel.schema_primitives.data_types import (
    IndexType,
    NullsPosition,
    ReferentialAction,
    SortDirection,
)
from shared_kernel.schema_primitives.descriptors import ColumnDescriptor, IndexColumn
from shared_kernel.sql.identifiers import quote_identifier


@dataclass(frozen=True)
class ColumnDefinition:
    """Physical column definition used when creating or adding columns."""

    physical_name: str
    native_type: str
    is_nullable: bool = True
    is_primary_key: bool = False
    default_expression: str | None = None
    check_expression: str | None = None

    @classmethod
    def from_descriptor(cls, column: ColumnDescriptor) -> ColumnDefinition:
        """Build a definition from a column descriptor."""
        return cls(
            physical_name=column.physical_name,
            native_type=column.native_type,
            is_nullable=column.is_nullable,
            is_primary_key=column.is_primary_key,
            default_expression=column.default_value,
            check_expression=column.check_expression,
        )


@dataclass(frozen=True)
class IndexDefinition:
    """Physical index definition."""

    physical_name: str
    table_physical_name: str
    columns: Sequence[IndexColumn]
    index_type: IndexType = IndexType.BTREE
    is_unique: bool = False
    where_clause: str | None = None


@dataclass(frozen=True)
class ForeignKeyDefinition:
    """Physical foreign-key constraint definition."""

    constraint_name: str
    source_table: str
    source_column: str
    target_table: str
    target_column: str
    on_delete: ReferentialAction = ReferentialAction.NO_ACTION
    on_update: ReferentialAction = ReferentialAction.NO_ACTION


def build_column_definition(column: ColumnDefinition) -> str:
    """Render a single column definition for CREATE TABLE / ADD COLUMN."""
    parts = [quote_identifier(column.physical_name), column.native_type]

    # Primary key columns are implicitly NOT NULL
    if not column.is_nullable and not column.is_primary_key:
        parts.append("NOT NULL")

    if column.default_expression:
        parts.append(f"DEFAULT {column.default_expression}")

    if column.check_expression:
        parts.append(f"CHECK ({column.check_expression})")

    return " ".join(parts)


def build_create_table(physical_name: str, columns: Sequence[ColumnDefinition]) -> str:
    """Build CREATE TABLE with an inline primary key clause when one is flagged.

    Raises:
        ValueError: If no columns are given
    """
    if not columns:
        raise ValueError("At least one column is required")

    definitions = [build_column_definition(c) for c in columns]

    primary_keys = [quote_identifier(c.physical_name) for c in columns if c.is_primary_key]
    if primary_keys:
        definitions.append(f"PRIMARY KEY ({', '.join(primary_keys)})")

    body = ",\n    ".join(definitions)
    return f"CREATE TABLE {quote_identifier(physical_name)} (\n    {body}\n)"


def build_add_column(table: str, column: ColumnDefinition) -> str:
    return f"ALTER TABLE {quote_identifier(table)} ADD COLUMN {build_column_definition(column)}"


def build_drop_column(table: str, column: str) -> str:
    return (
        f"ALTER TABLE {quote_identifier(table)} "
        f"DROP COLUMN IF EXISTS {quote_identifier(column)}"
    )


def build_drop_table(table: str) -> str:
    return f"DROP TABLE IF EXISTS {quote_identifier(table)}"


def build_create_index(index: IndexDefinition) -> str:
    """Build CREATE INDEX.

    ``USING`` is emitted only for non-btree kinds, DESC only for descending
    columns and NULLS FIRST only when it differs from the default.

    Raises:
        ValueError: If the index has no columns
    """
    if not index.columns:
        raise ValueError("An index requires at least one column")

    unique = "UNIQUE " if index.is_unique else ""
    using = "" if index.index_type == IndexType.BTREE else f" USING {index.index_type.value}"

    column_parts = []
    for column in index.columns:
        part = quote_identifier(column.physical_name)
        if column.direction == SortDirection.DESCENDING:
            part += " DESC"
        if column.nulls_position == NullsPosition.FIRST:
            part += " NULLS FIRST"
        column_parts.append(part)

    sql = (
        f"CREATE {unique}INDEX {quote_identifier(index.physical_name)} "
        f"ON {quote_identifier(index.table_physical_name)}{using} "
        f"({', '.join(column_parts)})"
    )
    if index.where_clause:
        sql += f" WHERE {index.where_clause}"
    return sql


def build_drop_index(index: str) -> str:
    return f"DROP INDEX IF EXISTS {quote_identifier(index)}"


def build_add_foreign_key(fk: ForeignKeyDefinition) -> str:
    return (
        f"ALTER TABLE {quote_identifier(fk.source_table)} "
        f"ADD CONSTRAINT {quote_identifier(fk.constraint_name)} "
        f"FOREIGN KEY ({quote_identifier(fk.source_column)}) "
        f"REFERENCES {quote_identifier(fk.target_table)} ({quote_identifier(fk.target_column)}) "
        f"ON DELETE {fk.on_delete.sql} ON UPDATE {fk.on_update.sql}"
    )


def build_drop_constraint(table: str, constraint: str) -> str:
    return (
        f"ALTER TABLE {quote_identifier(table)} "
        f"DROP CONSTRAINT IF EXISTS {quote_identifier(constraint)}"
    )


def build_set_not_null(table: str, column: str) -> str:
    return (
        f"ALTER TABLE {quote_identifier(table)} "
        f"ALTER COLUMN {quote_identifier(column)} SET NOT NULL"
    )


def build_drop_not_null(table: str, column: str) -> str:
    return (
        f"ALTER TABLE {quote_identifier(table)} "
        f"ALTER COLUMN {quote_identifier(column)} DROP NOT NULL"
    )


def build_set_default(table: str, column: str, default_expression: str) -> str:
    return (
        f"ALTER TABLE {quote_identifier(table)} "
        f"ALTER COLUMN {quote_identifier(column)} SET DEFAULT {default_expression}"
    )


def build_drop_default(table: str, column: str) -> str:
    return (
        f"ALTER TABLE {quote_identifier(table)} "
        f"ALTER COLUMN {quote_identifier(column)} DROP DEFAULT"
    )


def build_add_unique_constraint(table: str, constraint: str, column: str) -> str:
    return (
        f"ALTER TABLE {quote_identifier(table)} "
        f"ADD CONSTRAINT {quote_identifier(constraint)} UNIQUE ({quote_identifier(column)})"
    )


def build_rename_column(table: str, old_name: str, new_name: str) -> str:
    return (
        f"ALTER TABLE {quote_identifier(table)} "
        f"RENAME COLUMN {quote_identifier(old_name)} TO {quote_identifier(new_name)}"
    )


def build_rename_table(old_name: str, new_name: str) -> str:
    return f"ALTER TABLE {quote_identifier(old_name)} RENAME TO {quote_identifier(new_name)}"
