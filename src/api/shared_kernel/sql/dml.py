"""DML statement builders.

Builders take physical identifiers plus bind parameter names and return
statement text using SQLAlchemy's ``:name`` bind style. Values never pass
through these functions; callers bind them when executing.
"""

from __future__ import annotations

from typing import Sequence

from shared_kernel.sql.identifiers import quote_identifier


def _param(name: str) -> str:
    return name if name.startswith(":") else f":{name}"


def _column_list(columns: Sequence[str]) -> str:
    return ", ".join(quote_identifier(c) for c in columns)


def build_insert(table: str, columns: Sequence[str], parameters: Sequence[str]) -> str:
    """Build a single-row INSERT returning the stored row.

    Raises:
        ValueError: If there are no columns or the counts differ
    """
    if not columns:
        raise ValueError("At least one column is required for INSERT")
    if len(columns) != len(parameters):
        raise ValueError("Column count must match parameter count")

    values = ", ".join(_param(p) for p in parameters)
    return (
        f"INSERT INTO {quote_identifier(table)} ({_column_list(columns)}) "
        f"VALUES ({values}) RETURNING *"
    )


def build_bulk_insert(
    table: str,
    columns: Sequence[str],
    array_expressions: Sequence[str],
) -> str:
    """Build a multi-row INSERT fed by UNNEST over one array per column.

    Each array expression is spliced verbatim, so callers can add the casts
    the driver needs, e.g. ``CAST(:emails AS text[])``.

    Raises:
        ValueError: If there are no columns or the counts differ
    """
    if not columns:
        raise ValueError("At least one column is required for INSERT")
    if len(columns) != len(array_expressions):
        raise ValueError("Column count must match array count")

    return (
        f"INSERT INTO {quote_identifier(table)} ({_column_list(columns)}) "
        f"SELECT * FROM UNNEST({', '.join(array_expressions)}) RETURNING *"
    )


def _set_clause(set_columns: Sequence[tuple[str, str]]) -> str:
    if not set_columns:
        raise ValueError("At least one column is required for UPDATE")
    return ", ".join(f"{quote_identifier(c)} = {_param(p)}" for c, p in set_columns)


def build_update(
    table: str,
    set_columns: Sequence[tuple[str, str]],
    where_clause: str,
) -> str:
    """Build an UPDATE of (column, parameter) pairs returning updated rows."""
    return (
        f"UPDATE {quote_identifier(table)} SET {_set_clause(set_columns)} "
        f"WHERE {where_clause} RETURNING *"
    )


def build_batch_update(
    table: str,
    set_columns: Sequence[tuple[str, str]],
    where_clause: str,
) -> str:
    """Build a filtered UPDATE without RETURNING, for affected-row counts."""
    return f"UPDATE {quote_identifier(table)} SET {_set_clause(set_columns)} WHERE {where_clause}"


def build_delete(table: str, where_clause: str) -> str:
    return f"DELETE FROM {quote_identifier(table)} WHERE {where_clause}"


def build_select_by_id(
    table: str,
    id_column: str,
    columns: Sequence[str] | None = None,
    parameter: str = "id",
) -> str:
    projection = _column_list(columns) if columns else "*"
    return (
        f"SELECT {projection} FROM {quote_identifier(table)} "
        f"WHERE {build_id_where_clause(id_column, parameter)}"
    )


def build_upsert(
    table: str,
    columns: Sequence[str],
    parameters: Sequence[str],
    key_columns: Sequence[str],
) -> str:
    """Build INSERT ... ON CONFLICT (keys) DO UPDATE.

    Non-key columns are overwritten from EXCLUDED. When every column is a
    key the update degenerates to a no-op assignment so RETURNING still
    yields the existing row.

    Raises:
        ValueError: If no key columns are given, or insert arguments are invalid
    """
    if not key_columns:
        raise ValueError("At least one key column is required for UPSERT")

    insert = build_insert(table, columns, parameters).removesuffix(" RETURNING *")

    keys = set(key_columns)
    updates = [c for c in columns if c not in keys] or [key_columns[0]]
    assignments = ", ".join(
        f"{quote_identifier(c)} = EXCLUDED.{quote_identifier(c)}" for c in updates
    )

    return (
        f"{insert} ON CONFLICT ({_column_list(key_columns)}) "
        f"DO UPDATE SET {assignments} RETURNING *"
    )


def build_id_where_clause(id_column: str, parameter: str = "id") -> str:
    return f"{quote_identifier(id_column)} = {_param(parameter)}"
