"""Identifier quoting for generated SQL."""

from __future__ import annotations


def quote_identifier(identifier: str) -> str:
    """Quote a PostgreSQL identifier, doubling embedded quote characters.

    Args:
        identifier: Raw identifier (table, column, index or constraint name)

    Returns:
        The identifier wrapped in double quotes, safe to splice into SQL
    """
    return '"' + identifier.replace('"', '""') + '"'


def quote_qualified(qualifier: str, identifier: str) -> str:
    """Quote a ``qualifier.identifier`` pair, e.g. a table-qualified column."""
    return f"{quote_identifier(qualifier)}.{quote_identifier(identifier)}"
