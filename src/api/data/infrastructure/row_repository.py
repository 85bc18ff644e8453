"""Raw-SQL row access for dynamic tables.

Dynamic tables have no ORM models, so statements are built as text by the
DML builders and the query translator and executed here with ``text()``.
Writes are never committed; DataService owns the transaction.
"""

from __future__ import annotations

from typing import Any, Mapping

import structlog
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from data.ports.repositories import IRowRepository
from shared_kernel.exceptions import (
    DataValidationError,
    FieldError,
    StatementExecutionError,
)

UNIQUE_VIOLATION = "23505"
NOT_NULL_VIOLATION = "23502"
FOREIGN_KEY_VIOLATION = "23503"


def _driver_error(error: DBAPIError) -> Any:
    """The asyncpg exception behind a SQLAlchemy DBAPIError, if any."""
    return getattr(error.orig, "__cause__", None) or error.orig


def _sqlstate(error: DBAPIError) -> str | None:
    state = getattr(error.orig, "sqlstate", None) or getattr(error.orig, "pgcode", None)
    if state is None:
        state = getattr(_driver_error(error), "sqlstate", None)
    return state


def translate_integrity_error(error: IntegrityError) -> DataValidationError | None:
    """Convert a constraint violation into field-level validation errors.

    The field of each FieldError is the physical constraint or column name
    reported by PostgreSQL; DataService maps it back to a logical name.

    Returns:
        DataValidationError, or None if the violation is not row-level
    """
    state = _sqlstate(error)
    driver = _driver_error(error)

    if state == UNIQUE_VIOLATION:
        constraint = getattr(driver, "constraint_name", None) or ""
        return DataValidationError(
            [FieldError(constraint, "value must be unique", "unique_violation")]
        )
    if state == NOT_NULL_VIOLATION:
        column = getattr(driver, "column_name", None) or ""
        return DataValidationError(
            [FieldError(column, "value is required", "required")]
        )
    if state == FOREIGN_KEY_VIOLATION:
        constraint = getattr(driver, "constraint_name", None) or ""
        return DataValidationError(
            [
                FieldError(
                    constraint,
                    "referenced record does not exist",
                    "foreign_key_violation",
                )
            ]
        )
    return None


class RowRepository(IRowRepository):
    """Executes parameterized statements on the request's session."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._logger = structlog.get_logger()

    async def fetch_all(
        self, sql: str, parameters: Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        result = await self._run(sql, parameters)
        return [dict(row) for row in result.mappings().all()]

    async def fetch_one(
        self, sql: str, parameters: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        result = await self._run(sql, parameters)
        row = result.mappings().first()
        return dict(row) if row is not None else None

    async def fetch_scalar(self, sql: str, parameters: Mapping[str, Any]) -> Any:
        result = await self._run(sql, parameters)
        return result.scalar()

    async def execute(self, sql: str, parameters: Mapping[str, Any]) -> int:
        result = await self._run(sql, parameters)
        return result.rowcount

    async def _run(self, sql: str, parameters: Mapping[str, Any]) -> Any:
        self._logger.debug("statement_executing", statement=sql)
        try:
            return await self._session.execute(text(sql), dict(parameters))
        except IntegrityError as e:
            validation = translate_integrity_error(e)
            if validation is not None:
                raise validation from e
            raise StatementExecutionError(
                f"Statement rejected: {e.orig}", statement=sql
            ) from e
        except DBAPIError as e:
            raise StatementExecutionError(
                f"Statement failed: {e.orig}", statement=sql
            ) from e
