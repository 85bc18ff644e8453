"""DDL execution on the schema service's transaction."""

from __future__ import annotations

from typing import Sequence

import structlog
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from schema.ports.protocols import IDdlExecutor
from shared_kernel.exceptions import StatementExecutionError


class SessionDdlExecutor(IDdlExecutor):
    """Executes DDL text on the session's current connection.

    Statements go through ``exec_driver_sql`` rather than ``text()``: DDL
    carries no bind parameters, and default or check expressions may
    legitimately contain ``:`` (e.g. ``'a'::text``).
    """

    def __init__(self, session: AsyncSession):
        self._session = session
        self._logger = structlog.get_logger()

    async def execute(self, statement: str) -> None:
        connection = await self._session.connection()
        self._logger.debug("ddl_executing", statement=statement)
        try:
            await connection.exec_driver_sql(statement)
        except DBAPIError as e:
            raise StatementExecutionError(
                f"DDL execution failed: {e.orig}", statement=statement
            ) from e

    async def execute_all(self, statements: Sequence[str]) -> None:
        for statement in statements:
            await self.execute(statement)
