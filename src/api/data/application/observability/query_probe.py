"""Protocol for query execution observability."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class QueryProbe(Protocol):
    """Domain probe for QueryBuilder terminals."""

    def query_executed(
        self, table: str, terminal: str, row_count: int, duration_ms: float
    ) -> None:
        """Record that a query terminal completed."""
        ...

    def query_failed(self, table: str, terminal: str, error: str) -> None:
        ...

    def with_context(self, context: ObservationContext) -> QueryProbe:
        ...


class DefaultQueryProbe:
    """Default implementation of QueryProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultQueryProbe:
        return DefaultQueryProbe(logger=self._logger, context=context)

    def query_executed(
        self, table: str, terminal: str, row_count: int, duration_ms: float
    ) -> None:
        self._logger.info(
            "query_executed",
            table=table,
            terminal=terminal,
            row_count=row_count,
            duration_ms=round(duration_ms, 2),
            **self._get_context_kwargs(),
        )

    def query_failed(self, table: str, terminal: str, error: str) -> None:
        self._logger.warning(
            "query_failed",
            table=table,
            terminal=terminal,
            error=error,
            **self._get_context_kwargs(),
        )
