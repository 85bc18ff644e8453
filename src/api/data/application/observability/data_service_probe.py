"""Protocol for data service observability.

Row values never appear in these events; only tables, ids and counts do.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class DataServiceProbe(Protocol):
    """Domain probe for row-level data operations."""

    def record_inserted(self, table: str, record_id: str, tenant_id: str) -> None:
        ...

    def record_updated(self, table: str, record_id: str, tenant_id: str) -> None:
        ...

    def record_deleted(self, table: str, record_id: str, tenant_id: str) -> None:
        ...

    def record_upserted(self, table: str, record_id: str, tenant_id: str) -> None:
        ...

    def batch_inserted(self, table: str, count: int, tenant_id: str) -> None:
        """Record that a batch of rows was inserted atomically."""
        ...

    def batch_updated(self, table: str, count: int, tenant_id: str) -> None:
        ...

    def batch_deleted(self, table: str, count: int, tenant_id: str) -> None:
        ...

    def data_operation_failed(
        self, operation: str, table: str, tenant_id: str, error: str
    ) -> None:
        """Record that a data operation failed and was rolled back."""
        ...

    def with_context(self, context: ObservationContext) -> DataServiceProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultDataServiceProbe:
    """Default implementation of DataServiceProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultDataServiceProbe:
        """Create a new probe with observation context bound."""
        return DefaultDataServiceProbe(logger=self._logger, context=context)

    def record_inserted(self, table: str, record_id: str, tenant_id: str) -> None:
        self._logger.info(
            "record_inserted",
            table=table,
            record_id=record_id,
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def record_updated(self, table: str, record_id: str, tenant_id: str) -> None:
        self._logger.info(
            "record_updated",
            table=table,
            record_id=record_id,
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def record_deleted(self, table: str, record_id: str, tenant_id: str) -> None:
        self._logger.info(
            "record_deleted",
            table=table,
            record_id=record_id,
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def record_upserted(self, table: str, record_id: str, tenant_id: str) -> None:
        self._logger.info(
            "record_upserted",
            table=table,
            record_id=record_id,
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def batch_inserted(self, table: str, count: int, tenant_id: str) -> None:
        self._logger.info(
            "batch_inserted",
            table=table,
            count=count,
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def batch_updated(self, table: str, count: int, tenant_id: str) -> None:
        self._logger.info(
            "batch_updated",
            table=table,
            count=count,
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def batch_deleted(self, table: str, count: int, tenant_id: str) -> None:
        self._logger.info(
            "batch_deleted",
            table=table,
            count=count,
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def data_operation_failed(
        self, operation: str, table: str, tenant_id: str, error: str
    ) -> None:
        self._logger.error(
            "data_operation_failed",
            operation=operation,
            table=table,
            tenant_id=tenant_id,
            error=error,
            **self._get_context_kwargs(),
        )
