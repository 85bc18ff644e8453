"""Protocol for schema application service observability.

Defines the interface for domain probes that capture application-level
domain events for schema mutation operations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class SchemaServiceProbe(Protocol):
    """Domain probe for schema service operations."""

    def table_created(
        self,
        table_id: str,
        logical_name: str,
        physical_name: str,
        tenant_id: str,
    ) -> None:
        """Record that a table was created."""
        ...

    def table_creation_failed(self, logical_name: str, tenant_id: str, error: str) -> None:
        """Record that table creation failed."""
        ...

    def table_updated(self, table_id: str, version: int) -> None:
        """Record that a table's logical metadata changed."""
        ...

    def table_deleted(self, table_id: str, logical_name: str) -> None:
        """Record that a table was dropped."""
        ...

    def column_added(
        self, table_id: str, column_id: str, logical_name: str, version: int
    ) -> None:
        """Record that a column was added."""
        ...

    def column_updated(self, table_id: str, column_id: str, version: int) -> None:
        """Record that a column's metadata changed."""
        ...

    def column_deleted(self, table_id: str, column_id: str, version: int) -> None:
        """Record that a column was dropped."""
        ...

    def index_created(self, table_id: str, index_id: str, version: int) -> None:
        """Record that an index was created."""
        ...

    def index_deleted(self, table_id: str, index_id: str, version: int) -> None:
        """Record that an index was dropped."""
        ...

    def relation_created(
        self, relation_id: str, source_table_id: str, target_table_id: str
    ) -> None:
        """Record that a relation was created."""
        ...

    def relation_deleted(self, relation_id: str, source_table_id: str) -> None:
        """Record that a relation was dropped."""
        ...

    def version_conflict(self, table_id: str, expected: int, actual: int) -> None:
        """Record that a stale expected version was rejected."""
        ...

    def schema_operation_failed(
        self, operation: str, error: str, table_id: str | None = None
    ) -> None:
        """Record that a schema mutation failed and was rolled back."""
        ...

    def schema_listener_failed(self, operation: str, table_id: str, error: str) -> None:
        """Record that a change listener raised after commit."""
        ...

    def with_context(self, context: ObservationContext) -> SchemaServiceProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultSchemaServiceProbe:
    """Default implementation of SchemaServiceProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultSchemaServiceProbe:
        """Create a new probe with observation context bound."""
        return DefaultSchemaServiceProbe(logger=self._logger, context=context)

    def table_created(
        self,
        table_id: str,
        logical_name: str,
        physical_name: str,
        tenant_id: str,
    ) -> None:
        self._logger.info(
            "table_created",
            table_id=table_id,
            logical_name=logical_name,
            physical_name=physical_name,
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def table_creation_failed(self, logical_name: str, tenant_id: str, error: str) -> None:
        self._logger.error(
            "table_creation_failed",
            logical_name=logical_name,
            tenant_id=tenant_id,
            error=error,
            **self._get_context_kwargs(),
        )

    def table_updated(self, table_id: str, version: int) -> None:
        self._logger.info(
            "table_updated",
            table_id=table_id,
            version=version,
            **self._get_context_kwargs(),
        )

    def table_deleted(self, table_id: str, logical_name: str) -> None:
        self._logger.info(
            "table_deleted",
            table_id=table_id,
            logical_name=logical_name,
            **self._get_context_kwargs(),
        )

    def column_added(
        self, table_id: str, column_id: str, logical_name: str, version: int
    ) -> None:
        self._logger.info(
            "column_added",
            table_id=table_id,
            column_id=column_id,
            logical_name=logical_name,
            version=version,
            **self._get_context_kwargs(),
        )

    def column_updated(self, table_id: str, column_id: str, version: int) -> None:
        self._logger.info(
            "column_updated",
            table_id=table_id,
            column_id=column_id,
            version=version,
            **self._get_context_kwargs(),
        )

    def column_deleted(self, table_id: str, column_id: str, version: int) -> None:
        self._logger.info(
            "column_deleted",
            table_id=table_id,
            column_id=column_id,
            version=version,
            **self._get_context_kwargs(),
        )

    def index_created(self, table_id: str, index_id: str, version: int) -> None:
        self._logger.info(
            "index_created",
            table_id=table_id,
            index_id=index_id,
            version=version,
            **self._get_context_kwargs(),
        )

    def index_deleted(self, table_id: str, index_id: str, version: int) -> None:
        self._logger.info(
            "index_deleted",
            table_id=table_id,
            index_id=index_id,
            version=version,
            **self._get_context_kwargs(),
        )

    def relation_created(
        self, relation_id: str, source_table_id: str, target_table_id: str
    ) -> None:
        self._logger.info(
            "relation_created",
            relation_id=relation_id,
            source_table_id=source_table_id,
            target_table_id=target_table_id,
            **self._get_context_kwargs(),
        )

    def relation_deleted(self, relation_id: str, source_table_id: str) -> None:
        self._logger.info(
            "relation_deleted",
            relation_id=relation_id,
            source_table_id=source_table_id,
            **self._get_context_kwargs(),
        )

    def version_conflict(self, table_id: str, expected: int, actual: int) -> None:
        self._logger.warning(
            "version_conflict",
            table_id=table_id,
            expected_version=expected,
            actual_version=actual,
            **self._get_context_kwargs(),
        )

    def schema_operation_failed(
        self, operation: str, error: str, table_id: str | None = None
    ) -> None:
        self._logger.error(
            "schema_operation_failed",
            operation=operation,
            table_id=table_id,
            error=error,
            **self._get_context_kwargs(),
        )

    def schema_listener_failed(self, operation: str, table_id: str, error: str) -> None:
        self._logger.error(
            "schema_listener_failed",
            operation=operation,
            table_id=table_id,
            error=error,
            **self._get_context_kwargs(),
        )
