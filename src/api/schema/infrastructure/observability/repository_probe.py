"""Domain probes for schema metadata persistence."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class MetadataRepositoryProbe(Protocol):
    """Domain probe for metadata and change log repository operations."""

    def table_not_found(self, table: str) -> None:
        """Record that a table lookup found no active table."""
        ...

    def column_not_found(self, column_id: str) -> None:
        """Record that a column lookup found no active column."""
        ...

    def version_incremented(self, table_id: str, version: int) -> None:
        """Record that a table's schema version was bumped."""
        ...

    def change_logged(self, table_id: str, operation: str, version: int) -> None:
        """Record that a change log entry was appended."""
        ...

    def with_context(self, context: ObservationContext) -> MetadataRepositoryProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultMetadataRepositoryProbe:
    """Default implementation of MetadataRepositoryProbe using structlog."""

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

    def with_context(
        self, context: ObservationContext
    ) -> DefaultMetadataRepositoryProbe:
        """Create a new probe with observation context bound."""
        return DefaultMetadataRepositoryProbe(logger=self._logger, context=context)

    def table_not_found(self, table: str) -> None:
        self._logger.debug(
            "table_not_found",
            table=table,
            **self._get_context_kwargs(),
        )

    def column_not_found(self, column_id: str) -> None:
        self._logger.debug(
            "column_not_found",
            column_id=column_id,
            **self._get_context_kwargs(),
        )

    def version_incremented(self, table_id: str, version: int) -> None:
        self._logger.debug(
            "version_incremented",
            table_id=table_id,
            version=version,
            **self._get_context_kwargs(),
        )

    def change_logged(self, table_id: str, operation: str, version: int) -> None:
        self._logger.info(
            "change_logged",
            table_id=table_id,
            operation=operation,
            version=version,
            **self._get_context_kwargs(),
        )
