"""Domain probe for advisory lock coordination.

Lock contention is the main signal that concurrent schema mutations are
queueing behind each other, so every wait is recorded.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class LockProbe(Protocol):
    """Domain probe for lock coordinator operations."""

    def lock_acquired(self, resource_key: str, attempts: int, scope: str) -> None:
        """Record that a lock was acquired."""
        ...

    def lock_contended(self, resource_key: str, attempt: int) -> None:
        """Record that an acquisition attempt found the lock held elsewhere."""
        ...

    def lock_acquisition_timed_out(
        self, resource_key: str, attempts: int, timeout_seconds: float
    ) -> None:
        """Record that a lock could not be acquired in time."""
        ...

    def session_lock_released(self, resource_key: str) -> None:
        """Record that a session-scoped lock was explicitly released."""
        ...

    def with_context(self, context: ObservationContext) -> LockProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultLockProbe:
    """Default implementation of LockProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultLockProbe:
        """Create a new probe with observation context bound."""
        return DefaultLockProbe(logger=self._logger, context=context)

    def lock_acquired(self, resource_key: str, attempts: int, scope: str) -> None:
        self._logger.debug(
            "lock_acquired",
            resource_key=resource_key,
            attempts=attempts,
            scope=scope,
            **self._get_context_kwargs(),
        )

    def lock_contended(self, resource_key: str, attempt: int) -> None:
        self._logger.debug(
            "lock_contended",
            resource_key=resource_key,
            attempt=attempt,
            **self._get_context_kwargs(),
        )

    def lock_acquisition_timed_out(
        self, resource_key: str, attempts: int, timeout_seconds: float
    ) -> None:
        self._logger.warning(
            "lock_acquisition_timed_out",
            resource_key=resource_key,
            attempts=attempts,
            timeout_seconds=timeout_seconds,
            **self._get_context_kwargs(),
        )

    def session_lock_released(self, resource_key: str) -> None:
        self._logger.debug(
            "session_lock_released",
            resource_key=resource_key,
            **self._get_context_kwargs(),
        )
