"""PostgreSQL advisory lock coordinator.

Serializes DDL against the same table across every API process without a
separate lock service. Transaction-scoped locks (``pg_try_advisory_xact_lock``)
are released by PostgreSQL at commit, rollback or disconnect, so a crashed
or cancelled request can never leak one.
"""

from __future__ import annotations

import asyncio
import hashlib
from types import TracebackType

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from schema.infrastructure.observability import DefaultLockProbe, LockProbe
from schema.ports.protocols import ILockCoordinator
from shared_kernel.exceptions import LockAcquisitionTimeoutError

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_RETRY_INTERVAL_MS = 100
DEFAULT_MAX_RETRIES = 50

_SIGNED_64_MASK = 0x7FFF_FFFF_FFFF_FFFF


def compute_lock_key(key: str) -> int:
    """Derive the bigint advisory lock key for a resource key.

    Takes the first 64 bits of SHA256 and masks them into the non-negative
    range of a signed bigint.
    """
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
    return int(digest[:16], 16) & _SIGNED_64_MASK


class TransactionLockHandle:
    """Handle for a lock held until the enclosing transaction ends."""

    def __init__(self, resource_key: str, lock_key: int):
        self.resource_key = resource_key
        self.lock_key = lock_key

    @property
    def is_transaction_scoped(self) -> bool:
        return True

    async def release(self) -> None:
        """No-op: PostgreSQL releases the lock at commit or rollback."""
        return None


class SessionLockHandle:
    """Handle for a session-scoped lock that must be released explicitly.

    Usable as an async context manager:

        async with await coordinator.acquire_session_lock("table:...") as handle:
            ...
    """

    def __init__(
        self,
        session: AsyncSession,
        resource_key: str,
        lock_key: int,
        probe: LockProbe,
    ):
        self.resource_key = resource_key
        self.lock_key = lock_key
        self._session = session
        self._probe = probe
        self._released = False

    @property
    def is_transaction_scoped(self) -> bool:
        return False

    @property
    def released(self) -> bool:
        return self._released

    async def release(self) -> None:
        """Release the lock. Calling it more than once is harmless."""
        if self._released:
            return
        await self._session.execute(
            text("SELECT pg_advisory_unlock(:key)"), {"key": self.lock_key}
        )
        self._released = True
        self._probe.session_lock_released(resource_key=self.resource_key)

    async def __aenter__(self) -> SessionLockHandle:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.release()


class PostgresLockCoordinator(ILockCoordinator):
    """Lock coordinator bound to one database session.

    Locks are taken on the session's connection, which is the same
    connection the schema service runs its DDL on.
    """

    def __init__(
        self,
        session: AsyncSession,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        retry_interval_ms: int = DEFAULT_RETRY_INTERVAL_MS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        probe: LockProbe | None = None,
    ):
        """Initialize the coordinator.

        Args:
            session: Session whose connection holds the locks
            timeout_seconds: Default wait bound for blocking acquisition
            retry_interval_ms: Pause between attempts
            max_retries: Maximum attempts before giving up
            probe: Optional domain probe for observability
        """
        self._session = session
        self._timeout_seconds = timeout_seconds
        self._retry_interval = retry_interval_ms / 1000
        self._max_retries = max_retries
        self._probe = probe or DefaultLockProbe()

    async def acquire(
        self, resource_key: str, timeout: float | None = None
    ) -> TransactionLockHandle:
        lock_key = compute_lock_key(resource_key)
        await self._poll("pg_try_advisory_xact_lock", resource_key, lock_key, timeout)
        return TransactionLockHandle(resource_key, lock_key)

    async def try_acquire(
        self, resource_key: str
    ) -> tuple[bool, TransactionLockHandle | None]:
        lock_key = compute_lock_key(resource_key)
        if await self._try_lock("pg_try_advisory_xact_lock", lock_key):
            self._probe.lock_acquired(
                resource_key=resource_key, attempts=1, scope="transaction"
            )
            return True, TransactionLockHandle(resource_key, lock_key)
        self._probe.lock_contended(resource_key=resource_key, attempt=1)
        return False, None

    async def acquire_session_lock(
        self, resource_key: str, timeout: float | None = None
    ) -> SessionLockHandle:
        lock_key = compute_lock_key(resource_key)
        await self._poll("pg_try_advisory_lock", resource_key, lock_key, timeout)
        return SessionLockHandle(self._session, resource_key, lock_key, self._probe)

    async def _try_lock(self, function: str, lock_key: int) -> bool:
        result = await self._session.execute(
            text(f"SELECT {function}(:key)"), {"key": lock_key}
        )
        return bool(result.scalar())

    async def _poll(
        self,
        function: str,
        resource_key: str,
        lock_key: int,
        timeout: float | None,
    ) -> None:
        """Retry a try-lock function until it succeeds or the retries run out.

        Each wait is an asyncio.sleep, so cancelling the task aborts cleanly.

        Raises:
            LockAcquisitionTimeoutError: If the lock was not taken within the
                timeout and retry limit
        """
        timeout_seconds = self._timeout_seconds if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_seconds
        scope = "transaction" if "xact" in function else "session"

        attempt = 0
        while True:
            attempt += 1
            if await self._try_lock(function, lock_key):
                self._probe.lock_acquired(
                    resource_key=resource_key, attempts=attempt, scope=scope
                )
                return

            self._probe.lock_contended(resource_key=resource_key, attempt=attempt)
            if attempt >= self._max_retries or loop.time() + self._retry_interval > deadline:
                self._probe.lock_acquisition_timed_out(
                    resource_key=resource_key,
                    attempts=attempt,
                    timeout_seconds=timeout_seconds,
                )
                raise LockAcquisitionTimeoutError(resource_key, timeout_seconds)

            await asyncio.sleep(self._retry_interval)
