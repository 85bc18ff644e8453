"""Unit tests for the PostgreSQL advisory lock coordinator."""

from unittest.mock import AsyncMock, MagicMock, create_autospec

import pytest

from schema.domain.lock_keys import table_resource_key
from schema.infrastructure.advisory_lock import (
    PostgresLockCoordinator,
    SessionLockHandle,
    TransactionLockHandle,
    compute_lock_key,
)
from schema.infrastructure.observability import LockProbe
from shared_kernel.exceptions import LockAcquisitionTimeoutError


def _lock_results(*outcomes: bool) -> list[MagicMock]:
    results = []
    for outcome in outcomes:
        result = MagicMock()
        result.scalar.return_value = outcome
        results.append(result)
    return results


@pytest.fixture
def session():
    return AsyncMock()


@pytest.fixture
def probe():
    return create_autospec(LockProbe, instance=True)


class TestComputeLockKey:
    def test_is_deterministic(self):
        """Every process derives the same key for a resource."""
        assert compute_lock_key("table:abc") == compute_lock_key("table:abc")

    def test_distinct_resources_get_distinct_keys(self):
        assert compute_lock_key("table:a") != compute_lock_key("table:b")

    def test_fits_signed_bigint(self):
        """Keys are non-negative signed 64-bit integers."""
        for key in ("table:a", "table:b", "x" * 500):
            value = compute_lock_key(key)
            assert 0 <= value <= 2**63 - 1

    def test_table_resource_key(self):
        assert table_resource_key("123") == "table:123"


class TestAcquire:
    """Tests for blocking transaction-scoped acquisition."""

    @pytest.mark.asyncio
    async def test_acquires_on_first_attempt(self, session, probe):
        session.execute.side_effect = _lock_results(True)
        coordinator = PostgresLockCoordinator(session, probe=probe)

        handle = await coordinator.acquire("table:1")

        assert isinstance(handle, TransactionLockHandle)
        assert handle.is_transaction_scoped
        assert handle.lock_key == compute_lock_key("table:1")
        statement, params = session.execute.call_args.args
        assert "pg_try_advisory_xact_lock" in str(statement)
        assert params == {"key": compute_lock_key("table:1")}
        probe.lock_acquired.assert_called_once_with(
            resource_key="table:1", attempts=1, scope="transaction"
        )

    @pytest.mark.asyncio
    async def test_retries_while_contended(self, session, probe):
        """A held lock is polled until it frees up."""
        session.execute.side_effect = _lock_results(False, False, True)
        coordinator = PostgresLockCoordinator(session, retry_interval_ms=1, probe=probe)

        await coordinator.acquire("table:1")

        assert session.execute.await_count == 3
        assert probe.lock_contended.call_count == 2
        probe.lock_acquired.assert_called_once_with(
            resource_key="table:1", attempts=3, scope="transaction"
        )

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, session, probe):
        session.execute.side_effect = _lock_results(False, False, False)
        coordinator = PostgresLockCoordinator(
            session, retry_interval_ms=1, max_retries=3, probe=probe
        )

        with pytest.raises(LockAcquisitionTimeoutError) as exc_info:
            await coordinator.acquire("table:1")

        assert exc_info.value.resource_key == "table:1"
        assert session.execute.await_count == 3
        probe.lock_acquisition_timed_out.assert_called_once_with(
            resource_key="table:1", attempts=3, timeout_seconds=30.0
        )

    @pytest.mark.asyncio
    async def test_gives_up_at_deadline(self, session, probe):
        """A timeout shorter than one retry interval fails after one attempt."""
        session.execute.side_effect = _lock_results(False)
        coordinator = PostgresLockCoordinator(
            session, retry_interval_ms=500, max_retries=100, probe=probe
        )

        with pytest.raises(LockAcquisitionTimeoutError) as exc_info:
            await coordinator.acquire("table:1", timeout=0.1)

        assert exc_info.value.timeout_seconds == 0.1
        assert session.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_release_is_a_no_op(self, session, probe):
        """Transaction locks end with the transaction; release issues no SQL."""
        session.execute.side_effect = _lock_results(True)
        handle = await PostgresLockCoordinator(session, probe=probe).acquire("table:1")

        await handle.release()

        assert session.execute.await_count == 1


class TestTryAcquire:
    @pytest.mark.asyncio
    async def test_returns_handle_when_free(self, session, probe):
        session.execute.side_effect = _lock_results(True)

        acquired, handle = await PostgresLockCoordinator(session, probe=probe).try_acquire(
            "table:1"
        )

        assert acquired is True
        assert handle.resource_key == "table:1"

    @pytest.mark.asyncio
    async def test_does_not_wait_when_held(self, session, probe):
        """try_acquire makes exactly one attempt."""
        session.execute.side_effect = _lock_results(False)

        acquired, handle = await PostgresLockCoordinator(session, probe=probe).try_acquire(
            "table:1"
        )

        assert (acquired, handle) == (False, None)
        assert session.execute.await_count == 1


class TestSessionLock:
    @pytest.mark.asyncio
    async def test_session_lock_released_once(self, session, probe):
        """Releasing twice unlocks only once."""
        session.execute.side_effect = _lock_results(True, True)
        coordinator = PostgresLockCoordinator(session, probe=probe)

        handle = await coordinator.acquire_session_lock("table:1")
        await handle.release()
        await handle.release()

        assert isinstance(handle, SessionLockHandle)
        assert not handle.is_transaction_scoped
        assert handle.released
        first, second = session.execute.call_args_list
        assert "pg_try_advisory_lock" in str(first.args[0])
        assert "pg_advisory_unlock" in str(second.args[0])
        probe.session_lock_released.assert_called_once_with(resource_key="table:1")

    @pytest.mark.asyncio
    async def test_context_manager_releases(self, session, probe):
        session.execute.side_effect = _lock_results(True, True)
        coordinator = PostgresLockCoordinator(session, probe=probe)

        async with await coordinator.acquire_session_lock("table:1") as handle:
            assert not handle.released

        assert handle.released
