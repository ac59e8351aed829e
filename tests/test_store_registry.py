# =============================================================================
# Unit Tests — Memory Store Registry
# =============================================================================
#
# Stores are MagicMocks: the registry only cares about identity, counts,
# account_lookup and drop(). Builds are plain async functions so the tests
# control timing and failures.
# =============================================================================

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest
from finance_fixtures import _run

from peacock_agent.errors import DataAccessError, NotInitializedError
from peacock_agent.services.memory_builder import MemoryBuildResult
from peacock_agent.services.memory_store import MemoryBuildCounts
from peacock_agent.services.store_registry import (
    MemoryStoreRegistry,
    RegistryState,
    get_memory_registry,
)


def _result(docs: int = 3) -> MemoryBuildResult:
    counts = MemoryBuildCounts(docs=docs, account=1, tx=1, month=1)
    store = MagicMock()
    store.counts = counts
    return MemoryBuildResult(store=store, account_lookup={"acc_1": MagicMock()}, counts=counts)


class CountingBuild:
    """Async build function that records calls and can fail on demand."""

    def __init__(self, results=None, error: Exception | None = None, delay: float = 0.01):
        self.results = list(results or [])
        self.error = error
        self.delay = delay
        self.calls = 0

    async def __call__(self) -> MemoryBuildResult:
        self.calls += 1
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.results.pop(0) if self.results else _result()


class TestRegistrySlot:

    def test_initial_state(self):
        registry = MemoryStoreRegistry()
        assert registry.state == RegistryState.UNINITIALIZED
        assert registry.get() is None
        assert registry.is_initialized() is False
        assert registry.counts is None
        assert registry.get_account_lookup() == {}

    def test_require_raises_when_empty(self):
        with pytest.raises(NotInitializedError):
            MemoryStoreRegistry().require()

    def test_set_installs_store(self):
        registry = MemoryStoreRegistry()
        result = _result()
        registry.set(result.store, result.account_lookup)

        assert registry.require() is result.store
        assert registry.state == RegistryState.READY
        assert registry.get_account_lookup() is result.account_lookup
        assert registry.counts.docs == 3

    def test_reset(self):
        registry = MemoryStoreRegistry()
        store = _result().store
        registry.set(store, {})
        registry.reset()

        assert registry.get() is None
        assert registry.is_initialized() is False
        assert registry.state == RegistryState.UNINITIALIZED
        store.drop.assert_called_once()

    def test_reset_during_build_discards_result(self):
        registry = MemoryStoreRegistry()
        result = _result()
        build = CountingBuild(results=[result], delay=0.05)

        async def scenario():
            task = asyncio.create_task(registry.initialize(build))
            await asyncio.sleep(0.01)
            registry.reset()
            with pytest.raises(NotInitializedError):
                await task

        _run(scenario())

        assert registry.is_initialized() is False
        assert registry.get() is None
        assert registry.state == RegistryState.UNINITIALIZED
        assert registry.is_building is False
        result.store.drop.assert_called_once()

    def test_build_after_reset_installs(self):
        registry = MemoryStoreRegistry()
        stale, fresh = _result(docs=1), _result(docs=2)
        slow = CountingBuild(results=[stale], delay=0.05)
        quick = CountingBuild(results=[fresh], delay=0.0)

        async def scenario():
            stale_task = asyncio.create_task(registry.initialize(slow))
            await asyncio.sleep(0.01)
            registry.reset()
            installed = await registry.initialize(quick)
            with pytest.raises(NotInitializedError):
                await stale_task
            return installed

        installed = _run(scenario())

        assert installed is fresh.store
        assert registry.get() is fresh.store
        assert registry.counts.docs == 2
        stale.store.drop.assert_called_once()

    def test_process_wide_instance(self):
        assert get_memory_registry() is get_memory_registry()


class TestInitialize:

    def test_builds_and_installs(self):
        registry = MemoryStoreRegistry()
        build = CountingBuild()

        store = _run(registry.initialize(build))

        assert registry.get() is store
        assert registry.state == RegistryState.READY
        assert build.calls == 1

    def test_concurrent_callers_share_one_build(self):
        registry = MemoryStoreRegistry()
        build = CountingBuild()

        async def scenario():
            return await asyncio.gather(*(registry.initialize(build) for _ in range(5)))

        stores = _run(scenario())

        assert build.calls == 1
        assert all(s is stores[0] for s in stores)

    def test_state_is_initializing_during_build(self):
        registry = MemoryStoreRegistry()
        seen = []

        async def build():
            seen.append(registry.state)
            return _result()

        _run(registry.initialize(build))
        assert seen == [RegistryState.INITIALIZING]

    def test_noop_when_already_installed(self):
        registry = MemoryStoreRegistry()
        existing = _result().store
        registry.set(existing, {})
        build = CountingBuild()

        assert _run(registry.initialize(build)) is existing
        assert build.calls == 0

    def test_failure_reaches_every_waiter(self):
        registry = MemoryStoreRegistry()
        build = CountingBuild(error=DataAccessError("db down"))

        async def scenario():
            return await asyncio.gather(
                registry.initialize(build),
                registry.initialize(build),
                return_exceptions=True,
            )

        outcomes = _run(scenario())

        assert build.calls == 1
        assert all(isinstance(o, DataAccessError) for o in outcomes)
        assert registry.state == RegistryState.FAILED
        assert registry.last_error == "db down"
        assert registry.get() is None

    def test_retry_after_failure(self):
        registry = MemoryStoreRegistry()
        failing = CountingBuild(error=DataAccessError("db down"))

        with pytest.raises(DataAccessError):
            _run(registry.initialize(failing))

        store = _run(registry.initialize(CountingBuild()))

        assert registry.get() is store
        assert registry.state == RegistryState.READY
        assert registry.last_error is None
        assert registry.is_building is False


class TestRebuild:

    def test_swaps_store_and_drops_previous(self):
        registry = MemoryStoreRegistry()
        first, second = _result(docs=3), _result(docs=7)

        _run(registry.initialize(CountingBuild(results=[first])))
        _run(registry.rebuild(CountingBuild(results=[second])))

        assert registry.get() is second.store
        assert registry.counts.docs == 7
        first.store.drop.assert_called_once()
        second.store.drop.assert_not_called()

    def test_old_store_served_during_rebuild(self):
        registry = MemoryStoreRegistry()
        first, second = _result(), _result()
        registry.set(first.store, first.account_lookup)
        seen = []

        async def build():
            seen.append((registry.get(), registry.state))
            return second

        _run(registry.rebuild(build))

        assert seen == [(first.store, RegistryState.READY)]
        assert registry.get() is second.store

    def test_failed_rebuild_keeps_previous_store(self):
        registry = MemoryStoreRegistry()
        first = _result()
        registry.set(first.store, first.account_lookup)

        with pytest.raises(DataAccessError):
            _run(registry.rebuild(CountingBuild(error=DataAccessError("db down"))))

        assert registry.get() is first.store
        assert registry.state == RegistryState.READY
        assert registry.last_error == "db down"
        first.store.drop.assert_not_called()

    def test_concurrent_rebuilds_share_one_build(self):
        registry = MemoryStoreRegistry()
        build = CountingBuild()

        async def scenario():
            return await asyncio.gather(registry.rebuild(build), registry.rebuild(build))

        a, b = _run(scenario())
        assert a is b
        assert build.calls == 1
