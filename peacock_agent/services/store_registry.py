# =============================================================================
# Memory Store Registry — Process-Wide Handle on the Active Store
# =============================================================================
#
# Holds the one MemoryStore that searches run against, plus the account
# lookup it was built with. The registry is an ordinary object: the app
# uses the lru-cached instance from get_memory_registry(), tests construct
# their own.
#
# States:
#   UNINITIALIZED → INITIALIZING → READY
#                               ↘ FAILED → (retry) → INITIALIZING ...
#
# DESIGN DECISION: Single-flight builds. initialize() and rebuild() start at
# most one build task; concurrent callers await the same task through
# asyncio.shield(), so a caller that gets cancelled does not cancel the
# build for everyone else. A failure reaches every waiter and clears the
# slot, so the next call starts a fresh attempt.
#
# DESIGN DECISION: Swap, don't mutate. A finished build is installed with a
# single assignment; readers holding the old store keep a consistent view.
# The replaced store's collection is dropped after the swap.
# =============================================================================

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from functools import lru_cache

from peacock_agent.errors import NotInitializedError
from peacock_agent.services.fetchers import AccountLookup
from peacock_agent.services.memory_builder import MemoryBuildResult
from peacock_agent.services.memory_store import MemoryBuildCounts, MemoryStore

logger = logging.getLogger(__name__)

BuildFn = Callable[[], Awaitable[MemoryBuildResult]]


class RegistryState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class MemoryStoreRegistry:
    """Owns the active MemoryStore and serialises builds of the next one."""

    def __init__(self) -> None:
        self._store: MemoryStore | None = None
        self._account_lookup: AccountLookup = {}
        self._state = RegistryState.UNINITIALIZED
        self._last_error: str | None = None
        self._build_task: asyncio.Task[MemoryStore] | None = None
        # Bumped by reset(); a build started under an older generation is
        # never installed.
        self._generation = 0

    # -------------------------------------------------------------------------
    # Slot access
    # -------------------------------------------------------------------------

    def set(self, store: MemoryStore, account_lookup: AccountLookup | None = None) -> None:
        """Install `store` as the active store."""
        self._store = store
        self._account_lookup = (
            account_lookup if account_lookup is not None else store.account_lookup
        )
        self._state = RegistryState.READY
        self._last_error = None

    def get(self) -> MemoryStore | None:
        return self._store

    def require(self) -> MemoryStore:
        """Return the active store, or raise NotInitializedError."""
        if self._store is None:
            raise NotInitializedError("Finance memory store is not initialized")
        return self._store

    def get_account_lookup(self) -> AccountLookup:
        return self._account_lookup

    def is_initialized(self) -> bool:
        return self._store is not None

    def reset(self) -> None:
        """Drop the active store and orphan any build still in flight."""
        previous = self._store
        self._generation += 1
        self._build_task = None
        self._store = None
        self._account_lookup = {}
        self._state = RegistryState.UNINITIALIZED
        self._last_error = None
        if previous is not None:
            previous.drop()

    @property
    def state(self) -> RegistryState:
        return self._state

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def counts(self) -> MemoryBuildCounts | None:
        return self._store.counts if self._store is not None else None

    @property
    def is_building(self) -> bool:
        return self._build_task is not None

    # -------------------------------------------------------------------------
    # Builds
    # -------------------------------------------------------------------------

    async def initialize(self, build: BuildFn) -> MemoryStore:
        """
        Build and install a store unless one is already installed.

        Safe to call from many tasks at once: only one build runs and every
        caller gets its result (or its exception).
        """
        if self._store is not None:
            return self._store
        return await self._join_or_start(build)

    async def rebuild(self, build: BuildFn) -> MemoryStore:
        """
        Build a fresh store and swap it in, or join a build already running.

        The current store keeps serving searches until the swap.
        """
        return await self._join_or_start(build)

    async def _join_or_start(self, build: BuildFn) -> MemoryStore:
        if self._build_task is None:
            self._build_task = asyncio.create_task(self._run_build(build))
        return await asyncio.shield(self._build_task)

    async def _run_build(self, build: BuildFn) -> MemoryStore:
        generation = self._generation
        if self._store is None:
            self._state = RegistryState.INITIALIZING

        try:
            result = await build()
        except Exception as e:
            if generation == self._generation:
                self._last_error = str(e) or e.__class__.__name__
                if self._store is None:
                    self._state = RegistryState.FAILED
            logger.error("Finance memory build failed: %s", e)
            raise
        finally:
            if generation == self._generation:
                self._build_task = None

        if generation != self._generation:
            logger.info("Registry was reset during build; discarding new store")
            result.store.drop()
            raise NotInitializedError("Finance memory store was reset during build")

        previous = self._store
        self.set(result.store, result.account_lookup)
        logger.info(
            "Finance memory store installed (%d docs)", result.counts.docs,
        )

        if previous is not None and previous is not result.store:
            previous.drop()
        return result.store


@lru_cache
def get_memory_registry() -> MemoryStoreRegistry:
    """Process-wide registry used by the API layer."""
    return MemoryStoreRegistry()
