# =============================================================================
# Database Engine & Session Management
# =============================================================================
#
# The memory index reads the club ledger (accounts + transactions) directly
# from PostgreSQL through SQLAlchemy's async engine. Access is read-only:
# sessions are opened, queried, and closed without committing anything.
#
# DESIGN DECISION: Lazy initialization. The engine is only created the first
# time a build needs it, so importing the package (tests, tooling) never
# requires a reachable database or the asyncpg driver to be configured.
# =============================================================================

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from peacock_agent.config import settings

_async_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_async_engine() -> AsyncEngine:
    """Lazily create and cache the async SQLAlchemy engine."""
    global _async_engine
    if _async_engine is None:
        _async_engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            pool_size=5,
            max_overflow=10,
        )
    return _async_engine


def get_async_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Lazily create and cache the session factory.

    expire_on_commit=False keeps loaded rows readable after the session
    closes, which the fetchers rely on when mapping rows to dataclasses.
    """
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = async_sessionmaker(
            bind=get_async_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_factory


async def dispose_engine() -> None:
    """Close pooled connections (called on application shutdown)."""
    global _async_engine, _async_session_factory
    if _async_engine is not None:
        await _async_engine.dispose()
    _async_engine = None
    _async_session_factory = None
