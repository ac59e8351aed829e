# =============================================================================
# Application Factory — FastAPI App & Lifespan
# =============================================================================
#
# create_app() wires the shared services onto app.state and registers the
# routers. The lifespan:
#
#   startup   → configure logging, bootstrap the finance memory (optional)
#   shutdown  → close the upstream HTTP client, dispose the DB engine
#
# DESIGN DECISION: Degrade, don't crash. If the first memory build fails
# (database down, embedding API misconfigured) the app still starts:
# /health and the upstream tools keep working, memory search answers 503
# / MEMORY_UNAVAILABLE_MESSAGE, and POST /memory/rebuild retries the build.
#
# Run locally:
#   uvicorn peacock_agent.main:app --reload
# =============================================================================

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from peacock_agent.api import admin, memory
from peacock_agent.config import settings
from peacock_agent.db.engine import dispose_engine
from peacock_agent.services.api_client import PeacockApiClient
from peacock_agent.services.embedder import OpenAIEmbeddingProvider
from peacock_agent.services.fetchers import SqlAlchemyFinanceSource
from peacock_agent.services.memory_builder import (
    MemoryBuildResult,
    build_finance_memory_store,
)
from peacock_agent.services.store_registry import (
    BuildFn,
    MemoryStoreRegistry,
    get_memory_registry,
)

logger = logging.getLogger(__name__)


async def build_memory_from_database() -> MemoryBuildResult:
    """Build the finance memory from Postgres with OpenAI embeddings."""
    return await build_finance_memory_store(
        SqlAlchemyFinanceSource(),
        OpenAIEmbeddingProvider(),
    )


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    registry: MemoryStoreRegistry | None = None,
    api_client: PeacockApiClient | None = None,
    memory_build: BuildFn | None = None,
    bootstrap_memory: bool | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        registry: Memory registry (default: process-wide instance).
        api_client: Upstream client (default: one built from settings).
        memory_build: Zero-arg coroutine function building a store
            (default: Postgres + OpenAI).
        bootstrap_memory: Build the memory at startup
            (default: settings.memory_bootstrap_on_startup).
    """
    _registry = registry or get_memory_registry()
    _build = memory_build or build_memory_from_database
    _bootstrap = (
        settings.memory_bootstrap_on_startup
        if bootstrap_memory is None
        else bootstrap_memory
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        logger.info("Starting %s v%s", settings.app_name, settings.app_version)

        if _bootstrap:
            try:
                await _registry.initialize(_build)
            except Exception as e:
                logger.warning(
                    "Finance memory bootstrap failed: %s. Memory search is "
                    "unavailable until POST /memory/rebuild succeeds.",
                    e,
                )

        yield

        await app.state.api_client.aclose()
        await dispose_engine()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "Retrieval core for the Peacock Club finance assistant: semantic "
            "memory over the club ledger and a cached gateway to the "
            "Peacock API."
        ),
        lifespan=lifespan,
    )

    # Set before the lifespan runs so TestClient without a context manager
    # still resolves dependencies.
    app.state.registry = _registry
    app.state.api_client = api_client or PeacockApiClient()
    app.state.memory_build = _build

    app.include_router(admin.router)
    app.include_router(memory.router)

    return app


app = create_app()
