# =============================================================================
# API Dependencies — FastAPI Dependency Injection for Shared Services
# =============================================================================
#
# Route handlers never reach for module globals directly; they declare
# what they need:
#
#   get_registry()        → the process-wide MemoryStoreRegistry
#   get_api_client()      → the PeacockApiClient created in the lifespan
#   get_memory_build()    → zero-arg coroutine function that builds a store
#
# DESIGN DECISION: Services live on app.state, set by create_app() before
# the lifespan runs. Tests swap any of them via app.dependency_overrides
# without touching the database, the embedding API or the upstream API.
# =============================================================================

from __future__ import annotations

from fastapi import Request

from peacock_agent.services.api_client import PeacockApiClient
from peacock_agent.services.store_registry import BuildFn, MemoryStoreRegistry


def get_registry(request: Request) -> MemoryStoreRegistry:
    return request.app.state.registry


def get_api_client(request: Request) -> PeacockApiClient:
    return request.app.state.api_client


def get_memory_build(request: Request) -> BuildFn:
    return request.app.state.memory_build
