# =============================================================================
# Memory API — Status, Search & Rebuild of the Finance Memory Index
# =============================================================================
#
# GET  /memory/status   → registry state, document counts, last build error
# POST /memory/search   → top-k memory documents for a natural language query
# POST /memory/rebuild  → rebuild from the current ledger and swap it in
#
# Search keeps working during a rebuild: the old store serves requests
# until the new one is installed.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from peacock_agent.agents.memory_tools import search_documents
from peacock_agent.api.deps import get_memory_build, get_registry
from peacock_agent.errors import NotInitializedError
from peacock_agent.models.requests import SearchMemoryRequest
from peacock_agent.models.responses import (
    MemoryCounts,
    MemoryHit,
    MemorySearchResponse,
    MemoryStatusResponse,
    RebuildResponse,
)
from peacock_agent.services.store_registry import BuildFn, MemoryStoreRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/memory", tags=["Memory"])


@router.get(
    "/status",
    response_model=MemoryStatusResponse,
    summary="Memory index status",
)
async def memory_status(
    registry: MemoryStoreRegistry = Depends(get_registry),
) -> MemoryStatusResponse:
    counts = registry.counts
    return MemoryStatusResponse(
        state=registry.state.value,
        building=registry.is_building,
        counts=MemoryCounts(**counts.as_dict()) if counts else None,
        last_error=registry.last_error,
    )


@router.post(
    "/search",
    response_model=MemorySearchResponse,
    summary="Search the finance memory",
    description=(
        "Semantic search over account profiles, monthly member summaries "
        "and individual transactions. Returns 503 until the first index "
        "build has finished."
    ),
)
async def memory_search(
    request: SearchMemoryRequest,
    registry: MemoryStoreRegistry = Depends(get_registry),
) -> MemorySearchResponse:
    try:
        results = await search_documents(registry, request.query, request.k)
    except NotInitializedError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e

    return MemorySearchResponse(
        query=request.query,
        k=request.k,
        results=[
            MemoryHit(
                doc_id=r.document.doc_id,
                doc_type=r.document.doc_type.value,
                label=r.document.label(),
                text=r.document.text,
                similarity_score=r.similarity_score,
                metadata=r.document.metadata.to_dict(),
            )
            for r in results
        ],
    )


@router.post(
    "/rebuild",
    response_model=RebuildResponse,
    summary="Rebuild the finance memory",
    description=(
        "Re-reads the ledger, re-embeds every document and swaps the new "
        "index in. Concurrent calls share one build. Returns 503 if the "
        "build fails; the previous index stays active."
    ),
)
async def memory_rebuild(
    registry: MemoryStoreRegistry = Depends(get_registry),
    build: BuildFn = Depends(get_memory_build),
) -> RebuildResponse:
    try:
        store = await registry.rebuild(build)
    except Exception as e:
        logger.exception("Memory rebuild failed")
        raise HTTPException(
            status_code=503,
            detail=f"Memory rebuild failed: {e}",
        ) from e

    return RebuildResponse(
        state=registry.state.value,
        counts=MemoryCounts(**store.counts.as_dict()),
    )
