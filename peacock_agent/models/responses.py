# =============================================================================
# Response Models — Pydantic V2 Schemas
# =============================================================================
#
# Shapes of data going OUT of the HTTP API. Memory search responses carry
# the rendered narrative and label of each hit but never the embedding
# vectors or the raw Chroma metadata.
# =============================================================================

from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response for GET /health — confirms the API is running."""

    status: str = "ok"
    version: str
    service: str


class MemoryCounts(BaseModel):
    docs: int
    account: int
    tx: int
    month: int


class MemoryStatusResponse(BaseModel):
    """Response for GET /memory/status."""

    state: str = Field(description="uninitialized | initializing | ready | failed")
    building: bool = False
    counts: MemoryCounts | None = None
    last_error: str | None = None


class MemoryHit(BaseModel):
    doc_id: str
    doc_type: str
    label: str
    text: str
    similarity_score: float
    metadata: dict[str, Any] = Field(default_factory=dict)


class MemorySearchResponse(BaseModel):
    """Response for POST /memory/search."""

    query: str
    k: int
    results: list[MemoryHit]


class RebuildResponse(BaseModel):
    """Response for POST /memory/rebuild."""

    state: str
    counts: MemoryCounts


class CacheClearResponse(BaseModel):
    """Response for POST /cache/clear."""

    success: bool = True
    message: str = "Cache and session token cleared successfully"
    cleared_entries: int = 0
