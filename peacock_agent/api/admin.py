# =============================================================================
# Admin API — Health Check & Upstream Cache Control
# =============================================================================
#
# GET  /health       → liveness probe (no upstream calls)
# POST /cache/clear  → drop every cached Peacock API response AND the
#                      admin session token, forcing a fresh login on the
#                      next upstream request
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from peacock_agent.api.deps import get_api_client
from peacock_agent.config import settings
from peacock_agent.models.responses import CacheClearResponse, HealthResponse
from peacock_agent.services.api_client import PeacockApiClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Admin"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health() -> HealthResponse:
    return HealthResponse(version=settings.app_version, service=settings.app_name)


@router.post(
    "/cache/clear",
    response_model=CacheClearResponse,
    summary="Clear API response cache and session token",
    description=(
        "Drops every cached Peacock API response and the admin session "
        "cookie. The next upstream request logs in again."
    ),
)
async def clear_cache(
    api_client: PeacockApiClient = Depends(get_api_client),
) -> CacheClearResponse:
    cleared = api_client.clear_cache()
    api_client.clear_session_token()

    logger.info("Cleared %d cached responses and the session token", cleared)
    return CacheClearResponse(cleared_entries=cleared)
