# =============================================================================
# Finance Memory Search Tool
# =============================================================================
#
# The agent-facing entry point into the memory index. Given a natural
# language query it returns the k most relevant ledger documents rendered
# as plain text blocks:
#
#   [#1 ACCOUNT MEMBER id=acc_1]
#   ACCOUNT MEMBER(Asha Rao, id=acc_1): Status=ACTIVE. ...
#
#   ---
#
#   [#2 MONTH SUMMARY 2024-03 member=acc_1]
#   ...
#
# DESIGN DECISION: Over-fetch then trim. We ask the store for
# max(k * multiplier, min_retrieval) candidates (capped at corpus size)
# and keep the first k. Over-fetching gives the HNSW index a larger
# candidate pool, which noticeably improves recall on small k.
#
# DESIGN DECISION: search_memory() never raises. Tools are called by an
# LLM loop, which copes better with an explanatory string than with an
# exception. search_documents() is the structured, raising variant used
# by the HTTP API.
# =============================================================================

from __future__ import annotations

import logging

from peacock_agent.config import settings
from peacock_agent.errors import NotInitializedError
from peacock_agent.services.memory_store import MemorySearchResult
from peacock_agent.services.store_registry import MemoryStoreRegistry

logger = logging.getLogger(__name__)

MEMORY_UNAVAILABLE_MESSAGE = (
    "Memory store is not available. Please wait for initialization "
    "or contact support."
)
NO_RESULTS_MESSAGE = "No relevant results found in the memory store for your query."
RESULT_SEPARATOR = "\n\n---\n\n"


def clamp_k(k: int) -> int:
    """Bound k to [1, settings.memory_max_k]."""
    return max(1, min(int(k), settings.memory_max_k))


async def search_documents(
    registry: MemoryStoreRegistry,
    query: str,
    k: int | None = None,
) -> list[MemorySearchResult]:
    """
    Return up to k results, most relevant first.

    Raises:
        NotInitializedError: No store has been installed yet.
    """
    store = registry.require()
    k = clamp_k(k if k is not None else settings.memory_default_k)
    fetch_k = max(k * settings.memory_retrieval_multiplier, settings.memory_min_retrieval)

    candidates = await store.similarity_search(query, fetch_k)
    return candidates[:k]


def format_results(results: list[MemorySearchResult]) -> str:
    return RESULT_SEPARATOR.join(
        f"[#{i} {r.document.label()}]\n{r.document.text}"
        for i, r in enumerate(results, start=1)
    )


async def search_memory(
    registry: MemoryStoreRegistry,
    query: str,
    k: int = 6,
) -> str:
    """Search the finance memory and render the hits for an LLM."""
    try:
        results = await search_documents(registry, query, k)
    except NotInitializedError:
        logger.warning("Memory search attempted before store initialization")
        return MEMORY_UNAVAILABLE_MESSAGE
    except Exception as e:
        logger.exception("Memory search failed for query '%s'", query)
        return f"Error searching memory store: {e}"

    if not results:
        return NO_RESULTS_MESSAGE

    logger.info("Memory search '%s' → %d results", query, len(results))
    return format_results(results)
