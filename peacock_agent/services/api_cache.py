# =============================================================================
# API Response Cache — In-Process, No Expiry
# =============================================================================
#
# Memoises successful Peacock API responses keyed by request shape:
#
#   "<METHOD>:<endpoint>:<canonical JSON body>"
#
# The body is serialised with sorted keys, so {"a": 1, "b": 2} and
# {"b": 2, "a": 1} hit the same entry. A request without a body uses an
# empty suffix.
#
# DESIGN DECISION: No TTL. Entries live until clear() / clear_for_endpoint()
# (exposed via POST /cache/clear) or until a mutation clears the table.
# The ledger changes rarely during a chat session, and a stale read is
# cheaper to fix with an explicit clear than a TTL tuned per endpoint.
# =============================================================================

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    data: Any
    timestamp: float  # epoch seconds
    endpoint: str


def cache_key(endpoint: str, method: str = "GET", body: Any = None) -> str:
    body_key = (
        json.dumps(body, sort_keys=True, separators=(",", ":"), default=str)
        if body is not None
        else ""
    )
    return f"{method.upper()}:{endpoint}:{body_key}"


class ResponseCache:
    """Map of request key → CacheEntry."""

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, endpoint: str, method: str = "GET", body: Any = None) -> Any | None:
        """Return cached data, or None on a miss."""
        entry = self._entries.get(cache_key(endpoint, method, body))
        return entry.data if entry is not None else None

    def set(
        self,
        endpoint: str,
        data: Any,
        method: str = "GET",
        body: Any = None,
    ) -> None:
        self._entries[cache_key(endpoint, method, body)] = CacheEntry(
            data=data,
            timestamp=time.time(),
            endpoint=endpoint,
        )

    def clear(self) -> None:
        count = len(self._entries)
        self._entries = {}
        logger.debug("Cleared %d cached API responses", count)

    def clear_for_endpoint(self, pattern: str) -> int:
        """Drop every entry whose endpoint contains `pattern`. Returns the count."""
        stale = [k for k, e in self._entries.items() if pattern in e.endpoint]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def stats(self) -> dict:
        return {
            "size": len(self._entries),
            "entries": [
                {"endpoint": e.endpoint, "timestamp": e.timestamp}
                for e in self._entries.values()
            ],
        }
