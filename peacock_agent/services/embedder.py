# =============================================================================
# Embedder — Narrative Text → Vectors
# =============================================================================
#
# The memory index only needs two things from an embedding backend, captured
# by the EmbeddingProvider protocol: embed the whole corpus once per build,
# and embed one query per search. Tests plug in a deterministic fake.
#
# OpenAIEmbeddingProvider talks to any OpenAI-compatible embeddings endpoint
# (EMBEDDING_BASE_URL switches providers).
#
# DESIGN DECISION: The OpenAI SDK client is synchronous here; each call is
# pushed to a worker thread with asyncio.to_thread() so the event loop keeps
# serving HTTP requests during a long corpus build.
#
# Errors are raised as-is. memory_builder turns them into EmbeddingError and
# the whole build fails; partial corpora are never indexed.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Protocol

from openai import OpenAI

from peacock_agent.config import settings

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    """
    Anything that turns text into fixed-length vectors.

    Both methods must return vectors of the same dimensionality, and
    embed_documents() must preserve input order.
    """

    async def embed_documents(self, texts: Sequence[str]) -> list[list[float]]:
        ...

    async def embed_query(self, text: str) -> list[float]:
        ...


_shared_client: OpenAI | None = None


def _get_shared_client() -> OpenAI:
    """Process-wide OpenAI client, created on first use."""
    global _shared_client
    if _shared_client is None:
        if not settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY must be set to build the finance memory")

        options: dict = {"api_key": settings.openai_api_key}
        if settings.embedding_base_url:
            options["base_url"] = settings.embedding_base_url
        _shared_client = OpenAI(**options)

        logger.info(
            "Embedding client ready (model=%s, endpoint=%s)",
            settings.embedding_model,
            settings.embedding_base_url or "openai",
        )
    return _shared_client


class OpenAIEmbeddingProvider:
    """EmbeddingProvider over the OpenAI embeddings API."""

    def __init__(
        self,
        client: OpenAI | None = None,
        model: str | None = None,
        dimensions: int | None = None,
        batch_size: int | None = None,
    ) -> None:
        self._client = client
        self.model = model or settings.embedding_model
        self.dimensions = (
            settings.embedding_dimensions if dimensions is None else dimensions
        )
        self.batch_size = batch_size or settings.embedding_batch_size

    async def embed_documents(self, texts: Sequence[str]) -> list[list[float]]:
        return await asyncio.to_thread(self._embed_all, list(texts))

    async def embed_query(self, text: str) -> list[float]:
        vectors = await asyncio.to_thread(self._embed_all, [text])
        return vectors[0]

    def _embed_all(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        client = self._client or _get_shared_client()
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            chunk = texts[start : start + self.batch_size]
            request: dict = {"model": self.model, "input": chunk}
            if self.dimensions:
                request["dimensions"] = self.dimensions

            response = client.embeddings.create(**request)
            # response.data carries its own index; never trust list order
            ordered = sorted(response.data, key=lambda item: item.index)
            vectors.extend(item.embedding for item in ordered)

        logger.debug("Embedded %d texts with %s", len(texts), self.model)
        return vectors
