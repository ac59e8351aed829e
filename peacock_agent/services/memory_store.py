# =============================================================================
# Finance Memory Store — In-Process Vector Index over the Ledger Corpus
# =============================================================================
#
# Wraps one ChromaDB collection (in-process, cosine space) together with the
# typed MemoryDocuments it indexes and the account lookup used to build it.
#
# DESIGN DECISION: One collection per build. Every build writes into a
# freshly named collection, fully populated before the store object is
# returned. The registry then swaps the whole store in one assignment, so
# readers never see a half-loaded index. A store is never mutated after
# construction.
#
# DESIGN DECISION: Typed documents are kept in a Python dict keyed by doc id.
# Chroma metadata only allows scalar values, so the sanitised copy stored in
# Chroma is for inspection/filtering; search results are always rebuilt
# from the typed originals.
#
# ChromaDB's Python client is synchronous; every call into it runs in
# asyncio.to_thread() to keep the event loop free.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass

import chromadb

from peacock_agent.config import settings
from peacock_agent.services.documents import MemoryDocument
from peacock_agent.services.embedder import EmbeddingProvider
from peacock_agent.services.fetchers import AccountLookup

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MemoryBuildCounts:
    docs: int
    account: int
    tx: int
    month: int

    def as_dict(self) -> dict[str, int]:
        return {
            "docs": self.docs,
            "account": self.account,
            "tx": self.tx,
            "month": self.month,
        }


@dataclass
class MemorySearchResult:
    """A document plus its cosine similarity to the query."""

    document: MemoryDocument
    similarity_score: float


# ---------------------------------------------------------------------------
# Chroma Client — Lazy Singleton
# ---------------------------------------------------------------------------

_chroma_client = None


def _get_chroma_client():
    """Lazily create the in-process Chroma client."""
    global _chroma_client
    if _chroma_client is None:
        _chroma_client = chromadb.Client()
    return _chroma_client


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class MemoryStore:
    """Immutable, searchable snapshot of the finance corpus."""

    def __init__(
        self,
        collection,
        documents: dict[str, MemoryDocument],
        embedder: EmbeddingProvider,
        account_lookup: AccountLookup,
        counts: MemoryBuildCounts,
    ) -> None:
        self._collection = collection
        self._documents = documents
        self._embedder = embedder
        self.account_lookup = account_lookup
        self.counts = counts

    @property
    def collection_name(self) -> str:
        return self._collection.name

    def __len__(self) -> int:
        return len(self._documents)

    def get_document(self, doc_id: str) -> MemoryDocument | None:
        return self._documents.get(doc_id)

    def documents(self) -> list[MemoryDocument]:
        """All documents, in the order they were indexed."""
        return list(self._documents.values())

    @classmethod
    async def create(
        cls,
        documents: list[MemoryDocument],
        embeddings: list[list[float]],
        embedder: EmbeddingProvider,
        account_lookup: AccountLookup,
        counts: MemoryBuildCounts,
        batch_size: int | None = None,
    ) -> MemoryStore:
        """
        Load pre-computed embeddings into a new collection.

        Args:
            documents: Corpus in emission order.
            embeddings: One vector per document, same order.
            embedder: Used later to embed search queries.
            batch_size: Rows per Chroma add() call (Chroma caps batch size).
        """
        if len(documents) != len(embeddings):
            raise ValueError(
                f"Got {len(embeddings)} embeddings for {len(documents)} documents"
            )

        _batch_size = batch_size or settings.memory_index_batch_size
        name = f"finance_memory_{uuid.uuid4().hex}"

        def _sync_load():
            collection = _get_chroma_client().create_collection(
                name=name,
                metadata={"hnsw:space": "cosine"},
            )
            for i in range(0, len(documents), _batch_size):
                batch = documents[i : i + _batch_size]
                collection.add(
                    ids=[d.doc_id for d in batch],
                    documents=[d.text for d in batch],
                    embeddings=embeddings[i : i + _batch_size],
                    metadatas=[
                        _sanitise_chroma_metadata(d.metadata.to_dict())
                        for d in batch
                    ],
                )
            return collection

        collection = await asyncio.to_thread(_sync_load)

        logger.info(
            "Loaded %d documents into collection %s", len(documents), name,
        )
        return cls(
            collection=collection,
            documents={d.doc_id: d for d in documents},
            embedder=embedder,
            account_lookup=account_lookup,
            counts=counts,
        )

    async def similarity_search(
        self,
        query: str,
        k: int,
    ) -> list[MemorySearchResult]:
        """
        Nearest-neighbour search over the corpus.

        Returns at most min(k, corpus size) results, most similar first.
        """
        n_results = min(k, len(self._documents))
        if n_results <= 0:
            return []

        query_embedding = await self._embedder.embed_query(query)

        def _sync_query():
            return self._collection.query(
                query_embeddings=[query_embedding],
                n_results=n_results,
                include=["distances"],
            )

        raw = await asyncio.to_thread(_sync_query)

        results: list[MemorySearchResult] = []
        if raw and raw["ids"] and raw["ids"][0]:
            distances = raw["distances"][0] if raw.get("distances") else None
            for i, doc_id in enumerate(raw["ids"][0]):
                document = self._documents.get(doc_id)
                if document is None:
                    continue
                distance = distances[i] if distances else 0.0
                results.append(MemorySearchResult(
                    document=document,
                    # Chroma cosine distance is in [0, 2]
                    similarity_score=round(1.0 - distance, 4),
                ))

        logger.debug(
            "Memory search returned %d results (k=%d)", len(results), k,
        )
        return results

    def drop(self) -> None:
        """Delete the backing collection. The store is unusable afterwards."""
        try:
            _get_chroma_client().delete_collection(self._collection.name)
        except Exception as e:
            logger.warning(
                "Could not drop memory collection %s: %s",
                self._collection.name, e,
            )


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _sanitise_chroma_metadata(metadata: dict) -> dict:
    """
    Sanitise metadata for ChromaDB compatibility.

    ChromaDB requires all metadata values to be str, int, float, or bool:
    - list → comma-separated string
    - None → empty string
    """
    sanitised = {}
    for key, value in metadata.items():
        if value is None:
            sanitised[key] = ""
        elif isinstance(value, list | tuple):
            sanitised[key] = ",".join(str(v) for v in value)
        elif isinstance(value, (str, int, float, bool)):
            sanitised[key] = value
        else:
            sanitised[key] = str(value)
    return sanitised
