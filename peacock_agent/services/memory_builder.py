# =============================================================================
# Memory Index Builder — Ledger → Documents → Vectors → Store
# =============================================================================
#
# One build pulls a snapshot of the ledger, renders it into documents,
# embeds them and loads a brand-new MemoryStore:
#
#   1. Fetch accounts + recent transactions (concurrently)
#   2. Build the id → AccountLite lookup
#   3. Documents: accounts, then monthly summaries, then transactions
#   4. Embed all document texts (batched by the provider)
#   5. Load a fresh Chroma collection
#
# DESIGN DECISION: All-or-nothing. Any failure raises and nothing is
# returned, so the registry keeps whatever store it already had. Fetch
# failures surface as DataAccessError, embedding failures as EmbeddingError.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime

from peacock_agent.config import settings
from peacock_agent.errors import EmbeddingError
from peacock_agent.services.documents import (
    MemoryDocument,
    build_monthly_summary_documents,
    create_account_document,
    create_transaction_document,
)
from peacock_agent.services.embedder import EmbeddingProvider
from peacock_agent.services.fetchers import AccountLookup, FinanceDataSource
from peacock_agent.services.memory_store import MemoryBuildCounts, MemoryStore

logger = logging.getLogger(__name__)


@dataclass
class MemoryBuildResult:
    """A fully loaded store plus what went into it."""

    store: MemoryStore
    account_lookup: AccountLookup
    counts: MemoryBuildCounts


def _months_ago(months: int, now: datetime | None = None) -> datetime:
    """First instant (UTC) of the calendar month `months` before now."""
    now = now or datetime.now(UTC)
    total = now.year * 12 + (now.month - 1) - months
    return datetime(total // 12, total % 12 + 1, 1, tzinfo=UTC)


async def build_finance_memory_store(
    source: FinanceDataSource,
    embedder: EmbeddingProvider,
    *,
    max_transactions: int | None = None,
    months_back: int | None = None,
) -> MemoryBuildResult:
    """
    Build a searchable memory store from the current ledger.

    Args:
        source: Where accounts and transactions come from.
        embedder: Embeds document texts now and query texts later.
        max_transactions: Cap on most-recent transactions
            (default: settings.memory_max_transactions).
        months_back: Only include transactions from the first day of the
            month this many months ago (default: settings.memory_months_back,
            None = no window).

    Raises:
        DataAccessError: Fetching from the ledger failed.
        EmbeddingError: The embedding provider failed.
    """
    start = time.perf_counter()
    limit = (
        settings.memory_max_transactions
        if max_transactions is None
        else max_transactions
    )
    window = months_back if months_back is not None else settings.memory_months_back
    since = _months_ago(window) if window else None

    accounts, transactions = await asyncio.gather(
        source.fetch_accounts(),
        source.fetch_transactions(since=since, limit=limit),
    )
    logger.info(
        "Fetched %d accounts and %d transactions (limit=%d, since=%s)",
        len(accounts), len(transactions), limit, since,
    )

    account_lookup: AccountLookup = {a.id: a for a in accounts}

    account_docs = [create_account_document(a) for a in accounts]
    month_docs = build_monthly_summary_documents(transactions, account_lookup)
    tx_docs = [create_transaction_document(t, account_lookup) for t in transactions]

    documents: list[MemoryDocument] = [*account_docs, *month_docs, *tx_docs]
    counts = MemoryBuildCounts(
        docs=len(documents),
        account=len(account_docs),
        tx=len(tx_docs),
        month=len(month_docs),
    )

    try:
        embeddings = await embedder.embed_documents([d.text for d in documents])
    except Exception as e:
        logger.error("Embedding %d documents failed: %s", len(documents), e)
        raise EmbeddingError(f"Failed to embed memory documents: {e}") from e

    store = await MemoryStore.create(
        documents=documents,
        embeddings=embeddings,
        embedder=embedder,
        account_lookup=account_lookup,
        counts=counts,
    )

    logger.info(
        "Finance memory built in %.0fms: %d docs "
        "(%d account, %d month, %d tx)",
        (time.perf_counter() - start) * 1000,
        counts.docs, counts.account, counts.month, counts.tx,
    )
    return MemoryBuildResult(
        store=store,
        account_lookup=account_lookup,
        counts=counts,
    )
