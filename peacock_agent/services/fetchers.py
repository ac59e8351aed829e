# =============================================================================
# Ledger Fetchers — Read-Only Snapshot of Accounts & Transactions
# =============================================================================
#
# The memory index is built from two lightweight snapshots:
#   - AccountLite: identity of a member or vendor
#   - TxLite: one transaction between two accounts
#
# DESIGN DECISION: Protocol for the data source (same pattern as the
# EmbeddingProvider). The index builder only needs two async calls, so tests
# pass a tiny in-memory fake and production uses SqlAlchemyFinanceSource.
#
# Each fetch is all-or-nothing: any query failure raises DataAccessError and
# no partial result is returned.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from peacock_agent.config import settings
from peacock_agent.db.models import (
    AccessLevel,
    Account,
    AccountStatus,
    AccountType,
    Role,
    Transaction,
)
from peacock_agent.errors import DataAccessError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountLite:
    """Identity snapshot of a member or vendor for one index build."""

    id: str
    first_name: str
    last_name: str | None
    type: AccountType
    status: AccountStatus
    username: str
    access_level: AccessLevel
    role: Role
    started_at: datetime
    created_at: datetime
    email: str | None = None
    phone: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name or ''}".strip()


@dataclass(frozen=True)
class TxLite:
    """
    A single ledger transaction.

    `occurred_at` is the authoritative date for all temporal reasoning.
    `tags` is a set: order carries no meaning.
    """

    id: str
    from_id: str
    to_id: str
    amount: float
    currency: str
    type: str
    method: str
    occurred_at: datetime
    reference_id: str | None = None
    description: str | None = None
    tags: frozenset[str] = field(default_factory=frozenset)
    created_by_id: str | None = None


AccountLookup = dict[str, AccountLite]


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class FinanceDataSource(Protocol):
    """Read-only source of ledger rows for the memory index."""

    async def fetch_accounts(self) -> list[AccountLite]:
        """Return every account. Raises DataAccessError on failure."""
        ...

    async def fetch_transactions(
        self,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[TxLite]:
        """
        Return the most recent transactions first.

        Args:
            since: Only include transactions with occurred_at >= since.
            limit: Maximum rows (defaults to settings.memory_max_transactions).
        """
        ...


# ---------------------------------------------------------------------------
# Implementation: SQLAlchemy (PostgreSQL)
# ---------------------------------------------------------------------------


class SqlAlchemyFinanceSource:
    """Fetches ledger snapshots through the async SQLAlchemy session factory."""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] | async_sessionmaker | None = None,
    ) -> None:
        if session_factory is None:
            from peacock_agent.db.engine import get_async_session_factory

            session_factory = get_async_session_factory()
        self._session_factory = session_factory

    async def fetch_accounts(self) -> list[AccountLite]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(Account))
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Failed to fetch accounts: %s", e)
            raise DataAccessError("Failed to fetch accounts from database") from e

        try:
            return [account_from_row(row) for row in rows]
        except ValueError as e:
            # Enum column holding a value this build doesn't know about
            raise DataAccessError(f"Unexpected account row: {e}") from e

    async def fetch_transactions(
        self,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[TxLite]:
        stmt = (
            select(Transaction)
            .order_by(Transaction.occurred_at.desc())
            .limit(settings.memory_max_transactions if limit is None else limit)
        )
        if since is not None:
            stmt = stmt.where(Transaction.occurred_at >= since)

        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch transactions (since=%s, limit=%s): %s",
                since, limit, e,
            )
            raise DataAccessError(
                "Failed to fetch transactions from database"
            ) from e

        return [transaction_from_row(row) for row in rows]


# ---------------------------------------------------------------------------
# Row Mapping
# ---------------------------------------------------------------------------


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def account_from_row(row: Account) -> AccountLite:
    return AccountLite(
        id=row.id,
        first_name=row.first_name,
        last_name=row.last_name,
        type=AccountType(row.type),
        status=AccountStatus(row.status),
        username=row.username,
        access_level=AccessLevel(row.access_level),
        role=Role(row.role),
        started_at=_as_utc(row.started_at),
        created_at=_as_utc(row.created_at),
        email=row.email,
        phone=row.phone,
    )


def transaction_from_row(row: Transaction) -> TxLite:
    return TxLite(
        id=row.id,
        from_id=row.from_id,
        to_id=row.to_id,
        amount=float(row.amount),
        currency=row.currency,
        type=row.type,
        method=row.method,
        occurred_at=_as_utc(row.occurred_at),
        reference_id=row.reference_id,
        description=row.description,
        tags=frozenset(row.tags or ()),
        created_by_id=row.created_by_id,
    )
