# =============================================================================
# Narrative Generator — Ledger Rows → Embeddable Text
# =============================================================================
#
# Pure, deterministic text synthesis. No I/O, no clock, no randomness: the
# same input always yields byte-identical output, which keeps embeddings
# stable across rebuilds of an unchanged ledger.
#
# Three kinds of narrative feed the corpus:
#   1. Account  — who someone is (type, status, role, contact, dates)
#   2. Transaction — what moved, when, between whom
#   3. Monthly summary — per-member rollup of one calendar month
#
# DESIGN DECISION: Monthly summaries are built for MEMBER accounts only.
# Vendors appear as counterparties in member summaries and in transaction
# narratives, but never get a rollup of their own.
# =============================================================================

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from peacock_agent.db.models import AccountType
from peacock_agent.services.fetchers import AccountLite, AccountLookup, TxLite

UNKNOWN_PARTY = "UNKNOWN"


@dataclass
class MonthlySummaryBucket:
    """Transactions touching one member within one calendar month."""

    member_id: str
    year_month: str
    transactions: list[TxLite] = field(default_factory=list)


@dataclass(frozen=True)
class MonthlySummary:
    """Aggregates + rendered text for one bucket."""

    member_id: str
    year_month: str
    tx_count: int
    inflow: float
    outflow: float
    currency: str
    totals_by_type: tuple[tuple[str, float], ...]
    text: str


# ---------------------------------------------------------------------------
# Formatting Helpers
# ---------------------------------------------------------------------------


def _day(value: datetime) -> str:
    """Calendar day (UTC) as YYYY-MM-DD."""
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.date().isoformat()


def format_amount(amount: float) -> str:
    """Render whole amounts without a trailing '.0' (100, not 100.0)."""
    if isinstance(amount, float) and amount.is_integer():
        return str(int(amount))
    return str(amount)


def month_key(value: datetime) -> str:
    """Year-month bucket key (UTC) as YYYY-MM."""
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return f"{value.year:04d}-{value.month:02d}"


def display_name(account: AccountLite | None) -> str:
    """`TYPE(First Last, id=...)`, or UNKNOWN for an unresolved id."""
    if account is None:
        return UNKNOWN_PARTY
    return f"{account.type.value}({account.full_name}, id={account.id})"


# ---------------------------------------------------------------------------
# Narratives
# ---------------------------------------------------------------------------


def account_narrative(account: AccountLite) -> str:
    email = f" Email: {account.email}." if account.email else ""
    phone = f" Phone: {account.phone}." if account.phone else ""

    return (
        f"ACCOUNT {account.type.value}({account.full_name}, id={account.id}): "
        f"Status={account.status.value}. Role={account.role.value}. "
        f"AccessLevel={account.access_level.value}. "
        f"Username={account.username}.{email}{phone} "
        f"StartedAt={_day(account.started_at)}. "
        f"CreatedAt={_day(account.created_at)}."
    )


def transaction_narrative(tx: TxLite, account_lookup: AccountLookup) -> str:
    sender = display_name(account_lookup.get(tx.from_id))
    receiver = display_name(account_lookup.get(tx.to_id))
    ref = f" Ref: {tx.reference_id}." if tx.reference_id else ""
    tags = ""
    if tx.tags:
        rendered = json.dumps(
            sorted(tx.tags), separators=(",", ":"), ensure_ascii=False,
        )
        tags = f" Tags: {rendered}."
    note = f" Note: {tx.description}." if tx.description else ""

    return (
        f"TX {tx.type} on {_day(tx.occurred_at)}: "
        f"{format_amount(tx.amount)} {tx.currency}. "
        f"From {sender} to {receiver}. Method {tx.method}.{ref}{tags}{note}"
    )


# ---------------------------------------------------------------------------
# Monthly Summaries
# ---------------------------------------------------------------------------


def bucket_by_member_month(
    transactions: Iterable[TxLite],
    account_lookup: AccountLookup,
) -> list[MonthlySummaryBucket]:
    """
    Group transactions by (member, month), in first-seen order.

    A transaction lands in the bucket of each MEMBER party. When a member
    is on both sides (self-transfer) it is added to that bucket once.
    """
    buckets: dict[tuple[str, str], MonthlySummaryBucket] = {}

    for tx in transactions:
        ym = month_key(tx.occurred_at)
        for party_id in dict.fromkeys((tx.from_id, tx.to_id)):
            account = account_lookup.get(party_id)
            if account is None or account.type != AccountType.MEMBER:
                continue

            key = (party_id, ym)
            if key not in buckets:
                buckets[key] = MonthlySummaryBucket(member_id=party_id, year_month=ym)
            buckets[key].transactions.append(tx)

    return list(buckets.values())


def _is_notable(tx: TxLite) -> bool:
    return bool(tx.description) or bool(tx.tags)


def summarize_bucket(
    bucket: MonthlySummaryBucket,
    member: AccountLite,
    notable_limit: int,
    default_currency: str,
) -> MonthlySummary:
    txs = bucket.transactions
    currency = txs[0].currency if txs else default_currency

    totals: dict[str, float] = {}
    inflow = 0.0
    outflow = 0.0
    for tx in txs:
        totals[tx.type] = totals.get(tx.type, 0.0) + tx.amount
        # Sides are independent: a self-transfer counts toward both.
        if tx.to_id == bucket.member_id:
            inflow += tx.amount
        if tx.from_id == bucket.member_id:
            outflow += tx.amount

    totals_by_type = tuple(
        sorted(totals.items(), key=lambda item: item[1], reverse=True)
    )
    totals_str = ", ".join(f"{t}={format_amount(s)}" for t, s in totals_by_type)

    notable_lines = [
        f"- {t.type} {format_amount(t.amount)} {t.currency} on {_day(t.occurred_at)}"
        + (f" ({t.description})" if t.description else "")
        for t in txs
        if _is_notable(t)
    ][:notable_limit]

    text = (
        f"MONTH SUMMARY {bucket.year_month} for {display_name(member)}: "
        f"TxCount={len(txs)}. "
        f"Inflow={format_amount(inflow)} {currency}. "
        f"Outflow={format_amount(outflow)} {currency}. "
        f"TotalsByType: {totals_str}."
    )
    if notable_lines:
        text += "\nNotable entries:\n" + "\n".join(notable_lines)

    return MonthlySummary(
        member_id=bucket.member_id,
        year_month=bucket.year_month,
        tx_count=len(txs),
        inflow=inflow,
        outflow=outflow,
        currency=currency,
        totals_by_type=totals_by_type,
        text=text,
    )


def build_monthly_summaries(
    transactions: Iterable[TxLite],
    account_lookup: AccountLookup,
    notable_limit: int = 8,
    default_currency: str = "INR",
) -> list[MonthlySummary]:
    """Summaries for every non-empty (member, month) bucket."""
    return [
        summarize_bucket(
            bucket,
            account_lookup[bucket.member_id],
            notable_limit=notable_limit,
            default_currency=default_currency,
        )
        for bucket in bucket_by_member_month(transactions, account_lookup)
    ]
