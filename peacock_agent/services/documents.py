# =============================================================================
# Memory Documents — Atomic Units of the Finance Corpus
# =============================================================================
#
# A MemoryDocument is a narrative text (what gets embedded) plus typed
# metadata. Metadata is a tagged union keyed by `doc_type`:
#
#   account        → AccountDocMetadata
#   tx             → TxDocMetadata
#   month_summary  → MonthSummaryDocMetadata
#
# Every variant carries enough structure to render a human-readable label
# without re-parsing the narrative (see MemoryDocument.label()).
#
# to_dict() produces the camelCase metadata record stored alongside each
# vector in the index (docType, txId, partyIds, occurredAtTs, ...).
# =============================================================================

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import ClassVar

from peacock_agent.config import settings
from peacock_agent.services.fetchers import AccountLite, AccountLookup, TxLite
from peacock_agent.services.narrative import (
    MonthlySummary,
    account_narrative,
    build_monthly_summaries,
    transaction_narrative,
)


class DocType(str, enum.Enum):
    ACCOUNT = "account"
    TX = "tx"
    MONTH_SUMMARY = "month_summary"


# ---------------------------------------------------------------------------
# Metadata Variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountDocMetadata:
    doc_type: ClassVar[DocType] = DocType.ACCOUNT

    account_id: str
    account_type: str
    status: str
    role: str
    access_level: str
    username: str
    email: str | None
    phone: str | None
    started_at: str
    created_at: str

    def to_dict(self) -> dict:
        return {
            "docType": self.doc_type.value,
            "accountId": self.account_id,
            "accountType": self.account_type,
            "status": self.status,
            "role": self.role,
            "accessLevel": self.access_level,
            "username": self.username,
            "email": self.email,
            "phone": self.phone,
            "startedAt": self.started_at,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class TxDocMetadata:
    doc_type: ClassVar[DocType] = DocType.TX

    tx_id: str
    from_id: str
    to_id: str
    party_ids: tuple[str, str]
    type: str
    method: str
    occurred_at: str
    occurred_at_ts: int  # epoch milliseconds
    amount: float
    currency: str
    tags: tuple[str, ...]
    reference_id: str | None
    created_by_id: str | None

    def to_dict(self) -> dict:
        return {
            "docType": self.doc_type.value,
            "txId": self.tx_id,
            "fromId": self.from_id,
            "toId": self.to_id,
            "partyIds": list(self.party_ids),
            "type": self.type,
            "method": self.method,
            "occurredAt": self.occurred_at,
            "occurredAtTs": self.occurred_at_ts,
            "amount": self.amount,
            "currency": self.currency,
            "tags": list(self.tags),
            "referenceId": self.reference_id,
            "createdById": self.created_by_id,
        }


@dataclass(frozen=True)
class MonthSummaryDocMetadata:
    doc_type: ClassVar[DocType] = DocType.MONTH_SUMMARY

    member_id: str
    year_month: str
    tx_count: int
    inflow: float
    outflow: float
    currency: str

    def to_dict(self) -> dict:
        return {
            "docType": self.doc_type.value,
            "memberId": self.member_id,
            "yearMonth": self.year_month,
            "txCount": self.tx_count,
            "inflow": self.inflow,
            "outflow": self.outflow,
            "currency": self.currency,
        }


DocumentMetadata = AccountDocMetadata | TxDocMetadata | MonthSummaryDocMetadata


@dataclass(frozen=True)
class MemoryDocument:
    """One embeddable unit: narrative text + typed metadata."""

    doc_id: str
    text: str
    metadata: DocumentMetadata

    @property
    def doc_type(self) -> DocType:
        return self.metadata.doc_type

    def label(self) -> str:
        """Short header used when presenting search results to the agent."""
        meta = self.metadata
        if isinstance(meta, AccountDocMetadata):
            return f"ACCOUNT {meta.account_type} id={meta.account_id}"
        if isinstance(meta, MonthSummaryDocMetadata):
            return f"MONTH SUMMARY {meta.year_month} member={meta.member_id}"
        if isinstance(meta, TxDocMetadata):
            return f"TRANSACTION {meta.type} id={meta.tx_id}"
        return f"DOCUMENT {getattr(meta, 'doc_type', 'unknown')}"


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------


def create_account_document(account: AccountLite) -> MemoryDocument:
    return MemoryDocument(
        doc_id=f"account:{account.id}",
        text=account_narrative(account),
        metadata=AccountDocMetadata(
            account_id=account.id,
            account_type=account.type.value,
            status=account.status.value,
            role=account.role.value,
            access_level=account.access_level.value,
            username=account.username,
            email=account.email,
            phone=account.phone,
            started_at=account.started_at.isoformat(),
            created_at=account.created_at.isoformat(),
        ),
    )


def create_transaction_document(
    tx: TxLite,
    account_lookup: AccountLookup,
) -> MemoryDocument:
    return MemoryDocument(
        doc_id=f"tx:{tx.id}",
        text=transaction_narrative(tx, account_lookup),
        metadata=TxDocMetadata(
            tx_id=tx.id,
            from_id=tx.from_id,
            to_id=tx.to_id,
            party_ids=(tx.from_id, tx.to_id),
            type=tx.type,
            method=tx.method,
            occurred_at=tx.occurred_at.isoformat(),
            occurred_at_ts=int(tx.occurred_at.timestamp() * 1000),
            amount=tx.amount,
            currency=tx.currency,
            tags=tuple(sorted(tx.tags)),
            reference_id=tx.reference_id,
            created_by_id=tx.created_by_id,
        ),
    )


def create_monthly_summary_document(summary: MonthlySummary) -> MemoryDocument:
    return MemoryDocument(
        doc_id=f"month:{summary.member_id}:{summary.year_month}",
        text=summary.text,
        metadata=MonthSummaryDocMetadata(
            member_id=summary.member_id,
            year_month=summary.year_month,
            tx_count=summary.tx_count,
            inflow=summary.inflow,
            outflow=summary.outflow,
            currency=summary.currency,
        ),
    )


def build_monthly_summary_documents(
    transactions: list[TxLite],
    account_lookup: AccountLookup,
    notable_limit: int | None = None,
) -> list[MemoryDocument]:
    """One document per non-empty (member, month) bucket, in first-seen order."""
    summaries = build_monthly_summaries(
        transactions,
        account_lookup,
        notable_limit=(
            settings.memory_notable_tx_limit
            if notable_limit is None
            else notable_limit
        ),
        default_currency=settings.memory_default_currency,
    )
    return [create_monthly_summary_document(s) for s in summaries]
