# =============================================================================
# Database Models — Read-Only Ledger Mapping
# =============================================================================
#
# Maps the two tables the memory index reads. The schema is owned by the
# Peacock application (Prisma), so table and column names follow its
# conventions: PascalCase tables, camelCase columns. We map them onto
# snake_case attributes and never emit DDL from here.
#
# ┌──────────────────┐        ┌──────────────────────────┐
# │  Account         │        │  Transaction             │
# ├──────────────────┤        ├──────────────────────────┤
# │ id (PK)          │◀──from─│ fromId                   │
# │ firstName        │◀───to──│ toId                     │
# │ lastName         │        │ amount, currency         │
# │ type, status     │        │ type, method             │
# │ username, email  │        │ occurredAt               │
# │ phone            │        │ referenceId, description │
# │ accessLevel      │        │ tags (text[])            │
# │ role             │        │ createdById              │
# │ startedAt        │        └──────────────────────────┘
# │ createdAt        │
# └──────────────────┘
#
# Enum-valued columns are mapped as plain strings and converted to the
# Python enums below by the fetchers; unexpected values then fail in one
# place (the fetcher) rather than at ORM load time.
# =============================================================================

import enum
from datetime import datetime

from sqlalchemy import DateTime, Float, String
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for the ledger mapping."""

    pass


class AccountType(str, enum.Enum):
    MEMBER = "MEMBER"
    VENDOR = "VENDOR"


class AccountStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    BLOCKED = "BLOCKED"
    CLOSED = "CLOSED"


class AccessLevel(str, enum.Enum):
    READ = "READ"
    WRITE = "WRITE"
    ADMIN = "ADMIN"


class Role(str, enum.Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class TransactionType(str, enum.Enum):
    """Transaction kinds accepted by the Peacock API."""

    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    LOAN = "LOAN"
    LOAN_REPAYMENT = "LOAN_REPAYMENT"
    INTEREST = "INTEREST"
    FEE = "FEE"
    TRANSFER = "TRANSFER"


class Account(Base):
    """A club member or an external vendor."""

    __tablename__ = "Account"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    first_name: Mapped[str] = mapped_column("firstName", String)
    last_name: Mapped[str | None] = mapped_column("lastName", String, nullable=True)
    type: Mapped[str] = mapped_column(String)
    status: Mapped[str] = mapped_column(String)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    username: Mapped[str] = mapped_column(String)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    access_level: Mapped[str] = mapped_column("accessLevel", String)
    role: Mapped[str] = mapped_column(String)
    started_at: Mapped[datetime] = mapped_column("startedAt", DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<Account(id={self.id!r}, type={self.type!r}, username={self.username!r})>"


class Transaction(Base):
    """A money movement between two accounts."""

    __tablename__ = "Transaction"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    from_id: Mapped[str] = mapped_column("fromId", String)
    to_id: Mapped[str] = mapped_column("toId", String)
    amount: Mapped[float] = mapped_column(Float)
    currency: Mapped[str] = mapped_column(String)
    type: Mapped[str] = mapped_column(String)
    method: Mapped[str] = mapped_column(String)
    # Authoritative date for all temporal reasoning (not createdAt).
    occurred_at: Mapped[datetime] = mapped_column("occurredAt", DateTime(timezone=True))
    reference_id: Mapped[str | None] = mapped_column("referenceId", String, nullable=True)
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    tags: Mapped[list[str] | None] = mapped_column(ARRAY(String), nullable=True)
    created_by_id: Mapped[str | None] = mapped_column("createdById", String, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Transaction(id={self.id!r}, type={self.type!r}, "
            f"amount={self.amount!r})>"
        )
