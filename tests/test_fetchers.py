# =============================================================================
# Unit Tests — Ledger Fetchers
# =============================================================================
#
# Row mapping uses transient ORM instances (no database). The SQLAlchemy
# source is exercised with a fake session factory whose execute() is an
# AsyncMock, so we can inspect the generated statement.
# =============================================================================

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from finance_fixtures import _run
from sqlalchemy.exc import SQLAlchemyError

from peacock_agent.db.models import Account, AccountType, Transaction
from peacock_agent.errors import DataAccessError
from peacock_agent.services.fetchers import (
    SqlAlchemyFinanceSource,
    account_from_row,
    transaction_from_row,
)


def _account_row(**overrides) -> Account:
    fields = dict(
        id="acc_1",
        first_name="Asha",
        last_name="Rao",
        type="MEMBER",
        status="ACTIVE",
        email=None,
        username="asha",
        phone=None,
        access_level="READ",
        role="MEMBER",
        started_at=datetime(2023, 1, 15),
        created_at=datetime(2023, 1, 10, tzinfo=UTC),
    )
    fields.update(overrides)
    return Account(**fields)


def _tx_row(**overrides) -> Transaction:
    fields = dict(
        id="tx_1",
        from_id="acc_2",
        to_id="acc_1",
        amount=1000,
        currency="INR",
        type="DEPOSIT",
        method="UPI",
        occurred_at=datetime(2024, 3, 1, 10, 0),
        reference_id=None,
        description=None,
        tags=None,
        created_by_id=None,
    )
    fields.update(overrides)
    return Transaction(**fields)


def _session_factory(rows=None, error: Exception | None = None):
    session = MagicMock()
    if error is not None:
        session.execute = AsyncMock(side_effect=error)
    else:
        result = MagicMock()
        result.scalars.return_value.all.return_value = rows or []
        session.execute = AsyncMock(return_value=result)

    @asynccontextmanager
    async def factory():
        yield session

    return factory, session


class TestRowMapping:

    def test_account(self):
        acc = account_from_row(_account_row())

        assert acc.type == AccountType.MEMBER
        assert acc.full_name == "Asha Rao"
        # Naive timestamps are taken as UTC
        assert acc.started_at == datetime(2023, 1, 15, tzinfo=UTC)

    def test_unknown_enum_value_raises(self):
        with pytest.raises(ValueError):
            account_from_row(_account_row(type="ALIEN"))

    def test_transaction(self):
        tx = transaction_from_row(_tx_row(tags=["office", "q1"]))

        assert tx.amount == 1000.0
        assert isinstance(tx.amount, float)
        assert tx.tags == frozenset({"office", "q1"})
        assert tx.occurred_at.tzinfo is not None

    def test_null_tags_become_empty_set(self):
        assert transaction_from_row(_tx_row()).tags == frozenset()


class TestSqlAlchemyFinanceSource:

    def test_fetch_accounts(self):
        factory, _ = _session_factory([_account_row(), _account_row(id="acc_2")])
        accounts = _run(SqlAlchemyFinanceSource(factory).fetch_accounts())
        assert [a.id for a in accounts] == ["acc_1", "acc_2"]

    def test_fetch_accounts_db_error(self):
        factory, _ = _session_factory(error=SQLAlchemyError("connection lost"))
        with pytest.raises(DataAccessError):
            _run(SqlAlchemyFinanceSource(factory).fetch_accounts())

    def test_fetch_accounts_bad_row(self):
        factory, _ = _session_factory([_account_row(status="ZOMBIE")])
        with pytest.raises(DataAccessError, match="Unexpected account row"):
            _run(SqlAlchemyFinanceSource(factory).fetch_accounts())

    def test_fetch_transactions_newest_first_with_default_limit(self):
        factory, session = _session_factory([_tx_row()])

        txs = _run(SqlAlchemyFinanceSource(factory).fetch_transactions())

        assert [t.id for t in txs] == ["tx_1"]
        stmt = session.execute.call_args.args[0]
        sql = str(stmt.compile(compile_kwargs={"literal_binds": True}))
        assert '"occurredAt" DESC' in sql
        assert "LIMIT 20000" in sql

    def test_fetch_transactions_since(self):
        factory, session = _session_factory([])

        _run(SqlAlchemyFinanceSource(factory).fetch_transactions(
            since=datetime(2024, 1, 1, tzinfo=UTC), limit=50,
        ))

        sql = str(session.execute.call_args.args[0])
        assert '"occurredAt" >=' in sql

    def test_fetch_transactions_db_error(self):
        factory, _ = _session_factory(error=SQLAlchemyError("timeout"))
        with pytest.raises(DataAccessError):
            _run(SqlAlchemyFinanceSource(factory).fetch_transactions())
