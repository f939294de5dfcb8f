"""
Tests for the ledger repository statements.

Statements are captured from a mocked session and compiled with the
PostgreSQL dialect.
"""

import uuid
from datetime import date, time
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from pdelivery.services.financial.repository import LedgerError, LedgerRepository


async def _insert(ledger: LedgerRepository) -> bool:
    return await ledger.insert_income_entry_if_absent(
        company_id=uuid.uuid4(),
        order_id=uuid.uuid4(),
        description="Venda - Pedido #3",
        amount=Decimal("32.50"),
        entry_date=date(2024, 3, 5),
        entry_time=time(14, 30, 15),
        notes="Lançamento automático de venda",
    )


class TestInsertIncomeEntryIfAbsent:
    @pytest.mark.asyncio
    async def test_statement_skips_existing_entry(self, mock_session):
        result = MagicMock()
        result.scalar_one_or_none.return_value = uuid.uuid4()
        mock_session.execute = AsyncMock(return_value=result)

        created = await _insert(LedgerRepository(mock_session))

        assert created is True
        statement = mock_session.execute.await_args.args[0]
        sql = str(statement.compile(dialect=postgresql.dialect()))
        assert "ON CONFLICT (order_id) WHERE" in sql
        assert "DO NOTHING" in sql
        assert "RETURNING" in sql

    @pytest.mark.asyncio
    async def test_conflict_reports_not_created(self, mock_session):
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        mock_session.execute = AsyncMock(return_value=result)

        assert await _insert(LedgerRepository(mock_session)) is False

    @pytest.mark.asyncio
    async def test_database_error_becomes_ledger_error(self, mock_session):
        mock_session.execute = AsyncMock(
            side_effect=OperationalError("INSERT", {}, Exception("connection lost"))
        )

        with pytest.raises(LedgerError) as exc_info:
            await _insert(LedgerRepository(mock_session))

        assert "order_id" in exc_info.value.context
