"""
Financial ledger repository.

Provides the atomic "insert the sale entry of an order unless one exists"
operation used by order finalization, and the range queries behind the cash
flow and chart of accounts views.
"""

import uuid
from datetime import date, time
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import and_, select, text
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pdelivery.core.logging import get_logger
from pdelivery.database.models.financial import FinancialEntry
from pdelivery.services.orders.enums import EntryType

logger = get_logger(__name__)

# Must match the predicate of uq_financial_entries_order_income
ORDER_INCOME_INDEX_WHERE = text("entry_type = 'income' AND order_id IS NOT NULL")


class LedgerError(Exception):
    """Base exception for ledger errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class LedgerRepository:
    """Repository for financial entries."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert_income_entry_if_absent(
        self,
        company_id: uuid.UUID,
        order_id: uuid.UUID,
        description: str,
        amount: Decimal,
        entry_date: date,
        entry_time: time,
        notes: Optional[str] = None,
    ) -> bool:
        """
        Insert the income entry of an order unless it already has one.

        Runs as a single ``INSERT ... ON CONFLICT DO NOTHING`` against the
        partial unique index, so concurrent finalizations of the same order
        cannot both insert.

        Returns:
            True if a row was inserted, False if the order already had one

        Raises:
            LedgerError: If the insert fails
        """
        try:
            stmt = (
                insert(FinancialEntry)
                .values(
                    id=uuid.uuid4(),
                    company_id=company_id,
                    order_id=order_id,
                    entry_type=EntryType.INCOME,
                    description=description,
                    amount=amount,
                    entry_date=entry_date,
                    entry_time=entry_time,
                    notes=notes,
                )
                .on_conflict_do_nothing(
                    index_elements=[FinancialEntry.order_id],
                    index_where=ORDER_INCOME_INDEX_WHERE,
                )
                .returning(FinancialEntry.id)
            )

            result = await self.session.execute(stmt)
            created = result.scalar_one_or_none() is not None

            logger.info(
                "Sale entry recorded" if created else "Sale entry already present",
                company_id=str(company_id),
                order_id=str(order_id),
                amount=str(amount),
            )

            return created

        except SQLAlchemyError as e:
            logger.error(
                "Failed to record sale entry",
                order_id=str(order_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise LedgerError(
                "Failed to record sale entry",
                order_id=str(order_id),
                error=str(e),
            ) from e

    async def list_entries(
        self,
        company_id: uuid.UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        entry_type: Optional[EntryType] = None,
    ) -> Sequence[FinancialEntry]:
        """Entries of a company within an inclusive date window, newest first."""
        conditions = [FinancialEntry.company_id == company_id]
        if start_date is not None:
            conditions.append(FinancialEntry.entry_date >= start_date)
        if end_date is not None:
            conditions.append(FinancialEntry.entry_date <= end_date)
        if entry_type is not None:
            conditions.append(FinancialEntry.entry_type == entry_type)

        stmt = (
            select(FinancialEntry)
            .where(and_(*conditions))
            .order_by(
                FinancialEntry.entry_date.desc(),
                FinancialEntry.entry_time.desc().nulls_last(),
            )
        )

        try:
            return (await self.session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to list financial entries",
                company_id=str(company_id),
                error=str(e),
            )
            raise LedgerError(
                "Failed to list financial entries",
                company_id=str(company_id),
                error=str(e),
            ) from e

    async def get_income_entries_for_order(self, order_id: uuid.UUID) -> Sequence[FinancialEntry]:
        stmt = select(FinancialEntry).where(
            and_(
                FinancialEntry.order_id == order_id,
                FinancialEntry.entry_type == EntryType.INCOME,
            )
        )
        return (await self.session.execute(stmt)).scalars().all()
