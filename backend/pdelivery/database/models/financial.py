"""
Financial models: ledger entries, cost centers, expense categories and
purchase budgets.

The ledger is append-only from the order lifecycle's point of view: an
order reaching ``finalizado`` produces at most one income entry, enforced
by a partial unique index on ``order_id``.
"""

import uuid
from datetime import date, time
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    Time,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pdelivery.database.base import BaseModel, CatalogModel, TenantModel
from pdelivery.database.models.catalog import Item
from pdelivery.services.orders.enums import EntryType


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class BudgetStatus(str, Enum):
    """Purchase budget approval status."""

    DRAFT = "draft"
    APPROVED = "approved"
    REJECTED = "rejected"


class CostCenter(CatalogModel):
    """Cost center used to group expenses in the chart of accounts."""

    __tablename__ = "cost_centers"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class ExpenseCategory(CatalogModel):
    """Expense category used to group expenses in the chart of accounts."""

    __tablename__ = "expense_categories"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    cost_center_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("cost_centers.id", ondelete="SET NULL"),
        nullable=True,
    )

    cost_center: Mapped[Optional[CostCenter]] = relationship("CostCenter", lazy="selectin")


class FinancialEntry(TenantModel):
    """
    Ledger line, either income or expense.

    Automatic sale entries reference the finalized order through
    ``order_id``; manual entries leave it empty.

    Attributes:
        entry_type: income or expense
        description: Human readable description
        amount: Positive amount
        entry_date: Business date in the configured timezone
        entry_time: Business wall clock time in the configured timezone
        order_id: Source order for automatic sale entries
        cost_center_id: Optional cost center (expenses)
        expense_category_id: Optional category (expenses)
        notes: Free-form notes
    """

    __tablename__ = "financial_entries"

    entry_type: Mapped[EntryType] = mapped_column(
        SQLEnum(
            EntryType,
            name="entry_type",
            create_constraint=True,
            values_callable=_enum_values,
        ),
        nullable=False,
        index=True,
    )

    description: Mapped[str] = mapped_column(String(500), nullable=False)

    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
    )

    entry_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    entry_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)

    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="SET NULL"),
        nullable=True,
    )

    cost_center_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("cost_centers.id", ondelete="SET NULL"),
        nullable=True,
    )

    expense_category_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("expense_categories.id", ondelete="SET NULL"),
        nullable=True,
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    cost_center: Mapped[Optional[CostCenter]] = relationship(
        "CostCenter", lazy="selectin"
    )
    expense_category: Mapped[Optional[ExpenseCategory]] = relationship(
        "ExpenseCategory", lazy="selectin"
    )

    __table_args__ = (
        # At most one automatic income entry per order
        Index(
            "uq_financial_entries_order_income",
            "order_id",
            unique=True,
            postgresql_where=text("entry_type = 'income' AND order_id IS NOT NULL"),
        ),
        Index("ix_financial_entries_company_date", "company_id", "entry_date"),
        CheckConstraint("amount >= 0", name="ck_financial_entries_amount_non_negative"),
    )

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.entry_type == EntryType.INCOME else -self.amount


class PurchaseBudget(TenantModel):
    """Purchase budget grouping stock items to buy."""

    __tablename__ = "purchase_budgets"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    budget_date: Mapped[date] = mapped_column(Date, nullable=False, server_default=func.current_date())

    status: Mapped[BudgetStatus] = mapped_column(
        SQLEnum(
            BudgetStatus,
            name="budget_status",
            create_constraint=True,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=BudgetStatus.DRAFT,
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Sum of item subtotals",
    )

    items: Mapped[list["PurchaseBudgetItem"]] = relationship(
        "PurchaseBudgetItem",
        back_populates="budget",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def recalculate_total(self) -> Decimal:
        """Recompute ``total_amount`` from the current items."""
        self.total_amount = sum(
            (item.subtotal for item in self.items), Decimal("0.00")
        )
        return self.total_amount


class PurchaseBudgetItem(BaseModel):
    """One line of a purchase budget, optionally linked to a stock item."""

    __tablename__ = "purchase_budget_items"

    budget_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("purchase_budgets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    item_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("items.id", ondelete="SET NULL"),
        nullable=True,
    )

    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=3), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="quantity x unit_price",
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    budget: Mapped[PurchaseBudget] = relationship("PurchaseBudget", back_populates="items")
    item: Mapped[Optional[Item]] = relationship("Item", lazy="selectin")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_purchase_budget_items_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_purchase_budget_items_unit_price"),
    )
