"""
Financial service: manual ledger entries, purchase budgets and the cash flow,
chart of accounts and orders extract views.

Aggregations are plain functions over loaded entries so they can be reused
and tested without a database.
"""

import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pdelivery.core.config import Settings, get_settings
from pdelivery.core.logging import get_logger
from pdelivery.database.models.catalog import Item
from pdelivery.database.models.financial import (
    BudgetStatus,
    CostCenter,
    ExpenseCategory,
    FinancialEntry,
    PurchaseBudget,
    PurchaseBudgetItem,
)
from pdelivery.database.models.order import Order
from pdelivery.services.catalog.repository import EntityNotFoundError, TenantCRUDRepository
from pdelivery.services.financial.repository import LedgerError, LedgerRepository
from pdelivery.services.orders.enums import EntryType
from pdelivery.services.orders.repository import OrderRepository, OrderRepositoryError

logger = get_logger(__name__)

NO_COST_CENTER = "Sem centro de custo"
NO_CATEGORY = "Sem categoria"
ZERO = Decimal("0.00")


class FinancialServiceError(Exception):
    """Base exception for financial service errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class FinancialValidationError(FinancialServiceError):
    """Raised when a financial request is invalid."""

    pass


def _check_window(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date and end_date and start_date > end_date:
        raise FinancialValidationError(
            "start_date must not be after end_date",
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
        )


@dataclass
class CashFlowDay:
    day: date
    income: Decimal = ZERO
    expenses: Decimal = ZERO
    entries: list[FinancialEntry] = field(default_factory=list)

    @property
    def balance(self) -> Decimal:
        return self.income - self.expenses


@dataclass
class CashFlowSummary:
    """Totals and per-day groups of a date window, newest day first."""

    start_date: Optional[date]
    end_date: Optional[date]
    total_income: Decimal = ZERO
    total_expenses: Decimal = ZERO
    days: list[CashFlowDay] = field(default_factory=list)

    @property
    def balance(self) -> Decimal:
        return self.total_income - self.total_expenses


@dataclass
class AccountGroup:
    name: str
    total: Decimal = ZERO
    count: int = 0


@dataclass
class ChartOfAccountsReport:
    """Expense totals grouped by cost center and by expense category."""

    total_income: Decimal = ZERO
    total_expenses: Decimal = ZERO
    by_cost_center: list[AccountGroup] = field(default_factory=list)
    by_category: list[AccountGroup] = field(default_factory=list)

    @property
    def balance(self) -> Decimal:
        return self.total_income - self.total_expenses


def summarize_cash_flow(
    entries: Iterable[FinancialEntry],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> CashFlowSummary:
    """Sum income and expenses and group entries per day, newest first."""
    summary = CashFlowSummary(start_date=start_date, end_date=end_date)
    days: dict[date, CashFlowDay] = {}

    for entry in entries:
        day = days.setdefault(entry.entry_date, CashFlowDay(day=entry.entry_date))
        day.entries.append(entry)
        if entry.entry_type == EntryType.INCOME:
            day.income += entry.amount
            summary.total_income += entry.amount
        else:
            day.expenses += entry.amount
            summary.total_expenses += entry.amount

    summary.days = sorted(days.values(), key=lambda d: d.day, reverse=True)
    return summary


def _group_expenses(
    expenses: Sequence[FinancialEntry],
    label,
) -> list[AccountGroup]:
    groups: dict[str, AccountGroup] = defaultdict(lambda: AccountGroup(name=""))
    for entry in expenses:
        name = label(entry)
        group = groups[name]
        group.name = name
        group.total += entry.amount
        group.count += 1
    return sorted(groups.values(), key=lambda g: (-g.total, g.name))


def build_chart_of_accounts(entries: Iterable[FinancialEntry]) -> ChartOfAccountsReport:
    """Totals plus expenses grouped by cost center and by category name."""
    report = ChartOfAccountsReport()
    expenses = []

    for entry in entries:
        if entry.entry_type == EntryType.INCOME:
            report.total_income += entry.amount
        else:
            report.total_expenses += entry.amount
            expenses.append(entry)

    report.by_cost_center = _group_expenses(
        expenses,
        lambda e: e.cost_center.name if e.cost_center else NO_COST_CENTER,
    )
    report.by_category = _group_expenses(
        expenses,
        lambda e: e.expense_category.name if e.expense_category else NO_CATEGORY,
    )
    return report


@dataclass
class OrderExtractLine:
    """One order of the extract with its production cost and gross profit."""

    order_id: uuid.UUID
    order_number: int
    created_at: datetime
    customer_name: Optional[str]
    items_summary: str
    status: str
    cost: Decimal = ZERO
    revenue: Decimal = ZERO

    @property
    def profit(self) -> Decimal:
        return self.revenue - self.cost


@dataclass
class OrdersExtract:
    """Orders created in a date window, newest first, with period totals."""

    start_date: date
    end_date: date
    lines: list[OrderExtractLine] = field(default_factory=list)
    total_cost: Decimal = ZERO
    total_revenue: Decimal = ZERO

    @property
    def total_profit(self) -> Decimal:
        return self.total_revenue - self.total_cost

    @property
    def order_count(self) -> int:
        return len(self.lines)


def order_production_cost(order: Order) -> Decimal:
    """Sum of product cost price times quantity; products without a cost count as zero."""
    cost = ZERO
    for item in order.items:
        cost_price = item.product.cost_price if item.product is not None else None
        cost += (cost_price or ZERO) * item.quantity
    return cost


def build_orders_extract(
    orders: Iterable[Order],
    start_date: date,
    end_date: date,
) -> OrdersExtract:
    """Cost, revenue and gross profit per order plus the period totals."""
    extract = OrdersExtract(start_date=start_date, end_date=end_date)

    for order in orders:
        line = OrderExtractLine(
            order_id=order.id,
            order_number=order.order_number,
            created_at=order.created_at,
            customer_name=order.customer.name if order.customer is not None else None,
            items_summary=", ".join(
                f"{item.quantity}x {item.product.name if item.product is not None else '?'}"
                for item in order.items
            ),
            status=order.status.value,
            cost=order_production_cost(order),
            revenue=order.total_amount,
        )
        extract.lines.append(line)
        extract.total_cost += line.cost
        extract.total_revenue += line.revenue

    extract.lines.sort(key=lambda line: line.created_at, reverse=True)
    return extract


class FinancialService:
    """
    Financial module orchestration.

    Attributes:
        ledger: Ledger repository for range queries
        entries: Tenant CRUD over financial entries
        budgets: Tenant CRUD over purchase budgets
        orders: Order repository for the orders extract
    """

    def __init__(
        self,
        session: AsyncSession,
        ledger: Optional[LedgerRepository] = None,
        order_repository: Optional[OrderRepository] = None,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.ledger = ledger or LedgerRepository(session)
        self.orders = order_repository or OrderRepository(session)
        self.entries = TenantCRUDRepository(session, FinancialEntry)
        self.cost_centers = TenantCRUDRepository(session, CostCenter)
        self.categories = TenantCRUDRepository(session, ExpenseCategory)
        self.budgets = TenantCRUDRepository(session, PurchaseBudget)
        self.items = TenantCRUDRepository(session, Item)

    async def cash_flow(
        self,
        company_id: uuid.UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> CashFlowSummary:
        """
        Cash flow of a company within an inclusive date window.

        Raises:
            FinancialValidationError: If the window is inverted
        """
        _check_window(start_date, end_date)

        entries = await self.ledger.list_entries(company_id, start_date, end_date)
        summary = summarize_cash_flow(entries, start_date, end_date)

        logger.debug(
            "Cash flow computed",
            company_id=str(company_id),
            entry_count=len(entries),
            balance=str(summary.balance),
        )

        return summary

    async def chart_of_accounts_report(
        self,
        company_id: uuid.UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> ChartOfAccountsReport:
        _check_window(start_date, end_date)
        entries = await self.ledger.list_entries(company_id, start_date, end_date)
        return build_chart_of_accounts(entries)

    async def orders_extract(
        self,
        company_id: uuid.UUID,
        start_date: date,
        end_date: date,
    ) -> OrdersExtract:
        """
        Orders created between two business days, both inclusive.

        Days are taken in the business timezone, so an order placed late in
        the evening counts on the local day it was placed.

        Raises:
            FinancialValidationError: If the window is inverted
            FinancialServiceError: If the orders cannot be read
        """
        _check_window(start_date, end_date)

        tz = self.settings.tz
        start = datetime.combine(start_date, time.min, tzinfo=tz)
        end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=tz)

        try:
            orders = await self.orders.list_orders_created_between(company_id, start, end)
        except OrderRepositoryError as e:
            raise FinancialServiceError(
                "Failed to read orders for the extract",
                company_id=str(company_id),
                error=str(e),
            ) from e

        extract = build_orders_extract(orders, start_date, end_date)

        logger.debug(
            "Orders extract computed",
            company_id=str(company_id),
            order_count=extract.order_count,
            total_profit=str(extract.total_profit),
        )

        return extract

    async def create_entry(self, company_id: uuid.UUID, **values: Any) -> FinancialEntry:
        """
        Record a manual income or expense entry.

        Raises:
            FinancialValidationError: If a referenced cost center or category
                is not one of the company's
        """
        await self._check_references(company_id, values)

        try:
            entry = await self.entries.create(company_id, **values)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise FinancialServiceError(
                "Failed to create financial entry",
                company_id=str(company_id),
                error=str(e),
            ) from e

        logger.info(
            "Financial entry created",
            entry_id=str(entry.id),
            entry_type=entry.entry_type.value,
            amount=str(entry.amount),
        )
        return entry

    async def update_entry(
        self,
        company_id: uuid.UUID,
        entry_id: uuid.UUID,
        **values: Any,
    ) -> FinancialEntry:
        await self._check_references(company_id, values)
        entry = await self.entries.update(company_id, entry_id, **values)
        await self.session.commit()
        return entry

    async def delete_entry(self, company_id: uuid.UUID, entry_id: uuid.UUID) -> None:
        await self.entries.delete(company_id, entry_id)
        await self.session.commit()

    async def create_budget(
        self,
        company_id: uuid.UUID,
        name: str,
        description: Optional[str] = None,
        budget_date: Optional[date] = None,
        items: Sequence[dict[str, Any]] = (),
    ) -> PurchaseBudget:
        """Create a purchase budget with its items; the total is their sum."""
        values: dict[str, Any] = {"name": name, "description": description}
        if budget_date is not None:
            values["budget_date"] = budget_date

        budget = await self.budgets.create(company_id, **values)
        for item_values in items:
            await self._add_item(company_id, budget, item_values)

        await self.session.flush()
        await self.session.refresh(budget, ["items"])
        budget.recalculate_total()
        await self.session.commit()

        logger.info(
            "Purchase budget created",
            budget_id=str(budget.id),
            item_count=len(budget.items),
            total_amount=str(budget.total_amount),
        )
        return budget

    async def add_budget_item(
        self,
        company_id: uuid.UUID,
        budget_id: uuid.UUID,
        item_values: dict[str, Any],
    ) -> PurchaseBudget:
        """Add one line to a budget and recompute its total."""
        budget = await self.budgets.get_or_raise(company_id, budget_id)
        await self._add_item(company_id, budget, item_values)

        await self.session.flush()
        await self.session.refresh(budget, ["items"])
        budget.recalculate_total()
        await self.session.commit()
        return budget

    async def remove_budget_item(
        self,
        company_id: uuid.UUID,
        budget_id: uuid.UUID,
        budget_item_id: uuid.UUID,
    ) -> PurchaseBudget:
        """Remove one line from a budget and recompute its total."""
        budget = await self.budgets.get_or_raise(company_id, budget_id)

        line = next((i for i in budget.items if i.id == budget_item_id), None)
        if line is None:
            raise EntityNotFoundError(
                "PurchaseBudgetItem not found",
                entity="PurchaseBudgetItem",
                entity_id=str(budget_item_id),
            )

        budget.items.remove(line)
        budget.recalculate_total()
        await self.session.commit()
        return budget

    async def set_budget_status(
        self,
        company_id: uuid.UUID,
        budget_id: uuid.UUID,
        status: BudgetStatus,
    ) -> PurchaseBudget:
        budget = await self.budgets.update(company_id, budget_id, status=status)
        await self.session.commit()
        return budget

    async def delete_budget(self, company_id: uuid.UUID, budget_id: uuid.UUID) -> None:
        await self.budgets.delete(company_id, budget_id)
        await self.session.commit()

    async def _add_item(
        self,
        company_id: uuid.UUID,
        budget: PurchaseBudget,
        item_values: dict[str, Any],
    ) -> PurchaseBudgetItem:
        item_id = item_values.get("item_id")
        if item_id is not None and await self.items.get(company_id, item_id) is None:
            raise FinancialValidationError("Item not found", item_id=str(item_id))

        quantity = Decimal(str(item_values["quantity"]))
        unit_price = Decimal(str(item_values["unit_price"]))

        line = PurchaseBudgetItem(
            budget_id=budget.id,
            item_id=item_id,
            description=item_values["description"],
            quantity=quantity,
            unit_price=unit_price,
            subtotal=(quantity * unit_price).quantize(Decimal("0.01")),
            notes=item_values.get("notes"),
        )
        self.session.add(line)
        return line

    async def _check_references(self, company_id: uuid.UUID, values: dict[str, Any]) -> None:
        checks = (
            ("cost_center_id", self.cost_centers),
            ("expense_category_id", self.categories),
        )
        for field_name, repository in checks:
            ref_id = values.get(field_name)
            if ref_id is not None and await repository.get(company_id, ref_id) is None:
                raise FinancialValidationError(
                    f"{repository.entity_name} not found",
                    **{field_name: str(ref_id)},
                )


__all__ = [
    "AccountGroup",
    "CashFlowDay",
    "CashFlowSummary",
    "ChartOfAccountsReport",
    "FinancialService",
    "FinancialServiceError",
    "FinancialValidationError",
    "LedgerError",
    "build_chart_of_accounts",
    "summarize_cash_flow",
]
