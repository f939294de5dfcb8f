"""
Financial Pydantic schemas.

Ledger entries, cost centers, expense categories, purchase budgets and the
cash flow and chart of accounts views.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from pdelivery.database.models.financial import BudgetStatus
from pdelivery.services.orders.enums import EntryType


class CostCenterCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)


class CostCenterUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    active: Optional[bool] = None


class CostCenterResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    name: str
    description: Optional[str] = None
    active: bool
    created_at: datetime
    updated_at: datetime


class ExpenseCategoryCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    cost_center_id: Optional[UUID] = None


class ExpenseCategoryUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    cost_center_id: Optional[UUID] = None
    active: Optional[bool] = None


class ExpenseCategoryResponse(CostCenterResponse):
    cost_center_id: Optional[UUID] = None


class FinancialEntryCreate(BaseModel):
    """Request schema for a manual income or expense entry."""

    model_config = ConfigDict(str_strip_whitespace=True)

    entry_type: EntryType
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    entry_date: date
    entry_time: Optional[time] = None
    cost_center_id: Optional[UUID] = None
    expense_category_id: Optional[UUID] = None
    notes: Optional[str] = Field(None, max_length=2000)


class FinancialEntryUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    entry_type: Optional[EntryType] = None
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    entry_date: Optional[date] = None
    entry_time: Optional[time] = None
    cost_center_id: Optional[UUID] = None
    expense_category_id: Optional[UUID] = None
    notes: Optional[str] = Field(None, max_length=2000)


class FinancialEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    entry_type: EntryType
    description: str
    amount: Decimal
    entry_date: date
    entry_time: Optional[time] = None
    order_id: Optional[UUID] = None
    cost_center_id: Optional[UUID] = None
    expense_category_id: Optional[UUID] = None
    notes: Optional[str] = None
    created_at: datetime


class BudgetItemCreate(BaseModel):
    """One line of a purchase budget."""

    model_config = ConfigDict(str_strip_whitespace=True)

    item_id: Optional[UUID] = Field(None, description="Stock item, if any")
    description: str = Field(..., min_length=1, max_length=500)
    quantity: Decimal = Field(..., gt=0, decimal_places=3)
    unit_price: Decimal = Field(..., ge=0, decimal_places=2)
    notes: Optional[str] = Field(None, max_length=1000)


class BudgetItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    item_id: Optional[UUID] = None
    description: str
    quantity: Decimal
    unit_price: Decimal
    subtotal: Decimal
    notes: Optional[str] = None


class PurchaseBudgetCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    budget_date: Optional[date] = None
    items: list[BudgetItemCreate] = Field(default_factory=list, max_length=200)


class BudgetStatusUpdate(BaseModel):
    status: BudgetStatus


class PurchaseBudgetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    name: str
    description: Optional[str] = None
    budget_date: date
    status: BudgetStatus
    total_amount: Decimal
    items: list[BudgetItemResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class CashFlowDayResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day: date
    income: Decimal
    expenses: Decimal
    balance: Decimal
    entries: list[FinancialEntryResponse]


class CashFlowResponse(BaseModel):
    """Cash flow of a date window, newest day first."""

    model_config = ConfigDict(from_attributes=True)

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    total_income: Decimal
    total_expenses: Decimal
    balance: Decimal
    days: list[CashFlowDayResponse]


class AccountGroupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    total: Decimal
    count: int


class ChartOfAccountsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_income: Decimal
    total_expenses: Decimal
    balance: Decimal
    by_cost_center: list[AccountGroupResponse]
    by_category: list[AccountGroupResponse]


class OrderExtractLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: UUID
    order_number: int
    created_at: datetime
    customer_name: Optional[str] = None
    items_summary: str
    status: str
    cost: Decimal
    revenue: Decimal
    profit: Decimal


class OrdersExtractResponse(BaseModel):
    """Orders of a date window with production cost, revenue and gross profit."""

    model_config = ConfigDict(from_attributes=True)

    start_date: date
    end_date: date
    order_count: int
    total_cost: Decimal
    total_revenue: Decimal
    total_profit: Decimal
    orders: list[OrderExtractLineResponse] = Field(validation_alias="lines")
