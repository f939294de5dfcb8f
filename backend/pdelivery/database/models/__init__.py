"""
Database models package initialization.

This module exports all database models for SQLAlchemy and Alembic auto-generation.
Models are imported here so they are registered with the Base metadata
for migration generation and relationship resolution.
"""

from pdelivery.database.base import (
    ActiveFlagMixin,
    Base,
    BaseModel,
    CatalogModel,
    TenantMixin,
    TenantModel,
    TimestampMixin,
    UUIDMixin,
)
from pdelivery.database.models.company import Company
from pdelivery.database.models.catalog import (
    Customer,
    Item,
    Neighborhood,
    PaymentMethod,
    Product,
)
from pdelivery.database.models.order import Order, OrderItem
from pdelivery.database.models.financial import (
    BudgetStatus,
    CostCenter,
    ExpenseCategory,
    FinancialEntry,
    PurchaseBudget,
    PurchaseBudgetItem,
)
from pdelivery.database.models.priority import PrioritySetting

__all__ = [
    "ActiveFlagMixin",
    "Base",
    "BaseModel",
    "CatalogModel",
    "TenantMixin",
    "TenantModel",
    "TimestampMixin",
    "UUIDMixin",
    "Company",
    "Customer",
    "Item",
    "Neighborhood",
    "PaymentMethod",
    "Product",
    "Order",
    "OrderItem",
    "BudgetStatus",
    "CostCenter",
    "ExpenseCategory",
    "FinancialEntry",
    "PurchaseBudget",
    "PurchaseBudgetItem",
    "PrioritySetting",
]
