"""
Catalog models: customers, neighborhoods, payment methods, products and items.

These are plain tenant-scoped reference tables with an ``active`` flag for
soft deletion. Orders snapshot prices from products at intake time, so
editing a product never changes historical orders.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pdelivery.database.base import CatalogModel


class Neighborhood(CatalogModel):
    """Delivery area with its delivery fee."""

    __tablename__ = "neighborhoods"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    delivery_fee: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Fee charged for deliveries to this neighborhood",
    )

    __table_args__ = (
        CheckConstraint("delivery_fee >= 0", name="ck_neighborhoods_fee_non_negative"),
    )


class PaymentMethod(CatalogModel):
    """Accepted payment method (PIX, cartão, dinheiro...)."""

    __tablename__ = "payment_methods"

    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Customer(CatalogModel):
    """Customer placing delivery orders."""

    __tablename__ = "customers"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    phone: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="Contact phone, used by the notification workflow",
    )

    neighborhood_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("neighborhoods.id", ondelete="SET NULL"),
        nullable=True,
    )

    last_order_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    last_order_details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    neighborhood: Mapped[Optional[Neighborhood]] = relationship(
        "Neighborhood",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_customers_company_phone", "company_id", "phone"),
    )


class Product(CatalogModel):
    """Sellable product."""

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    price: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="Current sale price",
    )

    cost_price: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
    )


class Item(CatalogModel):
    """Raw material or stock item used to compose products and budgets."""

    __tablename__ = "items"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="geral")

    price: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        default=Decimal("0.00"),
    )

