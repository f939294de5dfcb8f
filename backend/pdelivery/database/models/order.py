"""
Order model for delivery order intake and lifecycle tracking.

This module defines the Order and OrderItem models. Orders carry a
tenant-scoped sequential ``order_number``, the kanban ``status`` and the
priority stamp written by the escalation job. Items snapshot the product
price at intake time and are never modified afterwards.
"""

import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pdelivery.database.base import BaseModel, TenantModel
from pdelivery.database.models.catalog import (
    Customer,
    Neighborhood,
    PaymentMethod,
    Product,
)
from pdelivery.services.orders.enums import OrderStatus


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class Order(TenantModel):
    """
    Customer order moving across the kanban board.

    Attributes:
        id: Unique order identifier (UUID)
        company_id: Owning company
        customer_id: Customer who placed the order
        neighborhood_id: Delivery neighborhood
        payment_method_id: Payment method chosen at intake
        status: Current kanban status
        order_number: Sequential display number within the company
        total_amount: Sum of line items, delivery excluded
        delivery_fee: Delivery fee copied from the neighborhood
        notes: Free-form notes
        cancellation_reason: Set when, and only when, the order is cancelled
        priority_level: Escalation level stamped by the priority job
        priority_label: Escalation label stamped by the priority job
    """

    __tablename__ = "orders"

    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    neighborhood_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("neighborhoods.id", ondelete="RESTRICT"),
        nullable=False,
    )

    payment_method_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("payment_methods.id", ondelete="RESTRICT"),
        nullable=False,
    )

    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(
            OrderStatus,
            name="order_status",
            create_constraint=True,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True,
        comment="Current kanban status",
    )

    order_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Sequential display number within the company",
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="Sum of line items, delivery fee excluded",
    )

    delivery_fee: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        default=Decimal("0.00"),
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    cancellation_reason: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Reason captured when the order is cancelled",
    )

    priority_level: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Escalation level; NULL until the priority job stamps it",
    )

    priority_label: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
    )

    # Relationships
    customer: Mapped[Customer] = relationship("Customer", lazy="selectin")
    neighborhood: Mapped[Neighborhood] = relationship("Neighborhood", lazy="selectin")
    payment_method: Mapped[PaymentMethod] = relationship("PaymentMethod", lazy="selectin")

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("company_id", "order_number", name="uq_orders_company_number"),
        Index("ix_orders_company_status", "company_id", "status"),
        # Priority scan: open orders without a stamp
        Index(
            "ix_orders_unprioritized",
            "status",
            "created_at",
            postgresql_where=text("priority_level IS NULL"),
        ),
        CheckConstraint("total_amount >= 0", name="ck_orders_total_amount_non_negative"),
        CheckConstraint("delivery_fee >= 0", name="ck_orders_delivery_fee_non_negative"),
        CheckConstraint(
            "(status = 'cancelado') = (cancellation_reason IS NOT NULL)",
            name="ck_orders_cancellation_reason",
        ),
    )

    @property
    def total_with_delivery(self) -> Decimal:
        """Amount charged to the customer."""
        return (self.total_amount or Decimal("0.00")) + (self.delivery_fee or Decimal("0.00"))

    @property
    def item_description(self) -> str:
        """Items as ``"2x Açaí 500ml, 1x Água"``."""
        return ", ".join(
            f"{item.quantity}x {item.product.name if item.product else ''}".rstrip()
            for item in self.items
        )

    def __repr__(self) -> str:
        return (
            f"<Order(id={self.id}, order_number={self.order_number}, "
            f"status={self.status.value if self.status else None}, "
            f"total_amount={self.total_amount})>"
        )


class OrderItem(BaseModel):
    """One product line of an order with prices frozen at intake."""

    __tablename__ = "order_items"

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
    )

    total_price: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
    )

    order: Mapped[Order] = relationship("Order", back_populates="items")
    product: Mapped[Product] = relationship("Product", lazy="selectin")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_order_items_unit_price_non_negative"),
    )
