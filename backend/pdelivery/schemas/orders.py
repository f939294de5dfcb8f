"""
Order Pydantic schemas for API request/response validation.

This module defines the schemas for order intake, status changes, bulk
finalization and order responses with their nested references.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from pdelivery.services.orders.enums import OrderStatus


class OrderItemRequest(BaseModel):
    """Order item details."""

    model_config = ConfigDict(validate_assignment=True)

    product_id: UUID = Field(
        ...,
        description="Product ID",
    )
    quantity: int = Field(
        default=1,
        ge=1,
        le=1000,
        description="Quantity",
    )


class OrderCreateRequest(BaseModel):
    """Request schema for creating a new order."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    customer_id: UUID = Field(..., description="Customer placing the order")
    neighborhood_id: UUID = Field(..., description="Delivery neighborhood")
    payment_method_id: UUID = Field(..., description="Payment method")
    items: list[OrderItemRequest] = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Order items",
    )
    notes: Optional[str] = Field(
        None,
        max_length=1000,
        description="Order notes",
    )


class OrderStatusUpdate(BaseModel):
    """Request schema for moving an order to another status."""

    model_config = ConfigDict(validate_assignment=True)

    status: OrderStatus = Field(
        ...,
        description="New order status",
    )
    reason: Optional[str] = Field(
        None,
        max_length=500,
        description="Cancellation reason, required when status is cancelado",
    )

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        """Accept status values regardless of case and surrounding spaces."""
        if isinstance(v, str):
            return OrderStatus.from_string(v)
        return v


class BulkFinalizeRequest(BaseModel):
    """Request schema for finalizing several orders at once."""

    order_ids: list[UUID] = Field(
        ...,
        max_length=500,
        description="Orders to finalize; duplicates are ignored",
    )


class NamedReference(BaseModel):
    """Id and display name of a referenced row."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str


class CustomerReference(NamedReference):
    """Customer reference with contact phone."""

    phone: str


class OrderItemResponse(BaseModel):
    """Order item response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    product: Optional[NamedReference] = None
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class OrderResponse(BaseModel):
    """Order response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    order_number: int
    status: OrderStatus
    customer: Optional[CustomerReference] = None
    neighborhood: Optional[NamedReference] = None
    payment_method: Optional[NamedReference] = None
    total_amount: Decimal
    delivery_fee: Decimal
    total_with_delivery: Decimal
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    priority_level: Optional[int] = None
    priority_label: Optional[str] = None
    items: list[OrderItemResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class OrderListResponse(BaseModel):
    """Paginated list of orders."""

    orders: list[OrderResponse]
    total: int
    skip: int
    limit: int


class BulkFinalizeResponse(BaseModel):
    """Outcome of a bulk finalization."""

    finalized_ids: list[UUID]
    finalized_count: int
    entries_created: int
