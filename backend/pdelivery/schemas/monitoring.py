"""Kanban board schemas."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from pdelivery.schemas.orders import OrderResponse
from pdelivery.services.orders.enums import OrderStatus


class BoardColumn(BaseModel):
    """One status column of the board."""

    status: OrderStatus
    title: str
    count: int
    orders: list[OrderResponse]


class BoardResponse(BaseModel):
    """Board with its six columns in display order."""

    columns: list[BoardColumn]
    total: int


class MoveCardRequest(BaseModel):
    """A card dragged from one column to another."""

    order_id: UUID = Field(..., description="Order on the dragged card")
    source_status: OrderStatus = Field(..., description="Column the card was dragged from")
    destination_status: OrderStatus = Field(..., description="Column the card was dropped on")
    reason: Optional[str] = Field(
        None,
        max_length=500,
        description="Cancellation reason when dropped on cancelado",
    )


class MoveCardResponse(BaseModel):
    """Result of a card move; ``moved`` is false for a drop on the same column."""

    moved: bool
    order: Optional[OrderResponse] = None


class FinalizeSelectedRequest(BaseModel):
    """Cards selected for finalization."""

    order_ids: list[UUID] = Field(..., max_length=500)
