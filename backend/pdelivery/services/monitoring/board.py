"""
Kanban board controller for order monitoring.

The board owns no business rule: it partitions orders into the six fixed
status columns and turns card moves and multi-select finalization into calls
on the order service.
"""

import uuid
from typing import Iterable, Optional, Sequence

from pdelivery.core.logging import get_logger
from pdelivery.database.models.order import Order
from pdelivery.services.orders.enums import BOARD_COLUMNS, OrderStatus
from pdelivery.services.orders.service import (
    BulkFinalizeResult,
    OrderService,
    OrderValidationError,
)

logger = get_logger(__name__)


def build_board(orders: Iterable[Order]) -> dict[OrderStatus, list[Order]]:
    """
    Partition orders into the board columns.

    Every column is present, in board order, even when empty. Within a
    column orders keep their input order.
    """
    board: dict[OrderStatus, list[Order]] = {status: [] for status in BOARD_COLUMNS}
    for order in orders:
        board[order.status].append(order)
    return board


class KanbanBoard:
    """Drag-and-drop controller over the order service."""

    def __init__(self, order_service: OrderService):
        self.order_service = order_service

    async def load(self, company_id: uuid.UUID) -> dict[OrderStatus, list[Order]]:
        orders = await self.order_service.list_board_orders(company_id)
        return build_board(orders)

    async def move_card(
        self,
        company_id: uuid.UUID,
        order_id: uuid.UUID,
        source_status: OrderStatus,
        destination_status: OrderStatus,
        reason: Optional[str] = None,
    ) -> Optional[Order]:
        """
        Handle a card dropped on a column.

        Dropping a card on its own column does nothing and touches no
        storage.

        Returns:
            The updated order, or None for a drop on the same column
        """
        if source_status == destination_status:
            logger.debug(
                "Card dropped on its own column",
                order_id=str(order_id),
                status=source_status.value,
            )
            return None

        return await self.order_service.transition_order(
            company_id,
            order_id,
            destination_status,
            reason=reason,
        )

    async def finalize_selected(
        self,
        company_id: uuid.UUID,
        selected_ids: Sequence[uuid.UUID],
    ) -> BulkFinalizeResult:
        """
        Finalize the selected cards.

        Raises:
            OrderValidationError: If nothing is selected
        """
        if not selected_ids:
            raise OrderValidationError("Select at least one order to finalize")

        return await self.order_service.bulk_finalize(company_id, selected_ids)
