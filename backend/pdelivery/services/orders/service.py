"""
Order service orchestrating order intake and the order lifecycle.

This module implements the OrderService class: order creation with price
snapshots and sequential numbering, tenant-checked status transitions through
the state machine, bulk finalization, and the webhook notification that
follows every committed status write.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pdelivery.core.config import Settings, get_settings
from pdelivery.core.logging import get_logger
from pdelivery.database.models.catalog import (
    Customer,
    Neighborhood,
    PaymentMethod,
    Product,
)
from pdelivery.database.models.order import Order
from pdelivery.services.catalog.repository import TenantCRUDRepository
from pdelivery.services.financial.repository import LedgerError
from pdelivery.services.notifications.relay import NotificationRelay
from pdelivery.services.orders.enums import OrderStatus
from pdelivery.services.orders.repository import (
    CompanyNotFoundError,
    OrderAccessDeniedError,
    OrderNotFoundError,
    OrderRepository,
    OrderRepositoryError,
)
from pdelivery.services.orders.state_machine import (
    BULK_SALE_ENTRY_NOTES,
    OrderStateMachine,
    StateTransitionError,
    TransitionGuardError,
)

logger = get_logger(__name__)


class OrderServiceError(Exception):
    """Base exception for order service errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class OrderValidationError(OrderServiceError):
    """Raised when order validation fails."""

    pass


class OrderProcessingError(OrderServiceError):
    """Raised when order processing fails."""

    pass


@dataclass
class BulkFinalizeResult:
    """Outcome of a bulk finalization."""

    finalized_ids: list[uuid.UUID] = field(default_factory=list)
    entries_created: int = 0


class OrderService:
    """
    Order service orchestrating business logic and notifications.

    Attributes:
        repository: Order repository for data access
        state_machine: State machine for order lifecycle management
        notifier: Optional webhook relay informed after each committed write
    """

    def __init__(
        self,
        session: AsyncSession,
        notifier: Optional[NotificationRelay] = None,
        settings: Optional[Settings] = None,
        repository: Optional[OrderRepository] = None,
        state_machine: Optional[OrderStateMachine] = None,
    ):
        """
        Initialize order service.

        Args:
            session: Async database session
            notifier: Optional notification relay
            settings: Optional settings override
            repository: Optional order repository override
            state_machine: Optional state machine override
        """
        self.session = session
        self.settings = settings or get_settings()
        self.repository = repository or OrderRepository(session)
        self.state_machine = state_machine or OrderStateMachine(
            session,
            order_repository=self.repository,
            settings=self.settings,
        )
        self.notifier = notifier

        self.customers = TenantCRUDRepository(session, Customer)
        self.neighborhoods = TenantCRUDRepository(session, Neighborhood)
        self.payment_methods = TenantCRUDRepository(session, PaymentMethod)
        self.products = TenantCRUDRepository(session, Product)

    async def create_order(
        self,
        company_id: uuid.UUID,
        customer_id: uuid.UUID,
        neighborhood_id: uuid.UUID,
        payment_method_id: uuid.UUID,
        items: Sequence[dict[str, Any]],
        notes: Optional[str] = None,
    ) -> Order:
        """
        Create new order with validation and price snapshots.

        Args:
            company_id: Caller's company
            customer_id: Customer placing the order
            neighborhood_id: Delivery neighborhood, source of the delivery fee
            payment_method_id: Payment method
            items: Dicts with product_id and quantity
            notes: Optional order notes

        Returns:
            Created order

        Raises:
            OrderValidationError: If a reference is missing, inactive or
                belongs to another company, an item is invalid, or the
                company has no registered row
            OrderProcessingError: If order creation fails
        """
        logger.info(
            "Creating order",
            company_id=str(company_id),
            customer_id=str(customer_id),
            item_count=len(items),
        )

        if not items:
            raise OrderValidationError("Order must contain at least one item")

        for item in items:
            if int(item.get("quantity", 0)) < 1:
                raise OrderValidationError(
                    "Item quantity must be at least 1",
                    product_id=str(item.get("product_id")),
                )

        customer = await self._require_active(self.customers, company_id, customer_id)
        neighborhood = await self._require_active(self.neighborhoods, company_id, neighborhood_id)
        await self._require_active(self.payment_methods, company_id, payment_method_id)

        product_ids = list(dict.fromkeys(item["product_id"] for item in items))
        products = await self.products.get_many(company_id, product_ids)

        line_items = []
        for item in items:
            product = products.get(item["product_id"])
            if product is None or not product.active:
                raise OrderValidationError(
                    "Product not found or inactive",
                    product_id=str(item["product_id"]),
                )
            line_items.append(
                {
                    "product_id": product.id,
                    "quantity": int(item["quantity"]),
                    "unit_price": product.price,
                }
            )

        total_amount = sum(
            (line["quantity"] * line["unit_price"] for line in line_items),
            Decimal("0.00"),
        )
        description = ", ".join(
            f"{line['quantity']}x {products[line['product_id']].name}" for line in line_items
        )

        try:
            order_number = await self.repository.next_order_number(company_id)
            order = await self.repository.create_order_with_items(
                company_id=company_id,
                customer_id=customer_id,
                neighborhood_id=neighborhood_id,
                payment_method_id=payment_method_id,
                order_number=order_number,
                total_amount=total_amount,
                delivery_fee=neighborhood.delivery_fee,
                items=line_items,
                notes=notes,
            )

            customer.last_order_date = datetime.now(timezone.utc)
            customer.last_order_details = description

            await self.session.commit()

        except CompanyNotFoundError as e:
            await self.session.rollback()
            logger.warning("Order intake for unprovisioned company", company_id=str(company_id))
            raise OrderValidationError(
                "Company is not registered",
                company_id=str(company_id),
            ) from e

        except (OrderRepositoryError, SQLAlchemyError) as e:
            await self.session.rollback()
            logger.error(
                "Order creation failed",
                company_id=str(company_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise OrderProcessingError(
                "Failed to create order",
                company_id=str(company_id),
                error=str(e),
            ) from e

        logger.info(
            "Order created successfully",
            order_id=str(order.id),
            order_number=order.order_number,
            total_amount=str(total_amount),
        )

        self._notify(order)
        return order

    async def get_order(self, company_id: uuid.UUID, order_id: uuid.UUID) -> Order:
        """
        Get an order of the caller's company.

        Raises:
            OrderNotFoundError: If order not found
            OrderAccessDeniedError: If order belongs to another company
        """
        return await self._load_owned_order(company_id, order_id)

    async def list_orders(
        self,
        company_id: uuid.UUID,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[Sequence[Order], int]:
        """List orders of the caller's company, newest first."""
        return await self.repository.list_orders(company_id, status=status, skip=skip, limit=limit)

    async def list_board_orders(self, company_id: uuid.UUID) -> Sequence[Order]:
        return await self.repository.list_board_orders(company_id)

    async def transition_order(
        self,
        company_id: uuid.UUID,
        order_id: uuid.UUID,
        new_status: OrderStatus,
        reason: Optional[str] = None,
    ) -> Order:
        """
        Move an order to ``new_status``.

        Finalizing an order that was not finalized yet records its sale in
        the ledger in the same transaction as the status write.

        Args:
            company_id: Caller's company
            order_id: Order identifier
            new_status: Target status
            reason: Cancellation reason, required for ``cancelado``

        Returns:
            Updated order

        Raises:
            OrderNotFoundError: If order not found
            OrderAccessDeniedError: If order belongs to another company
            OrderValidationError: If a cancellation has no reason
            StateTransitionError: If the transition table forbids the move
            OrderProcessingError: If the status or ledger write fails
        """
        logger.info(
            "Updating order status",
            order_id=str(order_id),
            new_status=new_status.value,
        )

        order = await self._load_owned_order(company_id, order_id)

        try:
            result = await self.state_machine.apply_transition(order, new_status, reason)

        except TransitionGuardError as e:
            logger.warning(
                "Transition guard rejected status change",
                order_id=str(order_id),
                current_status=e.current_state.value,
                target_status=e.target_state.value,
            )
            raise OrderValidationError(
                "A cancellation reason is required",
                order_id=str(order_id),
                target_status=e.target_state.value,
            ) from e

        except StateTransitionError as e:
            logger.warning(
                "Invalid state transition",
                order_id=str(order_id),
                current_status=e.current_state.value,
                target_status=e.target_state.value,
            )
            raise

        except (LedgerError, OrderRepositoryError, SQLAlchemyError) as e:
            raise OrderProcessingError(
                "Failed to update order status",
                order_id=str(order_id),
                target_status=new_status.value,
                error=str(e),
            ) from e

        logger.info(
            "Order status updated successfully",
            order_id=str(order_id),
            previous_status=result.previous_status.value,
            new_status=new_status.value,
            ledger_entry_created=result.ledger_entry_created,
        )

        self._notify(result.order)
        return result.order

    async def bulk_finalize(
        self,
        company_id: uuid.UUID,
        order_ids: Sequence[uuid.UUID],
    ) -> BulkFinalizeResult:
        """
        Finalize several orders in one transaction.

        Every order is validated before anything is written. Sale entries
        are recorded for the orders that were not finalized before the call,
        then one statement moves all of them to ``finalizado``. Every order of
        the batch is announced to the webhook, like any other status write.

        Raises:
            OrderValidationError: If no order id is given
            OrderNotFoundError: If an order does not exist
            OrderAccessDeniedError: If an order belongs to another company
            StateTransitionError: If an order cannot be finalized
            OrderProcessingError: If a write fails; nothing is kept
        """
        unique_ids = list(dict.fromkeys(order_ids))
        if not unique_ids:
            raise OrderValidationError("At least one order must be selected")

        logger.info(
            "Finalizing orders in batch",
            company_id=str(company_id),
            order_count=len(unique_ids),
        )

        found = {order.id: order for order in await self.repository.get_orders_by_ids(unique_ids)}

        missing = [str(order_id) for order_id in unique_ids if order_id not in found]
        if missing:
            raise OrderNotFoundError("Order not found", order_ids=missing)

        orders = [found[order_id] for order_id in unique_ids]
        foreign = [str(order.id) for order in orders if order.company_id != company_id]
        if foreign:
            raise OrderAccessDeniedError(
                "Order belongs to another company",
                order_ids=foreign,
            )

        for order in orders:
            self.state_machine.validate_transition(order, OrderStatus.FINALIZADO)

        previous_statuses = {order.id: order.status for order in orders}
        entries_created = 0

        try:
            for order in orders:
                created = await self.state_machine.record_sale(
                    order,
                    previous_statuses[order.id],
                    notes=BULK_SALE_ENTRY_NOTES,
                )
                if created:
                    entries_created += 1

            await self.repository.bulk_update_status(
                company_id,
                unique_ids,
                OrderStatus.FINALIZADO,
            )
            await self.session.commit()

        except (LedgerError, OrderRepositoryError, SQLAlchemyError) as e:
            await self.session.rollback()
            logger.error(
                "Bulk finalization failed",
                company_id=str(company_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise OrderProcessingError(
                "Failed to finalize orders",
                company_id=str(company_id),
                error=str(e),
            ) from e

        logger.info(
            "Orders finalized in batch",
            company_id=str(company_id),
            finalized=len(unique_ids),
            entries_created=entries_created,
        )

        for order in orders:
            self._notify(order)

        return BulkFinalizeResult(finalized_ids=unique_ids, entries_created=entries_created)

    async def delete_order(self, company_id: uuid.UUID, order_id: uuid.UUID) -> None:
        """
        Hard delete an order of the caller's company with its items.

        Raises:
            OrderNotFoundError: If order not found
            OrderAccessDeniedError: If order belongs to another company
            OrderProcessingError: If the delete fails
        """
        order = await self._load_owned_order(company_id, order_id)

        try:
            await self.repository.delete_order(order)
            await self.session.commit()
        except (OrderRepositoryError, SQLAlchemyError) as e:
            await self.session.rollback()
            raise OrderProcessingError(
                "Failed to delete order",
                order_id=str(order_id),
                error=str(e),
            ) from e

    async def _load_owned_order(self, company_id: uuid.UUID, order_id: uuid.UUID) -> Order:
        order = await self.repository.get_order_by_id(order_id)
        if order is None:
            raise OrderNotFoundError("Order not found", order_id=str(order_id))

        if order.company_id != company_id:
            logger.warning(
                "Order access denied",
                order_id=str(order_id),
                company_id=str(company_id),
            )
            raise OrderAccessDeniedError(
                "Order belongs to another company",
                order_id=str(order_id),
            )

        return order

    async def _require_active(
        self,
        repository: TenantCRUDRepository,
        company_id: uuid.UUID,
        entity_id: uuid.UUID,
    ) -> Any:
        entity = await repository.get(company_id, entity_id)
        if entity is None or not entity.active:
            raise OrderValidationError(
                f"{repository.entity_name} not found or inactive",
                entity_id=str(entity_id),
            )
        return entity

    def _notify(self, order: Order) -> None:
        if self.notifier is not None:
            self.notifier.notify_order(order)
