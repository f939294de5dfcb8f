"""
Order data access repository.

This module implements the OrderRepository class providing async methods for
creating orders with items, changing order status one at a time or in a
batch, listing orders for the board and the priority scan, and deleting
orders. Tenant ownership is not filtered here for single-order lookups: the
service checks it explicitly so that a foreign order is reported as an access
error rather than as missing.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pdelivery.core.logging import get_logger
from pdelivery.database.models.company import Company
from pdelivery.database.models.order import Order, OrderItem
from pdelivery.services.orders.enums import OPEN_ORDER_STATUSES, OrderStatus

logger = get_logger(__name__)


class OrderRepositoryError(Exception):
    """Base exception for order repository errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class OrderNotFoundError(OrderRepositoryError):
    """Raised when order is not found."""

    pass


class OrderAccessDeniedError(OrderRepositoryError):
    """Raised when an order belongs to another company."""

    pass


class CompanyNotFoundError(OrderRepositoryError):
    """Raised when the caller's company has no row to number orders against."""

    pass


class OrderCreationError(OrderRepositoryError):
    """Raised when order creation fails."""

    pass


class OrderUpdateError(OrderRepositoryError):
    """Raised when order update fails."""

    pass


class OrderRepository:
    """
    Repository for order data access operations.

    Methods flush but never commit; the calling service owns the transaction.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize order repository.

        Args:
            session: Async database session
        """
        self.session = session

    async def next_order_number(self, company_id: uuid.UUID) -> int:
        """
        Allocate the next sequential order number of a company.

        The company row is locked for the rest of the transaction so two
        concurrent intakes cannot read the same maximum.

        Raises:
            CompanyNotFoundError: If the company does not exist
            OrderRepositoryError: If the query fails
        """
        try:
            lock_stmt = select(Company.id).where(Company.id == company_id).with_for_update()
            locked = (await self.session.execute(lock_stmt)).scalar_one_or_none()
            if locked is None:
                raise CompanyNotFoundError(
                    "Company not found",
                    company_id=str(company_id),
                )

            max_stmt = select(func.coalesce(func.max(Order.order_number), 0)).where(
                Order.company_id == company_id
            )
            current = (await self.session.execute(max_stmt)).scalar_one()
            return int(current) + 1

        except SQLAlchemyError as e:
            logger.error(
                "Failed to allocate order number",
                company_id=str(company_id),
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to allocate order number",
                company_id=str(company_id),
                error=str(e),
            ) from e

    async def create_order_with_items(
        self,
        company_id: uuid.UUID,
        customer_id: uuid.UUID,
        neighborhood_id: uuid.UUID,
        payment_method_id: uuid.UUID,
        order_number: int,
        total_amount: Decimal,
        delivery_fee: Decimal,
        items: Sequence[dict[str, Any]],
        notes: Optional[str] = None,
    ) -> Order:
        """
        Create order with items.

        Args:
            company_id: Owning company
            customer_id: Customer placing the order
            neighborhood_id: Delivery neighborhood
            payment_method_id: Payment method
            order_number: Sequential number from ``next_order_number``
            total_amount: Sum of item totals
            delivery_fee: Delivery fee of the neighborhood
            items: Dicts with product_id, quantity, unit_price
            notes: Optional order notes

        Returns:
            Created order with items loaded

        Raises:
            OrderCreationError: If order creation fails
        """
        try:
            logger.info(
                "Creating order with items",
                company_id=str(company_id),
                customer_id=str(customer_id),
                order_number=order_number,
                item_count=len(items),
            )

            order = Order(
                company_id=company_id,
                customer_id=customer_id,
                neighborhood_id=neighborhood_id,
                payment_method_id=payment_method_id,
                order_number=order_number,
                status=OrderStatus.PENDING,
                total_amount=total_amount,
                delivery_fee=delivery_fee,
                notes=notes,
            )

            self.session.add(order)
            await self.session.flush()

            for item_data in items:
                self.session.add(
                    OrderItem(
                        order_id=order.id,
                        product_id=item_data["product_id"],
                        quantity=item_data["quantity"],
                        unit_price=item_data["unit_price"],
                        total_price=item_data["quantity"] * item_data["unit_price"],
                    )
                )

            await self.session.flush()

            # Refresh to load relationships
            await self.session.refresh(
                order,
                ["created_at", "updated_at", "items", "customer", "neighborhood", "payment_method"],
            )

            logger.info(
                "Order created successfully",
                order_id=str(order.id),
                order_number=order_number,
            )

            return order

        except IntegrityError as e:
            logger.error(
                "Order creation failed - integrity error",
                error=str(e),
                order_number=order_number,
            )
            raise OrderCreationError(
                "Order creation failed due to data integrity violation",
                order_number=order_number,
                error=str(e),
            ) from e
        except SQLAlchemyError as e:
            logger.error(
                "Order creation failed - database error",
                error=str(e),
                order_number=order_number,
            )
            raise OrderCreationError(
                "Order creation failed due to database error",
                order_number=order_number,
                error=str(e),
            ) from e

    async def get_order_by_id(self, order_id: uuid.UUID) -> Optional[Order]:
        """
        Get order by ID, regardless of company.

        Returns:
            Order if found, None otherwise

        Raises:
            OrderRepositoryError: If query fails
        """
        try:
            logger.debug("Fetching order by ID", order_id=str(order_id))

            result = await self.session.execute(select(Order).where(Order.id == order_id))
            return result.scalar_one_or_none()

        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch order",
                order_id=str(order_id),
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to fetch order",
                order_id=str(order_id),
                error=str(e),
            ) from e

    async def get_orders_by_ids(self, order_ids: Sequence[uuid.UUID]) -> Sequence[Order]:
        """Get every order whose id is in ``order_ids``, regardless of company."""
        try:
            result = await self.session.execute(select(Order).where(Order.id.in_(order_ids)))
            return result.scalars().all()

        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch orders",
                order_count=len(order_ids),
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to fetch orders",
                error=str(e),
            ) from e

    async def list_orders(
        self,
        company_id: uuid.UUID,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[Sequence[Order], int]:
        """
        Get orders of a company with pagination, newest first.

        Returns:
            Tuple of (orders, total_count)

        Raises:
            OrderRepositoryError: If query fails
        """
        try:
            conditions = [Order.company_id == company_id]
            if status:
                conditions.append(Order.status == status)

            stmt = (
                select(Order)
                .where(and_(*conditions))
                .order_by(Order.created_at.desc())
                .offset(skip)
                .limit(limit)
            )
            count_stmt = select(func.count()).select_from(Order).where(and_(*conditions))

            orders = (await self.session.execute(stmt)).scalars().all()
            total_count = (await self.session.execute(count_stmt)).scalar_one()

            logger.debug(
                "Company orders fetched",
                company_id=str(company_id),
                count=len(orders),
                total=total_count,
            )

            return orders, total_count

        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch company orders",
                company_id=str(company_id),
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to fetch company orders",
                company_id=str(company_id),
                error=str(e),
            ) from e

    async def list_board_orders(
        self,
        company_id: uuid.UUID,
        finalized_limit: int = 200,
    ) -> Sequence[Order]:
        """
        Get the orders of a company for the kanban board.

        Every order that is not finalized is returned, however old; the
        finalized column is capped at the ``finalized_limit`` most recently
        updated orders. Both sets come back most recently updated first.

        Raises:
            OrderRepositoryError: If query fails
        """
        try:
            active_stmt = (
                select(Order)
                .where(
                    and_(
                        Order.company_id == company_id,
                        Order.status != OrderStatus.FINALIZADO,
                    )
                )
                .order_by(Order.updated_at.desc())
            )
            finalized_stmt = (
                select(Order)
                .where(
                    and_(
                        Order.company_id == company_id,
                        Order.status == OrderStatus.FINALIZADO,
                    )
                )
                .order_by(Order.updated_at.desc())
                .limit(finalized_limit)
            )

            active = (await self.session.execute(active_stmt)).scalars().all()
            finalized = (await self.session.execute(finalized_stmt)).scalars().all()

            logger.debug(
                "Board orders fetched",
                company_id=str(company_id),
                active=len(active),
                finalized=len(finalized),
            )

            return [*active, *finalized]

        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch board orders",
                company_id=str(company_id),
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to fetch board orders",
                company_id=str(company_id),
                error=str(e),
            ) from e

    async def list_orders_created_between(
        self,
        company_id: uuid.UUID,
        start: datetime,
        end: datetime,
    ) -> Sequence[Order]:
        """
        Get the orders of a company created in ``[start, end)``, newest first.

        Items and their products are loaded with the orders.

        Raises:
            OrderRepositoryError: If query fails
        """
        try:
            stmt = (
                select(Order)
                .where(
                    and_(
                        Order.company_id == company_id,
                        Order.created_at >= start,
                        Order.created_at < end,
                    )
                )
                .order_by(Order.created_at.desc())
            )
            return (await self.session.execute(stmt)).scalars().all()

        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch orders in window",
                company_id=str(company_id),
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to fetch orders in window",
                company_id=str(company_id),
                error=str(e),
            ) from e

    async def update_status(
        self,
        order: Order,
        new_status: OrderStatus,
        cancellation_reason: Optional[str] = None,
    ) -> Order:
        """
        Write a new status on a loaded order.

        ``cancellation_reason`` is only written when given; other transitions
        leave the stored reason as it is.

        Raises:
            OrderUpdateError: If the flush fails
        """
        try:
            old_status = order.status

            order.status = new_status
            if cancellation_reason is not None:
                order.cancellation_reason = cancellation_reason
            order.updated_at = datetime.now(timezone.utc)

            await self.session.flush()

            logger.info(
                "Order status updated",
                order_id=str(order.id),
                old_status=old_status.value,
                new_status=new_status.value,
            )

            return order

        except SQLAlchemyError as e:
            logger.error(
                "Failed to update order status",
                order_id=str(order.id),
                error=str(e),
            )
            raise OrderUpdateError(
                "Failed to update order status",
                order_id=str(order.id),
                error=str(e),
            ) from e

    async def bulk_update_status(
        self,
        company_id: uuid.UUID,
        order_ids: Sequence[uuid.UUID],
        new_status: OrderStatus,
    ) -> int:
        """
        Set ``new_status`` on every listed order of a company in one statement.

        Returns:
            Number of rows updated

        Raises:
            OrderUpdateError: If the update fails
        """
        try:
            stmt = (
                update(Order)
                .where(
                    and_(
                        Order.id.in_(order_ids),
                        Order.company_id == company_id,
                    )
                )
                .values(status=new_status, updated_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session="fetch")
            )

            result = await self.session.execute(stmt)
            await self.session.flush()

            logger.info(
                "Order statuses updated in batch",
                company_id=str(company_id),
                new_status=new_status.value,
                updated=result.rowcount,
            )

            return result.rowcount

        except SQLAlchemyError as e:
            logger.error(
                "Failed to update order statuses in batch",
                company_id=str(company_id),
                error=str(e),
            )
            raise OrderUpdateError(
                "Failed to update order statuses in batch",
                company_id=str(company_id),
                error=str(e),
            ) from e

    async def get_unprioritized_open_orders(
        self,
        company_ids: Optional[Sequence[uuid.UUID]] = None,
    ) -> Sequence[Order]:
        """Get open orders that have no priority yet, oldest first.

        Args:
            company_ids: Restrict the scan to these companies; all when None
        """
        try:
            conditions = [
                Order.status.in_(OPEN_ORDER_STATUSES),
                Order.priority_level.is_(None),
            ]
            if company_ids is not None:
                conditions.append(Order.company_id.in_(company_ids))

            stmt = select(Order).where(and_(*conditions)).order_by(Order.created_at.asc())
            return (await self.session.execute(stmt)).scalars().all()

        except SQLAlchemyError as e:
            logger.error("Failed to fetch unprioritized orders", error=str(e))
            raise OrderRepositoryError(
                "Failed to fetch unprioritized orders",
                error=str(e),
            ) from e

    async def set_priority(self, order: Order, priority_level: int, priority_label: str) -> Order:
        """Stamp an escalation rule onto an order."""
        order.priority_level = priority_level
        order.priority_label = priority_label
        order.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        return order

    async def delete_order(self, order: Order) -> None:
        """Hard delete an order; its items go with it."""
        try:
            await self.session.delete(order)
            await self.session.flush()

            logger.info("Order deleted", order_id=str(order.id))

        except SQLAlchemyError as e:
            logger.error(
                "Failed to delete order",
                order_id=str(order.id),
                error=str(e),
            )
            raise OrderUpdateError(
                "Failed to delete order",
                order_id=str(order.id),
                error=str(e),
            ) from e
