"""
Pytest configuration and shared test fixtures.

Tests run against mocked async sessions and transient model instances; no
database or webhook endpoint is needed.
"""

import os

os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("APP_NOTIFICATION_WEBHOOK_URL", "")

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from pdelivery.core.config import Settings
from pdelivery.database.models import (
    Customer,
    Neighborhood,
    Order,
    OrderItem,
    PaymentMethod,
    Product,
)
from pdelivery.services.orders.enums import OrderStatus


@pytest.fixture
def test_settings() -> Settings:
    """Settings with notifications disabled and the default business timezone."""
    return Settings(
        environment="test",
        notification_webhook_url="",
        business_timezone="America/Sao_Paulo",
    )


@pytest.fixture
def mock_session() -> AsyncMock:
    """
    Create mock async database session.

    ``begin_nested`` returns an async context manager so savepoint blocks
    can run against the mock.
    """
    session = AsyncMock(spec=AsyncSession)
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    session.add = MagicMock()

    savepoint = MagicMock()
    savepoint.__aenter__ = AsyncMock(return_value=savepoint)
    savepoint.__aexit__ = AsyncMock(return_value=False)
    session.begin_nested = MagicMock(return_value=savepoint)
    return session


@pytest.fixture
def company_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def other_company_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def make_order(company_id: uuid.UUID) -> Callable[..., Order]:
    """
    Factory building transient orders with customer, neighborhood, payment
    method and items attached.

    Example:
        order = make_order(status=OrderStatus.ENTREGUE, order_number=7)
    """

    def _make(
        status: OrderStatus = OrderStatus.PENDING,
        order_number: int = 1,
        total_amount: Decimal = Decimal("45.00"),
        delivery_fee: Decimal = Decimal("5.00"),
        created_at: Optional[datetime] = None,
        owner: Optional[uuid.UUID] = None,
        items: Optional[list[tuple[int, str]]] = None,
        **overrides: Any,
    ) -> Order:
        neighborhood = Neighborhood(
            id=uuid.uuid4(),
            company_id=owner or company_id,
            name="Centro",
            delivery_fee=delivery_fee,
        )
        customer = Customer(
            id=uuid.uuid4(),
            company_id=owner or company_id,
            name="Maria Silva",
            phone="5511999990000",
        )
        payment_method = PaymentMethod(
            id=uuid.uuid4(),
            company_id=owner or company_id,
            name="PIX",
        )

        order = Order(
            id=uuid.uuid4(),
            company_id=owner or company_id,
            customer_id=customer.id,
            neighborhood_id=neighborhood.id,
            payment_method_id=payment_method.id,
            status=status,
            order_number=order_number,
            total_amount=total_amount,
            delivery_fee=delivery_fee,
            customer=customer,
            neighborhood=neighborhood,
            payment_method=payment_method,
            **overrides,
        )
        order.created_at = created_at or datetime(2024, 3, 5, 17, 30, 15, tzinfo=timezone.utc)
        order.updated_at = order.created_at

        for quantity, name in items or [(2, "Açaí 500ml")]:
            product = Product(
                id=uuid.uuid4(),
                company_id=order.company_id,
                name=name,
                price=Decimal("20.00"),
            )
            order.items.append(
                OrderItem(
                    id=uuid.uuid4(),
                    product_id=product.id,
                    product=product,
                    quantity=quantity,
                    unit_price=product.price,
                    total_price=product.price * quantity,
                )
            )
        return order

    return _make


@pytest.fixture
def mock_order_repository() -> AsyncMock:
    repository = AsyncMock()
    repository.update_status = AsyncMock(side_effect=_set_status)
    return repository


@pytest.fixture
def mock_ledger_repository() -> AsyncMock:
    ledger = AsyncMock()
    ledger.insert_income_entry_if_absent = AsyncMock(return_value=True)
    return ledger


@pytest.fixture
def mock_notifier() -> MagicMock:
    notifier = MagicMock()
    notifier.notify_order = MagicMock(return_value=None)
    return notifier


def _set_status(order: Order, status: OrderStatus, cancellation_reason: Optional[str] = None) -> Order:
    order.status = status
    if cancellation_reason is not None:
        order.cancellation_reason = cancellation_reason
    return order
