"""
Test suite for OrderService.

Covers order intake with price snapshots, tenant-checked transitions, error
translation and bulk finalization.
"""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from pdelivery.database.models import Customer, Neighborhood, PaymentMethod, Product
from pdelivery.services.financial.repository import LedgerError
from pdelivery.services.orders.enums import OrderStatus
from pdelivery.services.orders.repository import (
    CompanyNotFoundError,
    OrderAccessDeniedError,
    OrderNotFoundError,
    OrderUpdateError,
)
from pdelivery.services.orders.service import (
    OrderProcessingError,
    OrderService,
    OrderValidationError,
)
from pdelivery.services.orders.state_machine import (
    BULK_SALE_ENTRY_NOTES,
    OrderStateMachine,
    StateTransitionError,
)


# ============================================================================
# Test Fixtures
# ============================================================================


def _tenant_repository(entity_name: str) -> AsyncMock:
    repository = AsyncMock()
    repository.entity_name = entity_name
    return repository


@pytest.fixture
def order_service(
    mock_session,
    mock_order_repository,
    mock_ledger_repository,
    mock_notifier,
    test_settings,
) -> OrderService:
    """Create OrderService with mocked repositories and notifier."""
    state_machine = OrderStateMachine(
        mock_session,
        order_repository=mock_order_repository,
        ledger_repository=mock_ledger_repository,
        settings=test_settings,
    )
    service = OrderService(
        mock_session,
        notifier=mock_notifier,
        settings=test_settings,
        repository=mock_order_repository,
        state_machine=state_machine,
    )
    service.customers = _tenant_repository("Customer")
    service.neighborhoods = _tenant_repository("Neighborhood")
    service.payment_methods = _tenant_repository("PaymentMethod")
    service.products = _tenant_repository("Product")
    return service


@pytest.fixture
def catalog(company_id):
    """Active catalog rows owned by the test company."""
    customer = Customer(id=uuid.uuid4(), company_id=company_id, name="João", phone="5511988887777", active=True)
    neighborhood = Neighborhood(
        id=uuid.uuid4(),
        company_id=company_id,
        name="Jardins",
        delivery_fee=Decimal("7.50"),
        active=True,
    )
    payment_method = PaymentMethod(id=uuid.uuid4(), company_id=company_id, name="Dinheiro", active=True)
    acai = Product(id=uuid.uuid4(), company_id=company_id, name="Açaí 300ml", price=Decimal("15.90"), active=True)
    cupuacu = Product(id=uuid.uuid4(), company_id=company_id, name="Creme de cupuaçu", price=Decimal("12.00"), active=True)
    return {
        "customer": customer,
        "neighborhood": neighborhood,
        "payment_method": payment_method,
        "products": [acai, cupuacu],
    }


@pytest.fixture
def stocked_service(order_service, catalog, mock_order_repository):
    """OrderService whose tenant repositories resolve the catalog fixture."""
    order_service.customers.get.return_value = catalog["customer"]
    order_service.neighborhoods.get.return_value = catalog["neighborhood"]
    order_service.payment_methods.get.return_value = catalog["payment_method"]
    order_service.products.get_many.return_value = {p.id: p for p in catalog["products"]}

    mock_order_repository.next_order_number.return_value = 42
    created = MagicMock(id=uuid.uuid4(), order_number=42)
    mock_order_repository.create_order_with_items.return_value = created
    return order_service


# ============================================================================
# Order Creation Tests
# ============================================================================


class TestCreateOrder:
    """Test order intake."""

    @pytest.mark.asyncio
    async def test_create_order_snapshots_prices(
        self,
        stocked_service,
        catalog,
        company_id,
        mock_session,
        mock_order_repository,
        mock_notifier,
    ):
        # Arrange
        acai, cupuacu = catalog["products"]
        items = [
            {"product_id": acai.id, "quantity": 2},
            {"product_id": cupuacu.id, "quantity": 1},
        ]

        # Act
        order = await stocked_service.create_order(
            company_id=company_id,
            customer_id=catalog["customer"].id,
            neighborhood_id=catalog["neighborhood"].id,
            payment_method_id=catalog["payment_method"].id,
            items=items,
            notes="Sem granola",
        )

        # Assert
        kwargs = mock_order_repository.create_order_with_items.await_args.kwargs
        assert kwargs["order_number"] == 42
        assert kwargs["total_amount"] == Decimal("43.80")
        assert kwargs["delivery_fee"] == Decimal("7.50")
        assert kwargs["notes"] == "Sem granola"
        assert [line["unit_price"] for line in kwargs["items"]] == [Decimal("15.90"), Decimal("12.00")]

        assert catalog["customer"].last_order_details == "2x Açaí 300ml, 1x Creme de cupuaçu"
        assert catalog["customer"].last_order_date is not None

        mock_session.commit.assert_awaited_once()
        mock_notifier.notify_order.assert_called_once_with(order)

    @pytest.mark.asyncio
    async def test_create_order_without_items_fails(self, stocked_service, catalog, company_id):
        with pytest.raises(OrderValidationError):
            await stocked_service.create_order(
                company_id=company_id,
                customer_id=catalog["customer"].id,
                neighborhood_id=catalog["neighborhood"].id,
                payment_method_id=catalog["payment_method"].id,
                items=[],
            )

    @pytest.mark.asyncio
    async def test_create_order_rejects_zero_quantity(self, stocked_service, catalog, company_id):
        with pytest.raises(OrderValidationError):
            await stocked_service.create_order(
                company_id=company_id,
                customer_id=catalog["customer"].id,
                neighborhood_id=catalog["neighborhood"].id,
                payment_method_id=catalog["payment_method"].id,
                items=[{"product_id": catalog["products"][0].id, "quantity": 0}],
            )

    @pytest.mark.asyncio
    async def test_create_order_rejects_inactive_customer(
        self,
        stocked_service,
        catalog,
        company_id,
        mock_order_repository,
    ):
        catalog["customer"].active = False

        with pytest.raises(OrderValidationError, match="Customer"):
            await stocked_service.create_order(
                company_id=company_id,
                customer_id=catalog["customer"].id,
                neighborhood_id=catalog["neighborhood"].id,
                payment_method_id=catalog["payment_method"].id,
                items=[{"product_id": catalog["products"][0].id, "quantity": 1}],
            )

        mock_order_repository.create_order_with_items.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_create_order_rejects_unknown_product(self, stocked_service, catalog, company_id):
        with pytest.raises(OrderValidationError) as exc_info:
            await stocked_service.create_order(
                company_id=company_id,
                customer_id=catalog["customer"].id,
                neighborhood_id=catalog["neighborhood"].id,
                payment_method_id=catalog["payment_method"].id,
                items=[{"product_id": uuid.uuid4(), "quantity": 1}],
            )

        assert "product_id" in exc_info.value.context

    @pytest.mark.asyncio
    async def test_create_order_rolls_back_on_write_failure(
        self,
        stocked_service,
        catalog,
        company_id,
        mock_session,
        mock_order_repository,
        mock_notifier,
    ):
        mock_order_repository.create_order_with_items.side_effect = OrderUpdateError("insert failed")

        with pytest.raises(OrderProcessingError):
            await stocked_service.create_order(
                company_id=company_id,
                customer_id=catalog["customer"].id,
                neighborhood_id=catalog["neighborhood"].id,
                payment_method_id=catalog["payment_method"].id,
                items=[{"product_id": catalog["products"][0].id, "quantity": 1}],
            )

        mock_session.rollback.assert_awaited_once()
        mock_notifier.notify_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_order_for_unregistered_company(
        self,
        stocked_service,
        catalog,
        company_id,
        mock_session,
        mock_order_repository,
        mock_notifier,
    ):
        mock_order_repository.next_order_number.side_effect = CompanyNotFoundError(
            "Company not found", company_id=str(company_id)
        )

        with pytest.raises(OrderValidationError, match="Company"):
            await stocked_service.create_order(
                company_id=company_id,
                customer_id=catalog["customer"].id,
                neighborhood_id=catalog["neighborhood"].id,
                payment_method_id=catalog["payment_method"].id,
                items=[{"product_id": catalog["products"][0].id, "quantity": 1}],
            )

        mock_order_repository.create_order_with_items.assert_not_awaited()
        mock_session.rollback.assert_awaited_once()
        mock_notifier.notify_order.assert_not_called()


# ============================================================================
# Status Transition Tests
# ============================================================================


class TestTransitionOrder:
    """Test single order status changes."""

    @pytest.mark.asyncio
    async def test_transition_notifies_after_commit(
        self,
        order_service,
        make_order,
        company_id,
        mock_order_repository,
        mock_notifier,
    ):
        order = make_order(status=OrderStatus.PENDING)
        mock_order_repository.get_order_by_id.return_value = order

        result = await order_service.transition_order(company_id, order.id, OrderStatus.EM_PRODUCAO)

        assert result.status == OrderStatus.EM_PRODUCAO
        mock_notifier.notify_order.assert_called_once_with(order)

    @pytest.mark.asyncio
    async def test_missing_order_raises_not_found(self, order_service, company_id, mock_order_repository):
        mock_order_repository.get_order_by_id.return_value = None

        with pytest.raises(OrderNotFoundError):
            await order_service.transition_order(company_id, uuid.uuid4(), OrderStatus.ENTREGUE)

    @pytest.mark.asyncio
    async def test_foreign_order_is_denied(
        self,
        order_service,
        make_order,
        company_id,
        other_company_id,
        mock_order_repository,
    ):
        order = make_order(owner=other_company_id)
        mock_order_repository.get_order_by_id.return_value = order

        with pytest.raises(OrderAccessDeniedError):
            await order_service.transition_order(company_id, order.id, OrderStatus.ENTREGUE)

        mock_order_repository.update_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancellation_without_reason_is_validation_error(
        self,
        order_service,
        make_order,
        company_id,
        mock_order_repository,
        mock_notifier,
    ):
        order = make_order(status=OrderStatus.EM_PRODUCAO)
        mock_order_repository.get_order_by_id.return_value = order

        with pytest.raises(OrderValidationError):
            await order_service.transition_order(company_id, order.id, OrderStatus.CANCELADO, "  ")

        mock_notifier.notify_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_forbidden_transition_propagates(
        self,
        order_service,
        make_order,
        company_id,
        mock_order_repository,
    ):
        order = make_order(status=OrderStatus.FINALIZADO)
        mock_order_repository.get_order_by_id.return_value = order

        with pytest.raises(StateTransitionError):
            await order_service.transition_order(company_id, order.id, OrderStatus.PENDING)

    @pytest.mark.asyncio
    async def test_ledger_failure_becomes_processing_error(
        self,
        order_service,
        make_order,
        company_id,
        mock_order_repository,
        mock_ledger_repository,
        mock_notifier,
    ):
        order = make_order(status=OrderStatus.ENTREGUE)
        mock_order_repository.get_order_by_id.return_value = order
        mock_ledger_repository.insert_income_entry_if_absent.side_effect = LedgerError("boom")

        with pytest.raises(OrderProcessingError):
            await order_service.transition_order(company_id, order.id, OrderStatus.FINALIZADO)

        mock_notifier.notify_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_order_commits(
        self,
        order_service,
        make_order,
        company_id,
        mock_session,
        mock_order_repository,
    ):
        order = make_order()
        mock_order_repository.get_order_by_id.return_value = order

        await order_service.delete_order(company_id, order.id)

        mock_order_repository.delete_order.assert_awaited_once_with(order)
        mock_session.commit.assert_awaited_once()


# ============================================================================
# Bulk Finalization Tests
# ============================================================================


class TestBulkFinalize:
    """Test finalizing several orders at once."""

    @pytest.mark.asyncio
    async def test_empty_selection_is_rejected(self, order_service, company_id):
        with pytest.raises(OrderValidationError):
            await order_service.bulk_finalize(company_id, [])

    @pytest.mark.asyncio
    async def test_finalizes_deduplicated_selection(
        self,
        order_service,
        make_order,
        company_id,
        mock_session,
        mock_order_repository,
        mock_ledger_repository,
        mock_notifier,
    ):
        # Arrange
        delivered = make_order(status=OrderStatus.ENTREGUE, order_number=1)
        already_final = make_order(status=OrderStatus.FINALIZADO, order_number=2)
        mock_order_repository.get_orders_by_ids.return_value = [delivered, already_final]

        # Act
        result = await order_service.bulk_finalize(
            company_id,
            [delivered.id, already_final.id, delivered.id],
        )

        # Assert
        assert result.finalized_ids == [delivered.id, already_final.id]
        assert result.entries_created == 1

        mock_ledger_repository.insert_income_entry_if_absent.assert_awaited_once()
        notes = mock_ledger_repository.insert_income_entry_if_absent.await_args.kwargs["notes"]
        assert notes == BULK_SALE_ENTRY_NOTES

        mock_order_repository.bulk_update_status.assert_awaited_once_with(
            company_id,
            [delivered.id, already_final.id],
            OrderStatus.FINALIZADO,
        )
        mock_session.commit.assert_awaited_once()
        assert [c.args[0] for c in mock_notifier.notify_order.call_args_list] == [delivered, already_final]

    @pytest.mark.asyncio
    async def test_missing_order_aborts_batch(
        self,
        order_service,
        make_order,
        company_id,
        mock_order_repository,
        mock_ledger_repository,
    ):
        order = make_order(status=OrderStatus.ENTREGUE)
        mock_order_repository.get_orders_by_ids.return_value = [order]

        with pytest.raises(OrderNotFoundError):
            await order_service.bulk_finalize(company_id, [order.id, uuid.uuid4()])

        mock_ledger_repository.insert_income_entry_if_absent.assert_not_awaited()
        mock_order_repository.bulk_update_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_foreign_order_aborts_batch(
        self,
        order_service,
        make_order,
        company_id,
        other_company_id,
        mock_order_repository,
    ):
        mine = make_order(status=OrderStatus.ENTREGUE)
        theirs = make_order(status=OrderStatus.ENTREGUE, owner=other_company_id)
        mock_order_repository.get_orders_by_ids.return_value = [mine, theirs]

        with pytest.raises(OrderAccessDeniedError):
            await order_service.bulk_finalize(company_id, [mine.id, theirs.id])

        mock_order_repository.bulk_update_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancelled_order_aborts_batch(
        self,
        order_service,
        make_order,
        company_id,
        mock_order_repository,
        mock_ledger_repository,
    ):
        delivered = make_order(status=OrderStatus.ENTREGUE)
        cancelled = make_order(status=OrderStatus.CANCELADO, cancellation_reason="Erro")
        mock_order_repository.get_orders_by_ids.return_value = [delivered, cancelled]

        with pytest.raises(StateTransitionError):
            await order_service.bulk_finalize(company_id, [delivered.id, cancelled.id])

        mock_ledger_repository.insert_income_entry_if_absent.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_write_failure_rolls_back_everything(
        self,
        order_service,
        make_order,
        company_id,
        mock_session,
        mock_order_repository,
        mock_notifier,
    ):
        orders = [make_order(status=OrderStatus.ENTREGUE, order_number=n) for n in (1, 2)]
        mock_order_repository.get_orders_by_ids.return_value = orders
        mock_order_repository.bulk_update_status.side_effect = OrderUpdateError("update failed")

        with pytest.raises(OrderProcessingError):
            await order_service.bulk_finalize(company_id, [o.id for o in orders])

        mock_session.rollback.assert_awaited_once()
        mock_session.commit.assert_not_awaited()
        mock_notifier.notify_order.assert_not_called()
