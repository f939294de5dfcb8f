"""
Tests for the kanban board controller and its endpoints.
"""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from pdelivery.api.deps import get_current_company_id, get_kanban_board
from pdelivery.main import app
from pdelivery.services.monitoring.board import KanbanBoard, build_board
from pdelivery.services.orders.enums import BOARD_COLUMNS, OrderStatus
from pdelivery.services.orders.service import BulkFinalizeResult, OrderValidationError


@pytest.fixture
def order_service() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def board(order_service) -> KanbanBoard:
    return KanbanBoard(order_service)


# ============================================================================
# Board Partition Tests
# ============================================================================


class TestBuildBoard:
    def test_all_columns_present_when_empty(self):
        columns = build_board([])

        assert list(columns) == list(BOARD_COLUMNS)
        assert all(orders == [] for orders in columns.values())

    def test_orders_land_in_their_status_column(self, make_order):
        pending = make_order(status=OrderStatus.PENDING, order_number=1)
        delivered = make_order(status=OrderStatus.ENTREGUE, order_number=2)
        pending_too = make_order(status=OrderStatus.PENDING, order_number=3)

        columns = build_board([pending, delivered, pending_too])

        assert columns[OrderStatus.PENDING] == [pending, pending_too]
        assert columns[OrderStatus.ENTREGUE] == [delivered]
        assert columns[OrderStatus.FINALIZADO] == []


# ============================================================================
# Controller Tests
# ============================================================================


class TestKanbanBoard:
    @pytest.mark.asyncio
    async def test_drop_on_same_column_does_nothing(self, board, order_service, company_id):
        result = await board.move_card(
            company_id,
            uuid4(),
            OrderStatus.A_CAMINHO,
            OrderStatus.A_CAMINHO,
        )

        assert result is None
        order_service.transition_order.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_drop_on_other_column_transitions(self, board, order_service, company_id):
        order_id = uuid4()

        await board.move_card(
            company_id,
            order_id,
            OrderStatus.EM_PRODUCAO,
            OrderStatus.CANCELADO,
            reason="Cliente desistiu",
        )

        order_service.transition_order.assert_awaited_once_with(
            company_id,
            order_id,
            OrderStatus.CANCELADO,
            reason="Cliente desistiu",
        )

    @pytest.mark.asyncio
    async def test_finalize_requires_selection(self, board, order_service, company_id):
        with pytest.raises(OrderValidationError):
            await board.finalize_selected(company_id, [])

        order_service.bulk_finalize.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_finalize_selected_delegates(self, board, order_service, company_id):
        ids = [uuid4()]
        order_service.bulk_finalize.return_value = BulkFinalizeResult(finalized_ids=ids, entries_created=1)

        result = await board.finalize_selected(company_id, ids)

        assert result.entries_created == 1
        order_service.bulk_finalize.assert_awaited_once_with(company_id, ids)


# ============================================================================
# Endpoint Tests
# ============================================================================


class TestMonitoringEndpoints:
    @pytest.fixture
    def client(self, board, company_id):
        app.dependency_overrides[get_current_company_id] = lambda: company_id
        app.dependency_overrides[get_kanban_board] = lambda: board
        yield TestClient(app)
        app.dependency_overrides.clear()

    def test_board_lists_six_titled_columns(self, client, order_service, make_order):
        order_service.list_board_orders.return_value = [make_order(status=OrderStatus.EM_PRODUCAO)]

        response = client.get("/api/v1/monitoring/board")

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert [c["status"] for c in body["columns"]] == [s.value for s in BOARD_COLUMNS]
        assert body["columns"][0]["title"] == "Pedidos Abertos"
        assert body["columns"][1]["count"] == 1
        assert body["total"] == 1

    def test_move_on_same_column_reports_not_moved(self, client, order_service):
        response = client.post(
            "/api/v1/monitoring/move",
            json={
                "order_id": str(uuid4()),
                "source_status": "entregue",
                "destination_status": "entregue",
            },
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"moved": False, "order": None}
        order_service.transition_order.assert_not_awaited()

    def test_finalize_empty_selection_is_bad_request(self, client):
        response = client.post("/api/v1/monitoring/finalize", json={"order_ids": []})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
