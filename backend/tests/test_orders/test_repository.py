"""
Tests for the order repository read statements.

Statements are captured from a mocked session and compiled with the
PostgreSQL dialect.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from pdelivery.services.orders.enums import OPEN_ORDER_STATUSES, OrderStatus
from pdelivery.services.orders.repository import OrderRepository


def _rows(orders) -> MagicMock:
    result = MagicMock()
    result.scalars.return_value.all.return_value = orders
    return result


def _compile(statement):
    return statement.compile(dialect=postgresql.dialect())


def _bound_values(compiled) -> list:
    values = []
    for value in compiled.params.values():
        values.extend(value if isinstance(value, (list, tuple)) else [value])
    return values


# ============================================================================
# Board Query Tests
# ============================================================================


class TestListBoardOrders:
    @pytest.mark.asyncio
    async def test_open_orders_are_never_capped(self, mock_session, make_order, company_id):
        # Arrange
        pending = make_order(status=OrderStatus.PENDING, order_number=1)
        finalized = make_order(status=OrderStatus.FINALIZADO, order_number=2)
        mock_session.execute = AsyncMock(side_effect=[_rows([pending]), _rows([finalized])])

        # Act
        orders = await OrderRepository(mock_session).list_board_orders(company_id, finalized_limit=50)

        # Assert
        assert orders == [pending, finalized]

        active_stmt, finalized_stmt = (call.args[0] for call in mock_session.execute.await_args_list)
        active_sql = str(_compile(active_stmt))
        assert "orders.status !=" in active_sql
        assert "LIMIT" not in active_sql
        assert "ORDER BY orders.updated_at DESC" in active_sql

        compiled = _compile(finalized_stmt)
        assert "orders.status =" in str(compiled)
        assert "LIMIT" in str(compiled)
        assert "ORDER BY orders.updated_at DESC" in str(compiled)
        assert 50 in _bound_values(compiled)
        assert OrderStatus.FINALIZADO in _bound_values(compiled)
        assert company_id in _bound_values(compiled)


# ============================================================================
# Priority Scan Query Tests
# ============================================================================


class TestGetUnprioritizedOpenOrders:
    @pytest.mark.asyncio
    async def test_only_open_orders_without_priority(self, mock_session, company_id):
        mock_session.execute = AsyncMock(return_value=_rows([]))

        await OrderRepository(mock_session).get_unprioritized_open_orders(company_ids=[company_id])

        compiled = _compile(mock_session.execute.await_args.args[0])
        sql = str(compiled)
        assert "orders.priority_level IS NULL" in sql
        assert "orders.status IN" in sql
        assert "ORDER BY orders.created_at ASC" in sql

        values = _bound_values(compiled)
        assert set(OPEN_ORDER_STATUSES) <= set(values)
        assert OrderStatus.FINALIZADO not in values
        assert OrderStatus.CANCELADO not in values
        assert company_id in values
