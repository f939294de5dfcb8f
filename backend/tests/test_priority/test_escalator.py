"""
Test suite for priority escalation.

Covers elapsed time rounding, rule selection and the per-order savepoint
behavior of the escalation scan.
"""

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from pdelivery.database.models import PrioritySetting
from pdelivery.services.orders.enums import OrderStatus
from pdelivery.services.priority.escalator import (
    EscalationResult,
    PriorityEscalator,
    elapsed_minutes,
    select_rule,
)

NOW = datetime(2024, 3, 5, 20, 0, 0, tzinfo=timezone.utc)


def _rule(company_id, status, minutes, level, label=None) -> PrioritySetting:
    return PrioritySetting(
        id=uuid.uuid4(),
        company_id=company_id,
        status=status,
        minutes_threshold=minutes,
        priority_level=level,
        priority_label=label or f"P{level}",
    )


# ============================================================================
# Test Fixtures
# ============================================================================


@pytest.fixture
def escalation_repository() -> AsyncMock:
    repository = AsyncMock()
    repository.get_unprioritized_open_orders.return_value = []
    return repository


@pytest.fixture
def escalator(mock_session, escalation_repository) -> PriorityEscalator:
    return PriorityEscalator(mock_session, order_repository=escalation_repository)


def _with_rules(session, rules) -> None:
    result = MagicMock()
    result.scalars.return_value.all.return_value = rules
    session.execute = AsyncMock(return_value=result)


# ============================================================================
# Helper Function Tests
# ============================================================================


class TestElapsedMinutes:
    def test_floors_partial_minutes(self):
        assert elapsed_minutes(NOW - timedelta(minutes=14, seconds=59), NOW) == 14

    def test_exact_minutes(self):
        assert elapsed_minutes(NOW - timedelta(minutes=30), NOW) == 30

    def test_naive_timestamps_are_treated_as_utc(self):
        created = (NOW - timedelta(minutes=5)).replace(tzinfo=None)

        assert elapsed_minutes(created, NOW) == 5


class TestSelectRule:
    def test_largest_reached_threshold_wins(self, company_id):
        rules = [
            _rule(company_id, OrderStatus.PENDING, 10, 1),
            _rule(company_id, OrderStatus.PENDING, 20, 2),
            _rule(company_id, OrderStatus.PENDING, 40, 3),
        ]

        rule = select_rule(rules, OrderStatus.PENDING, 25)

        assert rule.minutes_threshold == 20

    def test_equal_thresholds_prefer_highest_level(self, company_id):
        rules = [
            _rule(company_id, OrderStatus.PENDING, 15, 2),
            _rule(company_id, OrderStatus.PENDING, 15, 5),
        ]

        assert select_rule(rules, OrderStatus.PENDING, 15).priority_level == 5

    def test_rules_for_other_statuses_are_ignored(self, company_id):
        rules = [_rule(company_id, OrderStatus.EM_PRODUCAO, 5, 1)]

        assert select_rule(rules, OrderStatus.PENDING, 60) is None

    def test_no_threshold_reached(self, company_id):
        rules = [_rule(company_id, OrderStatus.PENDING, 30, 1)]

        assert select_rule(rules, OrderStatus.PENDING, 29) is None


# ============================================================================
# Escalation Scan Tests
# ============================================================================


class TestEscalate:
    @pytest.mark.asyncio
    async def test_no_rules_skips_scan(self, escalator, mock_session, escalation_repository):
        _with_rules(mock_session, [])

        result = await escalator.escalate(now=NOW)

        assert result.scanned == 0
        escalation_repository.get_unprioritized_open_orders.assert_not_awaited()
        mock_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stamps_qualifying_orders(
        self,
        escalator,
        mock_session,
        escalation_repository,
        make_order,
        company_id,
    ):
        # Arrange
        _with_rules(mock_session, [_rule(company_id, OrderStatus.PENDING, 15, 2, "Atrasado")])
        late = make_order(created_at=NOW - timedelta(minutes=20))
        fresh = make_order(created_at=NOW - timedelta(minutes=3))
        escalation_repository.get_unprioritized_open_orders.return_value = [late, fresh]

        # Act
        result = await escalator.escalate(now=NOW)

        # Assert
        assert result.scanned == 2
        assert result.escalated == 1
        assert result.escalated_ids == [str(late.id)]
        escalation_repository.set_priority.assert_awaited_once_with(late, 2, "Atrasado")
        escalation_repository.get_unprioritized_open_orders.assert_awaited_once_with(
            company_ids=[company_id]
        )
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_order_does_not_stop_scan(
        self,
        escalator,
        mock_session,
        escalation_repository,
        make_order,
        company_id,
    ):
        _with_rules(mock_session, [_rule(company_id, OrderStatus.PENDING, 0, 1)])
        first = make_order(order_number=1)
        second = make_order(order_number=2)
        escalation_repository.get_unprioritized_open_orders.return_value = [first, second]
        escalation_repository.set_priority.side_effect = [
            OperationalError("UPDATE orders", {}, Exception("deadlock")),
            second,
        ]

        result = await escalator.escalate(now=NOW)

        assert result.failed == 1
        assert result.escalated == 1
        assert result.escalated_ids == [str(second.id)]
        assert mock_session.begin_nested.call_count == 2
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_timeout_on_one_order_does_not_stop_scan(
        self,
        escalator,
        mock_session,
        escalation_repository,
        make_order,
        company_id,
    ):
        _with_rules(mock_session, [_rule(company_id, OrderStatus.PENDING, 0, 1)])
        first = make_order(order_number=1)
        second = make_order(order_number=2)
        escalation_repository.get_unprioritized_open_orders.return_value = [first, second]
        escalation_repository.set_priority.side_effect = [
            TimeoutError("command timeout"),
            second,
        ]

        result = await escalator.escalate(now=NOW)

        assert result.failed == 1
        assert result.escalated_ids == [str(second.id)]
        assert escalation_repository.set_priority.await_count == 2
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stamped_order_is_left_alone_by_later_runs(
        self,
        escalator,
        mock_session,
        escalation_repository,
        make_order,
        company_id,
    ):
        # Arrange
        _with_rules(
            mock_session,
            [
                _rule(company_id, OrderStatus.PENDING, 10, 1, "Atenção"),
                _rule(company_id, OrderStatus.PENDING, 30, 2, "Urgente"),
            ],
        )
        order = make_order(created_at=NOW - timedelta(minutes=35))

        async def unprioritized(company_ids=None):
            return [order] if order.priority_level is None else []

        async def stamp(target, level, label):
            target.priority_level = level
            target.priority_label = label
            return target

        escalation_repository.get_unprioritized_open_orders.side_effect = unprioritized
        escalation_repository.set_priority.side_effect = stamp

        # Act
        first_run = await escalator.escalate(now=NOW)
        second_run = await escalator.escalate(now=NOW + timedelta(hours=2))

        # Assert
        assert first_run.escalated_ids == [str(order.id)]
        assert (order.priority_level, order.priority_label) == (2, "Urgente")
        assert second_run.scanned == 0
        assert second_run.escalated == 0
        escalation_repository.set_priority.assert_awaited_once_with(order, 2, "Urgente")
    @pytest.mark.asyncio
    async def test_rules_of_another_company_do_not_apply(
        self,
        escalator,
        mock_session,
        escalation_repository,
        make_order,
        other_company_id,
    ):
        _with_rules(mock_session, [_rule(other_company_id, OrderStatus.PENDING, 0, 1)])
        escalation_repository.get_unprioritized_open_orders.return_value = [make_order()]

        result = await escalator.escalate(now=NOW)

        assert result.scanned == 1
        assert result.escalated == 0
        escalation_repository.set_priority.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_company_filter_restricts_rules(self, escalator, mock_session, company_id):
        _with_rules(mock_session, [])

        await escalator.escalate(now=NOW, company_id=company_id)

        statement = mock_session.execute.await_args.args[0]
        assert "company_id" in str(statement.whereclause)

    def test_result_serializes_counters(self):
        result = EscalationResult(scanned=3, escalated=1, escalated_ids=["a"])

        assert result.to_dict() == {
            "scanned": 3,
            "escalated": 1,
            "failed": 0,
            "escalated_ids": ["a"],
        }
