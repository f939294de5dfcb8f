"""
Tests for the scheduled escalation task and its beat schedule.
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, patch

import pytest

from pdelivery.services.priority.escalator import EscalationResult
from pdelivery.services.priority.tasks import (
    escalate_order_priorities_task,
    run_priority_escalation,
)
from pdelivery.worker import celery_app


@pytest.mark.asyncio
async def test_run_priority_escalation_uses_fresh_session(mock_session):
    @asynccontextmanager
    async def fake_session():
        yield mock_session

    with patch("pdelivery.services.priority.tasks.get_session", fake_session), patch(
        "pdelivery.services.priority.tasks.PriorityEscalator"
    ) as escalator_cls:
        escalator_cls.return_value.escalate = AsyncMock(
            return_value=EscalationResult(scanned=2, escalated=2, escalated_ids=["a", "b"])
        )

        result = await run_priority_escalation()

    escalator_cls.assert_called_once_with(mock_session)
    assert result["escalated"] == 2


def test_task_disposes_connections_after_run():
    with patch(
        "pdelivery.services.priority.tasks.run_priority_escalation",
        new_callable=AsyncMock,
        return_value={"scanned": 0, "escalated": 0, "failed": 0, "escalated_ids": []},
    ), patch(
        "pdelivery.services.priority.tasks.close_database_connections",
        new_callable=AsyncMock,
    ) as mock_close:
        outcome = escalate_order_priorities_task.apply()

    assert outcome.result["scanned"] == 0
    mock_close.assert_awaited_once()


def test_beat_schedule_runs_escalation_every_interval(test_settings):
    entry = celery_app.conf.beat_schedule["escalate-order-priorities"]

    assert entry["task"] == escalate_order_priorities_task.name
    assert entry["schedule"] == float(test_settings.priority_escalation_interval_seconds)
