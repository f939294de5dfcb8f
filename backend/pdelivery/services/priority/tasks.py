"""
Celery task running the priority escalation scan.

The beat schedule in ``pdelivery.worker`` triggers this task on a fixed
interval; the API process can also run the same scan in-process.
"""

import asyncio
from typing import Any

from celery import Task, shared_task

from pdelivery.core.logging import get_logger
from pdelivery.database.connection import close_database_connections, get_session
from pdelivery.services.priority.escalator import PriorityEscalator

logger = get_logger(__name__)


class PriorityTask(Task):
    """Base task class logging the outcome of escalation runs."""

    def on_failure(
        self,
        exc: Exception,
        task_id: str,
        args: tuple,
        kwargs: dict,
        einfo: Any,
    ) -> None:
        logger.error(
            "Priority escalation task failed",
            task_id=task_id,
            exception=str(exc),
            exc_info=einfo,
        )

    def on_success(
        self,
        retval: Any,
        task_id: str,
        args: tuple,
        kwargs: dict,
    ) -> None:
        logger.info(
            "Priority escalation task completed",
            task_id=task_id,
            result=retval,
        )


async def run_priority_escalation() -> dict[str, Any]:
    """Run one escalation scan in a fresh session."""
    async with get_session() as session:
        result = await PriorityEscalator(session).escalate()
    return result.to_dict()


@shared_task(
    bind=True,
    base=PriorityTask,
    name="priorities.escalate_order_priorities",
    time_limit=240,
    soft_time_limit=200,
    ignore_result=False,
)
def escalate_order_priorities_task(self: Task) -> dict[str, Any]:
    """
    Stamp priorities on open orders that crossed a configured threshold.

    Returns:
        Counters of the run
    """
    logger.info("Starting priority escalation", task_id=self.request.id)

    async def escalate() -> dict[str, Any]:
        try:
            return await run_priority_escalation()
        finally:
            # Each asyncio.run gets a new loop; pooled connections cannot outlive it
            await close_database_connections()

    return asyncio.run(escalate())
