"""
Priority escalation of open orders.

Companies configure rules of the form (status, minutes_threshold,
priority_level, priority_label). A periodic scan stamps every open order that
has no priority yet with the most severe rule it qualifies for. Once stamped,
an order is never evaluated again.
"""

import math
import uuid
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pdelivery.core.logging import get_logger
from pdelivery.database.models.priority import PrioritySetting
from pdelivery.services.orders.enums import OrderStatus
from pdelivery.services.orders.repository import OrderRepository

logger = get_logger(__name__)


@dataclass
class EscalationResult:
    """Counters of one escalation run."""

    scanned: int = 0
    escalated: int = 0
    failed: int = 0
    escalated_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def elapsed_minutes(created_at: datetime, now: datetime) -> int:
    """Whole minutes between ``created_at`` and ``now``, floored."""
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return math.floor((now - created_at).total_seconds() / 60)


def select_rule(
    rules: Iterable[PrioritySetting],
    status: OrderStatus,
    minutes: int,
) -> Optional[PrioritySetting]:
    """
    Pick the rule to stamp on an order.

    Among the rules for ``status`` whose threshold has been reached, the one
    with the largest threshold wins; equal thresholds go to the highest
    priority level.
    """
    qualifying = [
        rule for rule in rules
        if rule.status == status and rule.minutes_threshold <= minutes
    ]
    return max(
        qualifying,
        key=lambda rule: (rule.minutes_threshold, rule.priority_level),
        default=None,
    )


class PriorityEscalator:
    """
    Scan open orders and stamp their priority.

    Each order is written in its own savepoint, so a failure on one order is
    logged and the scan carries on with the next.
    """

    def __init__(
        self,
        session: AsyncSession,
        order_repository: Optional[OrderRepository] = None,
    ):
        self.session = session
        self.orders = order_repository or OrderRepository(session)

    async def load_rules(
        self,
        company_id: Optional[uuid.UUID] = None,
    ) -> dict[uuid.UUID, list[PrioritySetting]]:
        """Fetch the rules, grouped by company."""
        stmt = select(PrioritySetting)
        if company_id is not None:
            stmt = stmt.where(PrioritySetting.company_id == company_id)

        result = await self.session.execute(stmt)
        grouped: dict[uuid.UUID, list[PrioritySetting]] = defaultdict(list)
        for rule in result.scalars().all():
            grouped[rule.company_id].append(rule)
        return dict(grouped)

    async def escalate(
        self,
        now: Optional[datetime] = None,
        company_id: Optional[uuid.UUID] = None,
    ) -> EscalationResult:
        """
        Run one escalation scan.

        Args:
            now: Reference time; current UTC time when omitted
            company_id: Restrict the scan to one company

        Returns:
            Counters of the run
        """
        now = now or datetime.now(timezone.utc)
        result = EscalationResult()

        rules_by_company = await self.load_rules(company_id)
        if not rules_by_company:
            logger.debug("No priority rules configured")
            return result

        orders = await self.orders.get_unprioritized_open_orders(
            company_ids=list(rules_by_company)
        )

        for order in orders:
            result.scanned += 1
            order_id = str(order.id)

            rule = select_rule(
                rules_by_company.get(order.company_id, ()),
                order.status,
                elapsed_minutes(order.created_at, now),
            )
            if rule is None:
                continue

            try:
                async with self.session.begin_nested():
                    await self.orders.set_priority(order, rule.priority_level, rule.priority_label)
            except Exception as e:
                result.failed += 1
                logger.error(
                    "Failed to escalate order priority",
                    order_id=order_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            result.escalated += 1
            result.escalated_ids.append(order_id)
            logger.info(
                "Order priority escalated",
                order_id=order_id,
                priority_level=rule.priority_level,
                priority_label=rule.priority_label,
            )

        await self.session.commit()

        logger.info(
            "Priority escalation completed",
            scanned=result.scanned,
            escalated=result.escalated,
            failed=result.failed,
        )

        return result
