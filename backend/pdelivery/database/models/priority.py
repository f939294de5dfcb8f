"""Priority escalation rules per company."""

from typing import Optional

from sqlalchemy import CheckConstraint, Index, Integer, String
from sqlalchemy.dialects.postgresql import ENUM
from sqlalchemy.orm import Mapped, mapped_column

from pdelivery.database.base import TenantModel
from pdelivery.services.orders.enums import OrderStatus


class PrioritySetting(TenantModel):
    """
    Escalation rule: an order sitting in ``status`` for at least
    ``minutes_threshold`` minutes gets stamped with ``priority_level`` and
    ``priority_label``.

    Several rules may target the same status at different thresholds.
    """

    __tablename__ = "priority_settings"

    status: Mapped[OrderStatus] = mapped_column(
        ENUM(
            OrderStatus,
            name="order_status",
            create_type=False,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
    )

    minutes_threshold: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Minimum order age in whole minutes",
    )

    priority_level: Mapped[int] = mapped_column(Integer, nullable=False)

    priority_label: Mapped[str] = mapped_column(String(100), nullable=False)

    color: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="Card highlight color shown on the board",
    )

    __table_args__ = (
        Index("ix_priority_settings_company_status", "company_id", "status"),
        CheckConstraint("minutes_threshold >= 0", name="ck_priority_settings_threshold"),
    )

    def __repr__(self) -> str:
        return (
            f"<PrioritySetting(status={self.status.value if self.status else None}, "
            f"minutes_threshold={self.minutes_threshold}, "
            f"priority_level={self.priority_level})>"
        )
