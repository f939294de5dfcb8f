"""
Company model.

A company is the tenant boundary: every business row references one and the
API only ever reads or writes rows of the caller's company.
"""

from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from pdelivery.database.base import BaseModel


class Company(BaseModel):
    """Tenant account owning orders, catalog and ledger rows."""

    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Company display name",
    )

    segment: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="delivery",
        comment="Business segment (acai, pizzaria, ...)",
    )

    owner_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="Auth provider user id of the owner",
    )

    def __repr__(self) -> str:
        return f"<Company(id={self.id}, name={self.name!r})>"
