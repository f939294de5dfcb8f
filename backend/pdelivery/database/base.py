"""
SQLAlchemy declarative base and common model mixins.

This module provides the SQLAlchemy DeclarativeBase, mixins for UUID keys,
timestamps, tenant ownership and the ``active`` soft-delete flag used by the
catalog tables.
"""

import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, func, true
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column


class Base(AsyncAttrs, DeclarativeBase):
    """
    Base class for all SQLAlchemy models with async support.

    Provides async attribute loading and serialization helpers shared by
    every table.
    """

    __abstract__ = True

    def to_dict(self, exclude: Optional[set[str]] = None) -> Dict[str, Any]:
        """
        Convert model instance to a JSON friendly dictionary.

        Args:
            exclude: Set of attribute names to exclude from output

        Returns:
            Dictionary representation of the model columns
        """
        exclude = exclude or set()
        result = {}

        for column in self.__table__.columns:
            if column.name in exclude:
                continue
            value = getattr(self, column.name)
            if isinstance(value, (datetime, date, time)):
                result[column.name] = value.isoformat()
            elif isinstance(value, uuid.UUID):
                result[column.name] = str(value)
            elif isinstance(value, Decimal):
                result[column.name] = str(value)
            else:
                result[column.name] = value

        return result

    def __repr__(self) -> str:
        pk_values = []
        for column in self.__table__.primary_key.columns:
            value = getattr(self, column.name, None)
            if value is not None:
                pk_values.append(f"{column.name}={value!r}")

        pk_str = ", ".join(pk_values) if pk_values else "no primary key"
        return f"<{self.__class__.__name__}({pk_str})>"


class TimestampMixin:
    """
    Mixin for automatic timestamp management.

    Adds created_at and updated_at columns managed by the database.
    Generated values are fetched with RETURNING after INSERT and UPDATE so
    they never need a lazy load under asyncio.
    """

    __mapper_args__ = {"eager_defaults": True}

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            server_default=func.now(),
            comment="Timestamp when record was created",
        )

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            server_default=func.now(),
            onupdate=func.now(),
            comment="Timestamp when record was last updated",
        )


class UUIDMixin:
    """Mixin for a UUID primary key generated client side."""

    @declared_attr
    def id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            UUID(as_uuid=True),
            primary_key=True,
            default=uuid.uuid4,
            nullable=False,
            comment="Unique identifier for the record",
        )


class TenantMixin:
    """
    Mixin for tenant ownership.

    Every business row belongs to exactly one company; all reads and
    writes are filtered by this column.
    """

    @declared_attr
    def company_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            UUID(as_uuid=True),
            ForeignKey("companies.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
            comment="Owning company (tenant)",
        )


class ActiveFlagMixin:
    """
    Mixin for soft delete through an ``active`` flag.

    Inactive rows stay referenced by historical orders and entries but are
    hidden from selection lists.
    """

    @declared_attr
    def active(cls) -> Mapped[bool]:
        return mapped_column(
            Boolean,
            nullable=False,
            default=True,
            server_default=true(),
            comment="False once the record is soft deleted",
        )

    def deactivate(self) -> None:
        self.active = False


class BaseModel(Base, UUIDMixin, TimestampMixin):
    """
    Base model with UUID primary key and timestamps.

    Example:
        class Company(BaseModel):
            __tablename__ = "companies"

            name: Mapped[str] = mapped_column(String(255))
    """

    __abstract__ = True


class TenantModel(BaseModel, TenantMixin):
    """Base model for rows owned by a company."""

    __abstract__ = True


class CatalogModel(TenantModel, ActiveFlagMixin):
    """Base model for tenant catalog rows supporting soft delete."""

    __abstract__ = True
