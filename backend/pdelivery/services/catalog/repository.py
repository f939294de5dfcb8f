"""
Tenant-scoped CRUD repository for catalog and financial reference tables.

Customers, products, items, neighborhoods, payment methods, cost centers,
expense categories, financial entries and priority settings share the same
access pattern: every read and write is filtered by ``company_id``. This
module implements that pattern once, parameterised by the model class.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Generic, Optional, Sequence, Type, TypeVar

from sqlalchemy import and_, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pdelivery.core.logging import get_logger
from pdelivery.database.base import TenantModel

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=TenantModel)


class CatalogRepositoryError(Exception):
    """Base exception for catalog repository errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class EntityNotFoundError(CatalogRepositoryError):
    """Raised when a row does not exist for the caller's company."""

    pass


class TenantCRUDRepository(Generic[ModelT]):
    """
    Repository for one tenant-scoped table.

    Example:
        repo = TenantCRUDRepository(session, Customer)
        customers = await repo.list(company_id, active_only=True)
    """

    def __init__(self, session: AsyncSession, model: Type[ModelT]):
        self.session = session
        self.model = model

    @property
    def entity_name(self) -> str:
        return self.model.__name__

    @property
    def supports_soft_delete(self) -> bool:
        return hasattr(self.model, "active")

    async def list(
        self,
        company_id: uuid.UUID,
        active_only: bool = False,
        skip: int = 0,
        limit: int = 100,
        order_by: Optional[Any] = None,
    ) -> tuple[Sequence[ModelT], int]:
        """
        List rows of a company.

        Returns:
            Tuple of (rows, total_count)
        """
        try:
            conditions = [self.model.company_id == company_id]
            if active_only and self.supports_soft_delete:
                conditions.append(self.model.active.is_(True))

            ordering = order_by if order_by is not None else self.model.created_at.desc()
            stmt = (
                select(self.model)
                .where(and_(*conditions))
                .order_by(ordering)
                .offset(skip)
                .limit(limit)
            )
            count_stmt = select(func.count()).select_from(self.model).where(and_(*conditions))

            rows = (await self.session.execute(stmt)).scalars().all()
            total = (await self.session.execute(count_stmt)).scalar_one()

            return rows, total

        except SQLAlchemyError as e:
            logger.error(
                "Failed to list rows",
                entity=self.entity_name,
                company_id=str(company_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    async def get(self, company_id: uuid.UUID, entity_id: uuid.UUID) -> Optional[ModelT]:
        """Get one row of a company, or None."""
        stmt = select(self.model).where(
            and_(
                self.model.id == entity_id,
                self.model.company_id == company_id,
            )
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_many(
        self,
        company_id: uuid.UUID,
        entity_ids: Sequence[uuid.UUID],
    ) -> dict[uuid.UUID, ModelT]:
        """Get the rows of a company among ``entity_ids``, keyed by id."""
        if not entity_ids:
            return {}
        stmt = select(self.model).where(
            and_(
                self.model.id.in_(entity_ids),
                self.model.company_id == company_id,
            )
        )
        rows = (await self.session.execute(stmt)).scalars().all()
        return {row.id: row for row in rows}

    async def get_or_raise(self, company_id: uuid.UUID, entity_id: uuid.UUID) -> ModelT:
        """
        Get one row of a company.

        Raises:
            EntityNotFoundError: If the row does not exist for this company
        """
        entity = await self.get(company_id, entity_id)
        if entity is None:
            raise EntityNotFoundError(
                f"{self.entity_name} not found",
                entity=self.entity_name,
                entity_id=str(entity_id),
                company_id=str(company_id),
            )
        return entity

    async def create(self, company_id: uuid.UUID, **values: Any) -> ModelT:
        """Insert a row owned by ``company_id``."""
        try:
            entity = self.model(company_id=company_id, **values)
            self.session.add(entity)
            await self.session.flush()
            await self.session.refresh(entity)

            logger.info(
                "Row created",
                entity=self.entity_name,
                entity_id=str(entity.id),
                company_id=str(company_id),
            )

            return entity

        except SQLAlchemyError as e:
            logger.error(
                "Row creation failed",
                entity=self.entity_name,
                company_id=str(company_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    async def update(
        self,
        company_id: uuid.UUID,
        entity_id: uuid.UUID,
        **values: Any,
    ) -> ModelT:
        """
        Apply ``values`` to a row of a company.

        ``company_id`` itself can never be changed through this method.

        Raises:
            EntityNotFoundError: If the row does not exist for this company
        """
        entity = await self.get_or_raise(company_id, entity_id)
        values.pop("company_id", None)

        for field, value in values.items():
            setattr(entity, field, value)
        entity.updated_at = datetime.now(timezone.utc)

        await self.session.flush()

        logger.info(
            "Row updated",
            entity=self.entity_name,
            entity_id=str(entity_id),
            fields=sorted(values),
        )

        return entity

    async def soft_delete(self, company_id: uuid.UUID, entity_id: uuid.UUID) -> ModelT:
        """Mark a row inactive; tables without an ``active`` flag are hard deleted."""
        entity = await self.get_or_raise(company_id, entity_id)

        if not self.supports_soft_delete:
            await self.session.delete(entity)
            await self.session.flush()
            logger.info("Row deleted", entity=self.entity_name, entity_id=str(entity_id))
            return entity

        entity.deactivate()
        entity.updated_at = datetime.now(timezone.utc)
        await self.session.flush()

        logger.info("Row deactivated", entity=self.entity_name, entity_id=str(entity_id))

        return entity

    async def delete(self, company_id: uuid.UUID, entity_id: uuid.UUID) -> None:
        """Hard delete a row of a company."""
        entity = await self.get_or_raise(company_id, entity_id)
        await self.session.delete(entity)
        await self.session.flush()

        logger.info("Row deleted", entity=self.entity_name, entity_id=str(entity_id))
