"""
Tenant-scoped CRUD endpoints for reference tables.

Customers, neighborhoods, payment methods, products, items, cost centers and
expense categories all expose the same five endpoints. ``build_crud_router``
generates them from the model and its schemas.
"""

from typing import Any, Optional, Type
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Response, status
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError

from pdelivery.api.deps import CurrentCompanyId, DatabaseSession
from pdelivery.core.logging import get_logger
from pdelivery.database.base import TenantModel
from pdelivery.database.models.catalog import (
    Customer,
    Item,
    Neighborhood,
    PaymentMethod,
    Product,
)
from pdelivery.database.models.financial import CostCenter, ExpenseCategory
from pdelivery.schemas.catalog import (
    CustomerCreate,
    CustomerResponse,
    CustomerUpdate,
    ItemCreate,
    ItemResponse,
    ItemUpdate,
    NeighborhoodCreate,
    NeighborhoodResponse,
    NeighborhoodUpdate,
    PageResponse,
    PaymentMethodCreate,
    PaymentMethodResponse,
    PaymentMethodUpdate,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
)
from pdelivery.schemas.financial import (
    CostCenterCreate,
    CostCenterResponse,
    CostCenterUpdate,
    ExpenseCategoryCreate,
    ExpenseCategoryResponse,
    ExpenseCategoryUpdate,
)
from pdelivery.services.catalog.repository import EntityNotFoundError, TenantCRUDRepository

logger = get_logger(__name__)


async def check_references(
    db,
    company_id: UUID,
    values: dict[str, Any],
    references: dict[str, Type[TenantModel]],
) -> None:
    """
    Reject foreign keys that point outside the caller's company.

    Raises:
        HTTPException: 400 if a referenced row is not one of the company's
    """
    for field_name, model in references.items():
        ref_id = values.get(field_name)
        if ref_id is None:
            continue
        if await TenantCRUDRepository(db, model).get(company_id, ref_id) is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{model.__name__} not found",
            )


def build_crud_router(
    prefix: str,
    tag: str,
    model: Type[TenantModel],
    create_schema: Type[BaseModel],
    update_schema: Type[BaseModel],
    response_schema: Type[BaseModel],
    references: Optional[dict[str, Type[TenantModel]]] = None,
    order_by: Optional[Any] = None,
) -> APIRouter:
    """
    Build list/get/create/update/delete endpoints for one tenant table.

    Delete deactivates rows that carry an ``active`` flag and removes the
    others.
    """
    router = APIRouter(prefix=prefix, tags=[tag])
    references = references or {}
    entity = model.__name__
    ordering = order_by if order_by is not None else getattr(model, "name", None)

    @router.get("/", response_model=PageResponse[response_schema], summary=f"List {tag}")
    async def list_rows(
        company_id: CurrentCompanyId,
        db: DatabaseSession,
        active_only: bool = Query(False, description="Only active rows"),
        skip: int = Query(0, ge=0),
        limit: int = Query(100, ge=1, le=500),
    ):
        repository = TenantCRUDRepository(db, model)
        rows, total = await repository.list(
            company_id,
            active_only=active_only,
            skip=skip,
            limit=limit,
            order_by=ordering,
        )
        return PageResponse[response_schema](
            items=[response_schema.model_validate(row) for row in rows],
            total=total,
            skip=skip,
            limit=limit,
        )

    @router.get("/{entity_id}", response_model=response_schema, summary=f"Get {entity}")
    async def get_row(entity_id: UUID, company_id: CurrentCompanyId, db: DatabaseSession):
        try:
            row = await TenantCRUDRepository(db, model).get_or_raise(company_id, entity_id)
        except EntityNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
        return response_schema.model_validate(row)

    @router.post(
        "/",
        response_model=response_schema,
        status_code=status.HTTP_201_CREATED,
        summary=f"Create {entity}",
    )
    async def create_row(
        request: create_schema,
        company_id: CurrentCompanyId,
        db: DatabaseSession,
    ):
        values = request.model_dump()
        await check_references(db, company_id, values, references)

        try:
            row = await TenantCRUDRepository(db, model).create(company_id, **values)
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"{entity} conflicts with existing data",
            ) from e

        return response_schema.model_validate(row)

    @router.patch("/{entity_id}", response_model=response_schema, summary=f"Update {entity}")
    async def update_row(
        entity_id: UUID,
        request: update_schema,
        company_id: CurrentCompanyId,
        db: DatabaseSession,
    ):
        values = request.model_dump(exclude_unset=True)
        await check_references(db, company_id, values, references)

        try:
            row = await TenantCRUDRepository(db, model).update(company_id, entity_id, **values)
            await db.commit()
        except EntityNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
        except IntegrityError as e:
            await db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"{entity} conflicts with existing data",
            ) from e

        return response_schema.model_validate(row)

    @router.delete(
        "/{entity_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        summary=f"Delete {entity}",
    )
    async def delete_row(entity_id: UUID, company_id: CurrentCompanyId, db: DatabaseSession):
        try:
            await TenantCRUDRepository(db, model).soft_delete(company_id, entity_id)
            await db.commit()
        except EntityNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
        except IntegrityError as e:
            await db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"{entity} is still referenced",
            ) from e

        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return router


customers_router = build_crud_router(
    "/customers",
    "customers",
    Customer,
    CustomerCreate,
    CustomerUpdate,
    CustomerResponse,
    references={"neighborhood_id": Neighborhood},
)

neighborhoods_router = build_crud_router(
    "/neighborhoods",
    "neighborhoods",
    Neighborhood,
    NeighborhoodCreate,
    NeighborhoodUpdate,
    NeighborhoodResponse,
)

payment_methods_router = build_crud_router(
    "/payment-methods",
    "payment-methods",
    PaymentMethod,
    PaymentMethodCreate,
    PaymentMethodUpdate,
    PaymentMethodResponse,
)

products_router = build_crud_router(
    "/products",
    "products",
    Product,
    ProductCreate,
    ProductUpdate,
    ProductResponse,
)

items_router = build_crud_router(
    "/items",
    "items",
    Item,
    ItemCreate,
    ItemUpdate,
    ItemResponse,
)

cost_centers_router = build_crud_router(
    "/cost-centers",
    "cost-centers",
    CostCenter,
    CostCenterCreate,
    CostCenterUpdate,
    CostCenterResponse,
)

expense_categories_router = build_crud_router(
    "/expense-categories",
    "expense-categories",
    ExpenseCategory,
    ExpenseCategoryCreate,
    ExpenseCategoryUpdate,
    ExpenseCategoryResponse,
    references={"cost_center_id": CostCenter},
)

catalog_routers = [
    customers_router,
    neighborhoods_router,
    payment_methods_router,
    products_router,
    items_router,
    cost_centers_router,
    expense_categories_router,
]
