"""
Financial module endpoints: ledger entries, purchase budgets, cash flow,
chart of accounts and the orders extract.

Sale entries are written by the order lifecycle; this router manages manual
entries and the reporting views over all of them.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Response, status

from pdelivery.api.deps import CurrentCompanyId, FinancialServiceDep
from pdelivery.core.config import get_settings
from pdelivery.core.logging import get_logger
from pdelivery.schemas.financial import (
    AccountGroupResponse,
    BudgetItemCreate,
    BudgetStatusUpdate,
    CashFlowDayResponse,
    CashFlowResponse,
    ChartOfAccountsResponse,
    FinancialEntryCreate,
    FinancialEntryResponse,
    FinancialEntryUpdate,
    OrdersExtractResponse,
    PurchaseBudgetCreate,
    PurchaseBudgetResponse,
)
from pdelivery.schemas.catalog import PageResponse
from pdelivery.services.catalog.repository import EntityNotFoundError
from pdelivery.services.financial.repository import LedgerError
from pdelivery.services.financial.service import (
    FinancialServiceError,
    FinancialValidationError,
)
from pdelivery.services.orders.enums import EntryType

logger = get_logger(__name__)

router = APIRouter(prefix="/financial", tags=["financial"])

FINANCIAL_ERRORS = (EntityNotFoundError, FinancialServiceError, LedgerError)


def financial_error_to_http(e: Exception) -> HTTPException:
    """Translate a financial service error into an HTTP error."""
    if isinstance(e, EntityNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    if isinstance(e, FinancialValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.error(
        "Financial operation failed",
        error=str(e),
        context=getattr(e, "context", {}),
    )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Failed to process financial operation",
    )


@router.get(
    "/entries",
    response_model=list[FinancialEntryResponse],
    summary="List ledger entries",
)
async def list_entries(
    company_id: CurrentCompanyId,
    financial_service: FinancialServiceDep,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    entry_type: Optional[EntryType] = Query(None),
) -> list[FinancialEntryResponse]:
    try:
        entries = await financial_service.ledger.list_entries(
            company_id,
            start_date,
            end_date,
            entry_type=entry_type,
        )
    except FINANCIAL_ERRORS as e:
        raise financial_error_to_http(e) from e

    return [FinancialEntryResponse.model_validate(entry) for entry in entries]


@router.post(
    "/entries",
    response_model=FinancialEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a manual entry",
)
async def create_entry(
    request: FinancialEntryCreate,
    company_id: CurrentCompanyId,
    financial_service: FinancialServiceDep,
) -> FinancialEntryResponse:
    try:
        entry = await financial_service.create_entry(company_id, **request.model_dump())
    except FINANCIAL_ERRORS as e:
        raise financial_error_to_http(e) from e

    return FinancialEntryResponse.model_validate(entry)


@router.patch(
    "/entries/{entry_id}",
    response_model=FinancialEntryResponse,
    summary="Update a ledger entry",
)
async def update_entry(
    entry_id: UUID,
    request: FinancialEntryUpdate,
    company_id: CurrentCompanyId,
    financial_service: FinancialServiceDep,
) -> FinancialEntryResponse:
    try:
        entry = await financial_service.update_entry(
            company_id,
            entry_id,
            **request.model_dump(exclude_unset=True),
        )
    except FINANCIAL_ERRORS as e:
        raise financial_error_to_http(e) from e

    return FinancialEntryResponse.model_validate(entry)


@router.delete(
    "/entries/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a ledger entry",
)
async def delete_entry(
    entry_id: UUID,
    company_id: CurrentCompanyId,
    financial_service: FinancialServiceDep,
) -> Response:
    try:
        await financial_service.delete_entry(company_id, entry_id)
    except FINANCIAL_ERRORS as e:
        raise financial_error_to_http(e) from e

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/cash-flow",
    response_model=CashFlowResponse,
    summary="Cash flow",
    description="Income, expenses and balance of a date window, grouped per day",
)
async def get_cash_flow(
    company_id: CurrentCompanyId,
    financial_service: FinancialServiceDep,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
) -> CashFlowResponse:
    try:
        summary = await financial_service.cash_flow(company_id, start_date, end_date)
    except FINANCIAL_ERRORS as e:
        raise financial_error_to_http(e) from e

    return CashFlowResponse(
        start_date=summary.start_date,
        end_date=summary.end_date,
        total_income=summary.total_income,
        total_expenses=summary.total_expenses,
        balance=summary.balance,
        days=[
            CashFlowDayResponse(
                day=day.day,
                income=day.income,
                expenses=day.expenses,
                balance=day.balance,
                entries=[FinancialEntryResponse.model_validate(e) for e in day.entries],
            )
            for day in summary.days
        ],
    )


@router.get(
    "/chart-of-accounts",
    response_model=ChartOfAccountsResponse,
    summary="Chart of accounts report",
)
async def get_chart_of_accounts(
    company_id: CurrentCompanyId,
    financial_service: FinancialServiceDep,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
) -> ChartOfAccountsResponse:
    try:
        report = await financial_service.chart_of_accounts_report(company_id, start_date, end_date)
    except FINANCIAL_ERRORS as e:
        raise financial_error_to_http(e) from e

    return ChartOfAccountsResponse(
        total_income=report.total_income,
        total_expenses=report.total_expenses,
        balance=report.balance,
        by_cost_center=[AccountGroupResponse.model_validate(g) for g in report.by_cost_center],
        by_category=[AccountGroupResponse.model_validate(g) for g in report.by_category],
    )


@router.get(
    "/orders-extract",
    response_model=OrdersExtractResponse,
    summary="Orders extract",
    description=(
        "Orders created in a date window with production cost, sale value and "
        "gross profit. Both dates default to today in the business timezone."
    ),
)
async def get_orders_extract(
    company_id: CurrentCompanyId,
    financial_service: FinancialServiceDep,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
) -> OrdersExtractResponse:
    today = datetime.now(get_settings().tz).date()
    try:
        extract = await financial_service.orders_extract(
            company_id,
            start_date or today,
            end_date or today,
        )
    except FINANCIAL_ERRORS as e:
        raise financial_error_to_http(e) from e

    return OrdersExtractResponse.model_validate(extract)


@router.get(
    "/budgets",
    response_model=PageResponse[PurchaseBudgetResponse],
    summary="List purchase budgets",
)
async def list_budgets(
    company_id: CurrentCompanyId,
    financial_service: FinancialServiceDep,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
) -> PageResponse[PurchaseBudgetResponse]:
    budgets, total = await financial_service.budgets.list(company_id, skip=skip, limit=limit)
    return PageResponse[PurchaseBudgetResponse](
        items=[PurchaseBudgetResponse.model_validate(b) for b in budgets],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get(
    "/budgets/{budget_id}",
    response_model=PurchaseBudgetResponse,
    summary="Get purchase budget",
)
async def get_budget(
    budget_id: UUID,
    company_id: CurrentCompanyId,
    financial_service: FinancialServiceDep,
) -> PurchaseBudgetResponse:
    try:
        budget = await financial_service.budgets.get_or_raise(company_id, budget_id)
    except FINANCIAL_ERRORS as e:
        raise financial_error_to_http(e) from e

    return PurchaseBudgetResponse.model_validate(budget)


@router.post(
    "/budgets",
    response_model=PurchaseBudgetResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create purchase budget",
)
async def create_budget(
    request: PurchaseBudgetCreate,
    company_id: CurrentCompanyId,
    financial_service: FinancialServiceDep,
) -> PurchaseBudgetResponse:
    try:
        budget = await financial_service.create_budget(
            company_id,
            name=request.name,
            description=request.description,
            budget_date=request.budget_date,
            items=[item.model_dump() for item in request.items],
        )
    except FINANCIAL_ERRORS as e:
        raise financial_error_to_http(e) from e

    return PurchaseBudgetResponse.model_validate(budget)


@router.patch(
    "/budgets/{budget_id}/status",
    response_model=PurchaseBudgetResponse,
    summary="Approve or reject a budget",
)
async def update_budget_status(
    budget_id: UUID,
    request: BudgetStatusUpdate,
    company_id: CurrentCompanyId,
    financial_service: FinancialServiceDep,
) -> PurchaseBudgetResponse:
    try:
        budget = await financial_service.set_budget_status(company_id, budget_id, request.status)
    except FINANCIAL_ERRORS as e:
        raise financial_error_to_http(e) from e

    return PurchaseBudgetResponse.model_validate(budget)


@router.delete(
    "/budgets/{budget_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete purchase budget",
)
async def delete_budget(
    budget_id: UUID,
    company_id: CurrentCompanyId,
    financial_service: FinancialServiceDep,
) -> Response:
    try:
        await financial_service.delete_budget(company_id, budget_id)
    except FINANCIAL_ERRORS as e:
        raise financial_error_to_http(e) from e

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/budgets/{budget_id}/items",
    response_model=PurchaseBudgetResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a budget item",
)
async def add_budget_item(
    budget_id: UUID,
    request: BudgetItemCreate,
    company_id: CurrentCompanyId,
    financial_service: FinancialServiceDep,
) -> PurchaseBudgetResponse:
    try:
        budget = await financial_service.add_budget_item(
            company_id,
            budget_id,
            request.model_dump(),
        )
    except FINANCIAL_ERRORS as e:
        raise financial_error_to_http(e) from e

    return PurchaseBudgetResponse.model_validate(budget)


@router.delete(
    "/budgets/{budget_id}/items/{item_id}",
    response_model=PurchaseBudgetResponse,
    summary="Remove a budget item",
)
async def remove_budget_item(
    budget_id: UUID,
    item_id: UUID,
    company_id: CurrentCompanyId,
    financial_service: FinancialServiceDep,
) -> PurchaseBudgetResponse:
    try:
        budget = await financial_service.remove_budget_item(company_id, budget_id, item_id)
    except FINANCIAL_ERRORS as e:
        raise financial_error_to_http(e) from e

    return PurchaseBudgetResponse.model_validate(budget)
