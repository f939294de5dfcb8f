"""
Order management API endpoints.

This module implements the FastAPI router for the order lifecycle: intake,
listing, status transitions, bulk finalization and deletion. Every endpoint
is scoped to the company of the bearer token.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Response, status

from pdelivery.api.deps import CurrentCompanyId, OrderServiceDep
from pdelivery.core.logging import get_logger
from pdelivery.schemas.orders import (
    BulkFinalizeRequest,
    BulkFinalizeResponse,
    OrderCreateRequest,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
)
from pdelivery.services.orders.enums import OrderStatus
from pdelivery.services.orders.repository import (
    OrderAccessDeniedError,
    OrderNotFoundError,
)
from pdelivery.services.orders.service import (
    OrderProcessingError,
    OrderValidationError,
)
from pdelivery.services.orders.state_machine import StateTransitionError

logger = get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])

ORDER_ERRORS = (
    OrderNotFoundError,
    OrderAccessDeniedError,
    OrderValidationError,
    StateTransitionError,
    OrderProcessingError,
)


def order_error_to_http(e: Exception) -> HTTPException:
    """Translate an order service error into an HTTP error."""
    if isinstance(e, OrderNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    if isinstance(e, OrderAccessDeniedError):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Order belongs to another company",
        )

    if isinstance(e, OrderValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if isinstance(e, StateTransitionError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(e),
                "current_status": e.current_state.value,
                "target_status": e.target_state.value,
            },
        )

    logger.error(
        "Order processing failed",
        error=str(e),
        context=getattr(e, "context", {}),
    )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Failed to process order",
    )


@router.post(
    "/",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new order",
    description="Create an order with price snapshots and the next order number",
)
async def create_order(
    request: OrderCreateRequest,
    company_id: CurrentCompanyId,
    order_service: OrderServiceDep,
) -> OrderResponse:
    """
    Create a new order.

    Raises:
        HTTPException: 400 if a reference or item is invalid, 500 if creation fails
    """
    try:
        order = await order_service.create_order(
            company_id=company_id,
            customer_id=request.customer_id,
            neighborhood_id=request.neighborhood_id,
            payment_method_id=request.payment_method_id,
            items=[item.model_dump() for item in request.items],
            notes=request.notes,
        )
    except ORDER_ERRORS as e:
        raise order_error_to_http(e) from e

    return OrderResponse.model_validate(order)


@router.get(
    "/",
    response_model=OrderListResponse,
    summary="List orders",
    description="Paginated list of the company's orders, newest first",
)
async def list_orders(
    company_id: CurrentCompanyId,
    order_service: OrderServiceDep,
    status_filter: Optional[OrderStatus] = Query(None, alias="status", description="Filter by order status"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(50, ge=1, le=200, description="Maximum number of records to return"),
) -> OrderListResponse:
    orders, total = await order_service.list_orders(
        company_id,
        status=status_filter,
        skip=skip,
        limit=limit,
    )

    return OrderListResponse(
        orders=[OrderResponse.model_validate(order) for order in orders],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order",
)
async def get_order(
    order_id: UUID,
    company_id: CurrentCompanyId,
    order_service: OrderServiceDep,
) -> OrderResponse:
    try:
        order = await order_service.get_order(company_id, order_id)
    except ORDER_ERRORS as e:
        raise order_error_to_http(e) from e

    return OrderResponse.model_validate(order)


@router.patch(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Update order status",
    description=(
        "Move an order to another status. Finalizing records the sale in the "
        "ledger once; cancelling requires a reason."
    ),
)
async def update_order_status(
    order_id: UUID,
    request: OrderStatusUpdate,
    company_id: CurrentCompanyId,
    order_service: OrderServiceDep,
) -> OrderResponse:
    """
    Update order status.

    Raises:
        HTTPException: 400 if a cancellation has no reason, 403/404 for an
            order outside the company, 409 if the transition is not allowed,
            500 if the write fails
    """
    try:
        order = await order_service.transition_order(
            company_id,
            order_id,
            request.status,
            reason=request.reason,
        )
    except ORDER_ERRORS as e:
        raise order_error_to_http(e) from e

    return OrderResponse.model_validate(order)


@router.post(
    "/bulk-finalize",
    response_model=BulkFinalizeResponse,
    summary="Finalize several orders",
    description="Finalize the given orders in one transaction; all or nothing",
)
async def bulk_finalize_orders(
    request: BulkFinalizeRequest,
    company_id: CurrentCompanyId,
    order_service: OrderServiceDep,
) -> BulkFinalizeResponse:
    try:
        result = await order_service.bulk_finalize(company_id, request.order_ids)
    except ORDER_ERRORS as e:
        raise order_error_to_http(e) from e

    return BulkFinalizeResponse(
        finalized_ids=result.finalized_ids,
        finalized_count=len(result.finalized_ids),
        entries_created=result.entries_created,
    )


@router.delete(
    "/{order_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete order",
)
async def delete_order(
    order_id: UUID,
    company_id: CurrentCompanyId,
    order_service: OrderServiceDep,
) -> Response:
    try:
        await order_service.delete_order(company_id, order_id)
    except ORDER_ERRORS as e:
        raise order_error_to_http(e) from e

    logger.info("Order deleted", order_id=str(order_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
