"""
Order monitoring board endpoints.

The board shows open and closed orders in six fixed status columns. Moving a
card and finalizing selected cards go through the order service, so the
lifecycle rules and the sale ledger apply exactly as on the orders API.
"""

from fastapi import APIRouter

from pdelivery.api.deps import CurrentCompanyId, KanbanBoardDep
from pdelivery.api.v1.orders import ORDER_ERRORS, order_error_to_http
from pdelivery.core.logging import get_logger
from pdelivery.schemas.monitoring import (
    BoardColumn,
    BoardResponse,
    FinalizeSelectedRequest,
    MoveCardRequest,
    MoveCardResponse,
)
from pdelivery.schemas.orders import BulkFinalizeResponse, OrderResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/monitoring", tags=["monitoring"])


@router.get(
    "/board",
    response_model=BoardResponse,
    summary="Get order board",
)
async def get_board(
    company_id: CurrentCompanyId,
    board: KanbanBoardDep,
) -> BoardResponse:
    columns = await board.load(company_id)

    return BoardResponse(
        columns=[
            BoardColumn(
                status=column_status,
                title=column_status.display_name,
                count=len(orders),
                orders=[OrderResponse.model_validate(order) for order in orders],
            )
            for column_status, orders in columns.items()
        ],
        total=sum(len(orders) for orders in columns.values()),
    )


@router.post(
    "/move",
    response_model=MoveCardResponse,
    summary="Move a card to another column",
)
async def move_card(
    request: MoveCardRequest,
    company_id: CurrentCompanyId,
    board: KanbanBoardDep,
) -> MoveCardResponse:
    try:
        order = await board.move_card(
            company_id,
            request.order_id,
            request.source_status,
            request.destination_status,
            reason=request.reason,
        )
    except ORDER_ERRORS as e:
        raise order_error_to_http(e) from e

    if order is None:
        return MoveCardResponse(moved=False)

    return MoveCardResponse(moved=True, order=OrderResponse.model_validate(order))


@router.post(
    "/finalize",
    response_model=BulkFinalizeResponse,
    summary="Finalize selected cards",
)
async def finalize_selected(
    request: FinalizeSelectedRequest,
    company_id: CurrentCompanyId,
    board: KanbanBoardDep,
) -> BulkFinalizeResponse:
    try:
        result = await board.finalize_selected(company_id, request.order_ids)
    except ORDER_ERRORS as e:
        raise order_error_to_http(e) from e

    return BulkFinalizeResponse(
        finalized_ids=result.finalized_ids,
        finalized_count=len(result.finalized_ids),
        entries_created=result.entries_created,
    )
