"""
Priority escalation rule endpoints.

Rules are plain tenant CRUD; ``POST /priority-settings/escalate`` runs one
escalation pass for the caller's company without waiting for the scheduler.
"""

from fastapi import APIRouter

from pdelivery.api.deps import CurrentCompanyId, DatabaseSession
from pdelivery.api.v1.catalog import build_crud_router
from pdelivery.core.logging import get_logger
from pdelivery.database.models.priority import PrioritySetting
from pdelivery.schemas.priority import (
    EscalationRunResponse,
    PrioritySettingCreate,
    PrioritySettingResponse,
    PrioritySettingUpdate,
)
from pdelivery.services.priority.escalator import PriorityEscalator

logger = get_logger(__name__)

router = APIRouter()

escalation_router = APIRouter(prefix="/priority-settings", tags=["priority-settings"])


@escalation_router.post(
    "/escalate",
    response_model=EscalationRunResponse,
    summary="Run priority escalation now",
)
async def run_escalation(
    company_id: CurrentCompanyId,
    db: DatabaseSession,
) -> EscalationRunResponse:
    result = await PriorityEscalator(db).escalate(company_id=company_id)

    logger.info(
        "Manual priority escalation",
        company_id=str(company_id),
        escalated=result.escalated,
    )

    return EscalationRunResponse(**result.to_dict())


router.include_router(escalation_router)
router.include_router(
    build_crud_router(
        "/priority-settings",
        "priority-settings",
        PrioritySetting,
        PrioritySettingCreate,
        PrioritySettingUpdate,
        PrioritySettingResponse,
        order_by=PrioritySetting.minutes_threshold,
    )
)
