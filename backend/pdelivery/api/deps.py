"""
FastAPI dependencies for tenant resolution and service wiring.

Every business endpoint is scoped to the caller's company. The company id is
read from a verified bearer token; endpoints never accept it from the request
body or query string.
"""

from typing import Annotated, Any, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from pdelivery.core.config import get_settings
from pdelivery.core.logging import get_logger, set_tenant_id
from pdelivery.database.connection import get_db
from pdelivery.services.financial.service import FinancialService
from pdelivery.services.monitoring.board import KanbanBoard
from pdelivery.services.notifications.relay import NotificationRelay, get_notification_relay
from pdelivery.services.orders.service import OrderService

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)


def extract_company_id(claims: dict[str, Any], claim_name: str) -> Optional[UUID]:
    """
    Read the company id from token claims.

    The claim is looked up at the top level first, then inside
    ``app_metadata`` where hosted auth providers place custom claims.
    """
    raw = claims.get(claim_name)
    if raw is None:
        metadata = claims.get("app_metadata") or {}
        if isinstance(metadata, dict):
            raw = metadata.get(claim_name)

    if raw is None:
        return None

    try:
        return UUID(str(raw))
    except ValueError:
        return None


async def get_current_company_id(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> UUID:
    """
    Validate the bearer token and return the caller's company id.

    Raises:
        HTTPException: 401 if the token is missing, invalid or has no company
    """
    settings = get_settings()

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        logger.warning("Authentication failed: No credentials provided")
        raise credentials_exception

    try:
        claims = jwt.decode(
            credentials.credentials,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except JWTError as e:
        logger.warning(
            "Authentication failed: JWT validation error",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise credentials_exception

    company_id = extract_company_id(claims, settings.tenant_claim)
    if company_id is None:
        logger.warning(
            "Authentication failed: Token has no company",
            claim=settings.tenant_claim,
            subject=claims.get("sub"),
        )
        raise credentials_exception

    set_tenant_id(str(company_id))
    return company_id


DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentCompanyId = Annotated[UUID, Depends(get_current_company_id)]
Notifier = Annotated[NotificationRelay, Depends(get_notification_relay)]


def get_order_service(db: DatabaseSession, notifier: Notifier) -> OrderService:
    return OrderService(db, notifier=notifier)


def get_kanban_board(
    order_service: Annotated[OrderService, Depends(get_order_service)],
) -> KanbanBoard:
    return KanbanBoard(order_service)


def get_financial_service(db: DatabaseSession) -> FinancialService:
    return FinancialService(db)


OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
KanbanBoardDep = Annotated[KanbanBoard, Depends(get_kanban_board)]
FinancialServiceDep = Annotated[FinancialService, Depends(get_financial_service)]
