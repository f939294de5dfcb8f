"""Order state machine implementation with transition validation.

This module implements the OrderStateMachine class for managing the delivery
order lifecycle: transition validation against the status table, transition
guards, and the revenue side effect run when an order is finalized.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession

from pdelivery.core.config import Settings, get_settings
from pdelivery.core.logging import get_logger
from pdelivery.database.models.order import Order
from pdelivery.services.financial.repository import LedgerRepository
from pdelivery.services.orders.enums import (
    OrderStatus,
    get_allowed_order_transitions,
    validate_order_status_transition,
)
from pdelivery.services.orders.repository import OrderRepository

logger = get_logger(__name__)

SALE_ENTRY_NOTES = "Lançamento automático de venda"
BULK_SALE_ENTRY_NOTES = "Lançamento automático de venda (finalização em lote)"


class StateTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(
        self,
        message: str,
        current_state: OrderStatus,
        target_state: OrderStatus,
        **context: Any
    ):
        super().__init__(message)
        self.current_state = current_state
        self.target_state = target_state
        self.context = context


class TransitionGuardError(StateTransitionError):
    """Raised when a transition is allowed by the table but its guard fails."""

    pass


@dataclass
class TransitionResult:
    """Outcome of a single applied transition."""

    order: Order
    previous_status: OrderStatus
    ledger_entry_created: bool = False


def sale_entry_description(order: Order) -> str:
    return f"Venda - Pedido #{order.order_number}"


class OrderStateMachine:
    """State machine for managing order lifecycle transitions.

    Validates moves against the transition table, runs guards keyed by target
    status and applies the finalization side effect. The status write and the
    ledger insert share one transaction.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        order_repository: Optional[OrderRepository] = None,
        ledger_repository: Optional[LedgerRepository] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize state machine with database session.

        Args:
            db_session: Async database session for persistence
            order_repository: Optional order repository override
            ledger_repository: Optional ledger repository override
            settings: Optional settings override
        """
        self.db = db_session
        self.orders = order_repository or OrderRepository(db_session)
        self.ledger = ledger_repository or LedgerRepository(db_session)
        self.settings = settings or get_settings()
        self._transition_guards: Dict[
            OrderStatus,
            Callable[[Order, Optional[str]], bool]
        ] = self._initialize_guards()
        self._side_effects: Dict[
            OrderStatus,
            Callable[[Order, OrderStatus], Awaitable[bool]]
        ] = self._initialize_side_effects()

    def _initialize_guards(
        self
    ) -> Dict[OrderStatus, Callable[[Order, Optional[str]], bool]]:
        """Initialize transition guard functions keyed by target status."""
        return {
            OrderStatus.CANCELADO: self._guard_cancellation_reason,
        }

    def _initialize_side_effects(
        self
    ) -> Dict[OrderStatus, Callable[[Order, OrderStatus], Awaitable[bool]]]:
        """Initialize side effect handlers keyed by target status."""
        return {
            OrderStatus.FINALIZADO: self._effect_finalized,
        }

    def validate_transition(
        self,
        order: Order,
        target_status: OrderStatus,
        reason: Optional[str] = None
    ) -> bool:
        """Validate if transition to target status is allowed.

        Args:
            order: Order instance to validate
            target_status: Desired target status
            reason: Reason for the transition, required for cancellation

        Returns:
            True if transition is valid

        Raises:
            StateTransitionError: If the table forbids the move
            TransitionGuardError: If the move is allowed but its guard fails
        """
        current_status = order.status

        if not validate_order_status_transition(current_status, target_status):
            allowed = get_allowed_order_transitions(current_status)
            raise StateTransitionError(
                f"Invalid transition from {current_status.value} to "
                f"{target_status.value}",
                current_state=current_status,
                target_state=target_status,
                order_id=str(order.id),
                allowed_transitions=sorted(s.value for s in allowed)
            )

        # Re-affirming the current status skips the guards
        guard_func = None
        if current_status != target_status:
            guard_func = self._transition_guards.get(target_status)
        if guard_func is not None and not guard_func(order, reason):
            raise TransitionGuardError(
                f"Transition guard failed for {current_status.value} -> "
                f"{target_status.value}",
                current_state=current_status,
                target_state=target_status,
                order_id=str(order.id),
                guard_failed=True
            )

        logger.debug(
            "State transition validated",
            order_id=str(order.id),
            transition=f"{current_status.value}->{target_status.value}",
        )

        return True

    async def apply_transition(
        self,
        order: Order,
        target_status: OrderStatus,
        reason: Optional[str] = None
    ) -> TransitionResult:
        """Apply state transition to order with side effects and commit.

        Args:
            order: Order instance to transition
            target_status: Target status to transition to
            reason: Cancellation reason, stored only for ``cancelado``

        Raises:
            StateTransitionError: If validation fails, before anything is written
            LedgerError: If the revenue entry cannot be written; the status
                change is rolled back with it
        """
        order_id = str(order.id)
        previous_status = order.status
        transition = f"{previous_status.value}->{target_status.value}"

        self.validate_transition(order, target_status, reason)

        cancellation_reason = None
        if target_status == OrderStatus.CANCELADO:
            cancellation_reason = (reason or "").strip() or order.cancellation_reason

        try:
            await self.orders.update_status(
                order,
                target_status,
                cancellation_reason=cancellation_reason,
            )

            ledger_entry_created = False
            side_effect = self._side_effects.get(target_status)
            if side_effect is not None:
                ledger_entry_created = await side_effect(order, previous_status)

            await self.db.commit()

        except Exception as e:
            await self.db.rollback()
            logger.error(
                "State transition failed",
                order_id=order_id,
                transition=transition,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        logger.info(
            "State transition applied successfully",
            order_id=order_id,
            transition=transition,
            ledger_entry_created=ledger_entry_created,
        )

        return TransitionResult(
            order=order,
            previous_status=previous_status,
            ledger_entry_created=ledger_entry_created,
        )

    def get_allowed_transitions(self, order: Order) -> Set[OrderStatus]:
        """Get allowed transitions from current order status."""
        return get_allowed_order_transitions(order.status)

    async def record_sale(
        self,
        order: Order,
        previous_status: OrderStatus,
        notes: str = SALE_ENTRY_NOTES,
    ) -> bool:
        """Insert the revenue entry of an order being finalized.

        Nothing is written when the order was already finalized before this
        transition; otherwise the ledger insert itself skips orders that
        already have their entry.

        Returns:
            True if a new entry was created
        """
        if previous_status == OrderStatus.FINALIZADO:
            return False

        now = datetime.now(self.settings.tz)
        return await self.ledger.insert_income_entry_if_absent(
            company_id=order.company_id,
            order_id=order.id,
            description=sale_entry_description(order),
            amount=order.total_with_delivery,
            entry_date=now.date(),
            entry_time=now.time().replace(microsecond=0),
            notes=notes,
        )

    # Transition Guards

    def _guard_cancellation_reason(self, order: Order, reason: Optional[str]) -> bool:
        """A cancellation must carry a non-blank reason."""
        has_reason = bool(reason and reason.strip())

        logger.debug(
            "Cancellation reason guard check",
            order_id=str(order.id),
            has_reason=has_reason
        )

        return has_reason

    # Side Effects

    async def _effect_finalized(self, order: Order, previous_status: OrderStatus) -> bool:
        return await self.record_sale(order, previous_status, SALE_ENTRY_NOTES)


def get_order_state_machine(db_session: AsyncSession) -> OrderStateMachine:
    """Factory function to create OrderStateMachine instance.

    Args:
        db_session: Async database session

    Returns:
        OrderStateMachine instance
    """
    return OrderStateMachine(db_session)
