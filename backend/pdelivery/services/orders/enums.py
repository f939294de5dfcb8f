"""Order status and ledger enums for order lifecycle management.

This module defines the order status enum used by the kanban board, the
transition table enforced by the order state machine, and the financial
entry types written by the ledger.
"""

from enum import Enum
from typing import Dict, Set


class OrderStatus(str, Enum):
    """Order lifecycle status.

    Valid transitions (re-affirming the current status is always allowed):
    - PENDING -> EM_PRODUCAO, A_CAMINHO, ENTREGUE, CANCELADO, FINALIZADO
    - EM_PRODUCAO -> PENDING, A_CAMINHO, ENTREGUE, CANCELADO, FINALIZADO
    - A_CAMINHO -> EM_PRODUCAO, ENTREGUE, CANCELADO, FINALIZADO
    - ENTREGUE -> A_CAMINHO, CANCELADO, FINALIZADO
    - CANCELADO -> (terminal state)
    - FINALIZADO -> (terminal archival state)
    """

    PENDING = "pending"
    EM_PRODUCAO = "em_producao"
    A_CAMINHO = "a_caminho"
    ENTREGUE = "entregue"
    CANCELADO = "cancelado"
    FINALIZADO = "finalizado"

    @classmethod
    def from_string(cls, value: str) -> "OrderStatus":
        """Convert string to OrderStatus enum.

        Raises:
            ValueError: If value is not a valid status
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid_values = ", ".join([s.value for s in cls])
            raise ValueError(
                f"Invalid order status: {value}. "
                f"Valid values are: {valid_values}"
            )

    def is_terminal(self) -> bool:
        """Check if no other status can follow this one."""
        return self in {OrderStatus.CANCELADO, OrderStatus.FINALIZADO}

    def is_open(self) -> bool:
        """Check if the order is still being worked on.

        Open orders are the ones the priority escalator looks at.
        """
        return self in OPEN_ORDER_STATUSES

    @property
    def display_name(self) -> str:
        """Board column title shown to operators."""
        return STATUS_DISPLAY_NAMES[self]


class EntryType(str, Enum):
    """Financial entry direction."""

    INCOME = "income"
    EXPENSE = "expense"


OPEN_ORDER_STATUSES: frozenset[OrderStatus] = frozenset(
    {
        OrderStatus.PENDING,
        OrderStatus.EM_PRODUCAO,
        OrderStatus.A_CAMINHO,
    }
)

# Fixed kanban column order
BOARD_COLUMNS: tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.EM_PRODUCAO,
    OrderStatus.A_CAMINHO,
    OrderStatus.ENTREGUE,
    OrderStatus.CANCELADO,
    OrderStatus.FINALIZADO,
)

STATUS_DISPLAY_NAMES: Dict[OrderStatus, str] = {
    OrderStatus.PENDING: "Pedidos Abertos",
    OrderStatus.EM_PRODUCAO: "Em Produção",
    OrderStatus.A_CAMINHO: "A Caminho",
    OrderStatus.ENTREGUE: "Entregues",
    OrderStatus.CANCELADO: "Cancelados",
    OrderStatus.FINALIZADO: "Finalizados",
}

ORDER_STATUS_TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {
    OrderStatus.PENDING: {
        OrderStatus.EM_PRODUCAO,
        OrderStatus.A_CAMINHO,
        OrderStatus.ENTREGUE,
        OrderStatus.CANCELADO,
        OrderStatus.FINALIZADO,
    },
    OrderStatus.EM_PRODUCAO: {
        OrderStatus.PENDING,
        OrderStatus.A_CAMINHO,
        OrderStatus.ENTREGUE,
        OrderStatus.CANCELADO,
        OrderStatus.FINALIZADO,
    },
    OrderStatus.A_CAMINHO: {
        OrderStatus.EM_PRODUCAO,
        OrderStatus.ENTREGUE,
        OrderStatus.CANCELADO,
        OrderStatus.FINALIZADO,
    },
    OrderStatus.ENTREGUE: {
        OrderStatus.A_CAMINHO,
        OrderStatus.CANCELADO,
        OrderStatus.FINALIZADO,
    },
    OrderStatus.CANCELADO: set(),  # Terminal
    OrderStatus.FINALIZADO: set(),  # Terminal
}


def validate_order_status_transition(
    current: OrderStatus,
    new: OrderStatus
) -> bool:
    """Validate if order status transition is allowed.

    Re-affirming the current status is accepted so that repeated
    finalization requests stay idempotent.
    """
    if current == new:
        return True
    return new in ORDER_STATUS_TRANSITIONS.get(current, set())


def get_allowed_order_transitions(
    current: OrderStatus
) -> Set[OrderStatus]:
    """Get all allowed transitions from current order status.

    Args:
        current: Current order status

    Returns:
        Set of allowed next statuses, excluding the current one
    """
    return ORDER_STATUS_TRANSITIONS.get(current, set()).copy()
