"""
Order notification payload shaping.

The workflow engine on the other side of the webhook consumes a flat JSON
object with fixed Portuguese camelCase keys; this module builds it from a
loaded Order.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional
from zoneinfo import ZoneInfo

from pdelivery.database.models.order import Order

ORDER_DATE_FORMAT = "%d/%m/%Y, %H:%M:%S"

PAYLOAD_KEYS = (
    "nomeCliente",
    "telefone",
    "dataPedido",
    "descricaoPedido",
    "valorTotal",
    "valorEntrega",
    "valorTotalComEntrega",
    "statusPedido",
    "observacoes",
    "numeroPedido",
    "formaPagamento",
    "enderecoEntrega",
    "precisaTroco",
    "valorTroco",
)


def _money(value: Optional[Decimal]) -> float:
    return float(value or Decimal("0.00"))


def format_order_date(created_at: Optional[datetime], tz: ZoneInfo) -> str:
    """Render ``created_at`` as ``dd/mm/yyyy, HH:MM:SS`` in the business timezone."""
    if created_at is None:
        return ""
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return created_at.astimezone(tz).strftime(ORDER_DATE_FORMAT)


def build_order_payload(order: Order, tz: ZoneInfo) -> dict[str, Any]:
    """
    Build the webhook body describing an order in its current status.

    Args:
        order: Order with customer, neighborhood, payment method and items loaded
        tz: Business timezone used for ``dataPedido``

    Returns:
        Dictionary with exactly the keys of ``PAYLOAD_KEYS``
    """
    customer = order.customer
    payment_method = order.payment_method
    neighborhood = order.neighborhood

    return {
        "nomeCliente": customer.name if customer else "",
        "telefone": customer.phone if customer else "",
        "dataPedido": format_order_date(order.created_at, tz),
        "descricaoPedido": order.item_description,
        "valorTotal": _money(order.total_amount),
        "valorEntrega": _money(order.delivery_fee),
        "valorTotalComEntrega": _money(order.total_with_delivery),
        "statusPedido": order.status.value,
        "observacoes": order.notes or "",
        "numeroPedido": (
            str(order.order_number) if order.order_number is not None else str(order.id)
        ),
        "formaPagamento": payment_method.name if payment_method else "",
        "enderecoEntrega": neighborhood.name if neighborhood else "",
        "precisaTroco": False,
        "valorTroco": 0,
    }
