"""
Tests for the order webhook payload.
"""

from datetime import datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from pdelivery.services.notifications.payload import (
    PAYLOAD_KEYS,
    build_order_payload,
    format_order_date,
)
from pdelivery.services.orders.enums import OrderStatus

SAO_PAULO = ZoneInfo("America/Sao_Paulo")


class TestFormatOrderDate:
    def test_renders_in_business_timezone(self):
        created = datetime(2024, 3, 5, 17, 30, 15, tzinfo=timezone.utc)

        assert format_order_date(created, SAO_PAULO) == "05/03/2024, 14:30:15"

    def test_naive_timestamp_is_utc(self):
        assert format_order_date(datetime(2024, 1, 2, 3, 4, 5), SAO_PAULO) == "02/01/2024, 00:04:05"

    def test_missing_timestamp(self):
        assert format_order_date(None, SAO_PAULO) == ""


class TestBuildOrderPayload:
    def test_payload_has_exactly_the_contract_keys(self, make_order):
        payload = build_order_payload(make_order(), SAO_PAULO)

        assert tuple(payload) == PAYLOAD_KEYS

    def test_payload_values(self, make_order):
        order = make_order(
            status=OrderStatus.A_CAMINHO,
            order_number=31,
            total_amount=Decimal("45.00"),
            delivery_fee=Decimal("5.00"),
            items=[(2, "Açaí 500ml"), (1, "Água")],
            notes="Interfone quebrado",
        )

        payload = build_order_payload(order, SAO_PAULO)

        assert payload["nomeCliente"] == "Maria Silva"
        assert payload["telefone"] == "5511999990000"
        assert payload["dataPedido"] == "05/03/2024, 14:30:15"
        assert payload["descricaoPedido"] == "2x Açaí 500ml, 1x Água"
        assert payload["valorTotal"] == 45.0
        assert payload["valorEntrega"] == 5.0
        assert payload["valorTotalComEntrega"] == 50.0
        assert payload["statusPedido"] == "a_caminho"
        assert payload["observacoes"] == "Interfone quebrado"
        assert payload["numeroPedido"] == "31"
        assert payload["formaPagamento"] == "PIX"
        assert payload["enderecoEntrega"] == "Centro"
        assert payload["precisaTroco"] is False
        assert payload["valorTroco"] == 0

    def test_missing_notes_become_empty_string(self, make_order):
        payload = build_order_payload(make_order(notes=None), SAO_PAULO)

        assert payload["observacoes"] == ""
