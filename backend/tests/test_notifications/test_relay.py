"""
Tests for the fire-and-forget webhook relay.

HTTP traffic goes through ``httpx.MockTransport``; no network is used.
"""

import httpx
import pytest

from pdelivery.services.notifications.relay import NotificationRelay

WEBHOOK_URL = "https://hooks.example.test/pedidos"


def _relay(test_settings, handler) -> NotificationRelay:
    return NotificationRelay(
        webhook_url=WEBHOOK_URL,
        timeout=2.0,
        settings=test_settings,
        transport=httpx.MockTransport(handler),
    )


# ============================================================================
# Delivery Tests
# ============================================================================


class TestSend:
    @pytest.mark.asyncio
    async def test_successful_delivery(self, test_settings):
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(request)
            return httpx.Response(200, json={"ok": True})

        relay = _relay(test_settings, handler)

        delivered = await relay.send({"statusPedido": "pending"}, "7")
        await relay.aclose()

        assert delivered is True
        assert relay.delivered == 1
        assert str(received[0].url) == WEBHOOK_URL
        assert received[0].method == "POST"

    @pytest.mark.asyncio
    async def test_non_2xx_is_counted_not_raised(self, test_settings):
        relay = _relay(test_settings, lambda request: httpx.Response(502))

        delivered = await relay.send({"statusPedido": "pending"}, "7")
        await relay.aclose()

        assert delivered is False
        assert relay.failed == 1
        assert relay.delivered == 0

    @pytest.mark.asyncio
    async def test_timeout_is_counted_not_raised(self, test_settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        relay = _relay(test_settings, handler)

        delivered = await relay.send({"statusPedido": "entregue"}, "8")
        await relay.aclose()

        assert delivered is False
        assert relay.failed == 1


# ============================================================================
# Dispatch Tests
# ============================================================================


class TestNotifyOrder:
    @pytest.mark.asyncio
    async def test_notify_posts_order_payload(self, test_settings, make_order):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(request.content)
            return httpx.Response(204)

        relay = _relay(test_settings, handler)

        task = relay.notify_order(make_order(order_number=55))
        await relay.drain()
        await relay.aclose()

        assert task is not None
        assert len(bodies) == 1
        assert b'"numeroPedido":"55"' in bodies[0].replace(b" ", b"")
        assert relay.stats() == {"enabled": True, "delivered": 1, "failed": 0, "pending": 0}

    @pytest.mark.asyncio
    async def test_disabled_relay_sends_nothing(self, test_settings, make_order):
        calls = []
        relay = NotificationRelay(
            webhook_url="",
            settings=test_settings,
            transport=httpx.MockTransport(lambda request: calls.append(request)),
        )

        assert relay.notify_order(make_order()) is None
        assert relay.dispatch({"statusPedido": "pending"}, "1") is None
        assert calls == []
        assert relay.stats()["enabled"] is False

    @pytest.mark.asyncio
    async def test_failed_delivery_never_reaches_caller(self, test_settings, make_order):
        relay = _relay(test_settings, lambda request: httpx.Response(500))

        relay.notify_order(make_order())
        await relay.drain()
        await relay.aclose()

        assert relay.stats()["failed"] == 1
