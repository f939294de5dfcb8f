"""
Fire-and-forget order webhook relay.

After every order status write the service hands the order to the relay,
which posts a JSON payload to the configured workflow webhook on a detached
asyncio task. Delivery is at most once: a non-2xx answer, a timeout or a
transport error is logged and counted, never retried and never raised to the
caller.
"""

import asyncio
from typing import Any, Optional

import httpx

from pdelivery.core.config import Settings, get_settings
from pdelivery.core.logging import get_logger
from pdelivery.database.models.order import Order
from pdelivery.services.notifications.payload import build_order_payload

logger = get_logger(__name__)


class NotificationServiceError(Exception):
    """Base exception for notification errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.context = context


class NotificationDeliveryError(NotificationServiceError):
    """Webhook answered with a non-2xx status."""

    pass


class NotificationRelay:
    """
    Webhook sender sharing one pooled ``httpx.AsyncClient``.

    Attributes:
        webhook_url: Target URL; empty disables dispatch
        timeout: Per-request timeout in seconds
        delivered: Number of payloads acknowledged with 2xx
        failed: Number of payloads that could not be delivered
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        timeout: Optional[float] = None,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.webhook_url = (
            webhook_url if webhook_url is not None else self.settings.notification_webhook_url
        )
        self.timeout = timeout if timeout is not None else self.settings.notification_timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._client_lock: Optional[asyncio.Lock] = None
        self._tasks: set[asyncio.Task] = set()
        self.delivered = 0
        self.failed = 0

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def _get_lock(self) -> asyncio.Lock:
        if self._client_lock is None:
            self._client_lock = asyncio.Lock()
        return self._client_lock

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client."""
        if self._client is not None and not self._client.is_closed:
            return self._client

        async with self._get_lock():
            if self._client is None or self._client.is_closed:
                self._client = httpx.AsyncClient(
                    timeout=self.timeout,
                    limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
                    transport=self._transport,
                )
        return self._client

    async def send(self, payload: dict[str, Any], order_ref: str) -> bool:
        """
        POST one payload to the webhook.

        Returns:
            True if the webhook answered 2xx, False otherwise
        """
        try:
            client = await self._get_client()
            response = await client.post(self.webhook_url, json=payload)
            if not response.is_success:
                raise NotificationDeliveryError(
                    "Webhook rejected notification",
                    status_code=response.status_code,
                )

        except (httpx.HTTPError, NotificationDeliveryError) as e:
            self.failed += 1
            logger.warning(
                "Order notification not delivered",
                order_number=order_ref,
                status_pedido=payload.get("statusPedido"),
                error=str(e),
                error_type=type(e).__name__,
                **getattr(e, "context", {}),
            )
            return False

        self.delivered += 1
        logger.info(
            "Order notification delivered",
            order_number=order_ref,
            status_pedido=payload.get("statusPedido"),
            status_code=response.status_code,
        )
        return True

    def dispatch(self, payload: dict[str, Any], order_ref: str) -> Optional[asyncio.Task]:
        """
        Schedule delivery of a payload without waiting for it.

        The task reference is kept until it completes so it is not garbage
        collected mid-flight.
        """
        if not self.enabled:
            logger.debug("Notification webhook disabled", order_number=order_ref)
            return None

        task = asyncio.create_task(self.send(payload, order_ref))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def notify_order(self, order: Order) -> Optional[asyncio.Task]:
        """Build the payload of an order and dispatch it."""
        if not self.enabled:
            return None

        try:
            payload = build_order_payload(order, self.settings.tz)
        except Exception as e:
            self.failed += 1
            logger.error(
                "Failed to build order notification",
                order_id=str(order.id),
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        return self.dispatch(payload, payload["numeroPedido"])

    async def drain(self) -> None:
        """Wait for every in-flight delivery."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def stats(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "delivered": self.delivered,
            "failed": self.failed,
            "pending": len(self._tasks),
        }

    async def aclose(self) -> None:
        """Finish in-flight deliveries and close the HTTP client."""
        await self.drain()
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None


_relay: Optional[NotificationRelay] = None


def get_notification_relay() -> NotificationRelay:
    """Get or create the process-wide relay."""
    global _relay

    if _relay is None:
        _relay = NotificationRelay()
    return _relay


async def close_notification_relay() -> None:
    """Close the process-wide relay. Called during application shutdown."""
    global _relay

    if _relay is not None:
        await _relay.aclose()
        _relay = None
