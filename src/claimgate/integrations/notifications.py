"""Notification gateway and fire-and-forget dispatch."""

import asyncio
import logging
from typing import Any, Optional, Protocol

import httpx

from claimgate.config import settings
from claimgate.integrations.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from claimgate.models import NotificationEvent
from claimgate.observability.metrics import metrics

logger = logging.getLogger(__name__)


class NotificationGateway(Protocol):
    """Pushes an event to a user. Delivery is best effort."""

    async def notify(self, user_id: str, event: NotificationEvent, data: dict[str, Any]) -> None: ...


class HttpNotificationGateway:
    """
    Posts notifications to the push relay.

    Usage:
        gateway = HttpNotificationGateway()
        await gateway.notify("cust-1", NotificationEvent.ORDER_ACCEPTED, {"order_id": "..."})
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        auth_token: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.endpoint = endpoint if endpoint is not None else settings.notification_endpoint
        self.auth_token = auth_token if auth_token is not None else settings.notification_auth_token
        self.timeout = (timeout_ms or settings.notification_timeout_ms) / 1000
        if breaker is None and settings.circuit_breaker_enabled:
            breaker = CircuitBreaker("notifications", CircuitBreakerConfig.from_settings())
        self._breaker = breaker

    async def notify(self, user_id: str, event: NotificationEvent, data: dict[str, Any]) -> None:
        if not self.endpoint:
            logger.debug("notification_endpoint not configured, dropping %s for %s", event.value, user_id)
            return
        if self._breaker:
            await self._breaker.call(self._post, user_id, event, data)
        else:
            await self._post(user_id, event, data)

    async def _post(self, user_id: str, event: NotificationEvent, data: dict[str, Any]) -> None:
        headers = {"Content-Type": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.endpoint.rstrip('/')}/notify",
                json={"user_id": user_id, "event": event.value, "data": data},
                headers=headers,
            )
            response.raise_for_status()


class NotificationDispatcher:
    """
    Schedules notifications after a transition commits.

    Dispatch never blocks the caller and a failed delivery never reaches
    the operation that triggered it.
    """

    def __init__(self, gateway: NotificationGateway):
        self.gateway = gateway
        self._pending: set[asyncio.Task] = set()

    def dispatch(self, user_id: Optional[str], event: NotificationEvent, data: dict[str, Any]) -> None:
        if not user_id:
            return
        task = asyncio.create_task(self._send(user_id, event, data))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for in-flight notifications (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _send(self, user_id: str, event: NotificationEvent, data: dict[str, Any]) -> None:
        try:
            await self.gateway.notify(user_id, event, data)
        except Exception as exc:
            metrics.inc_counter("notifications.failed", event=event.value)
            logger.warning("Notification %s to %s failed: %s", event.value, user_id, exc)
            return
        metrics.inc_counter("notifications.sent", event=event.value)


_dispatcher: Optional[NotificationDispatcher] = None


def get_notification_dispatcher() -> NotificationDispatcher:
    """Get or create the process-wide dispatcher over the HTTP gateway."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher(HttpNotificationGateway())
    return _dispatcher
