"""Payment gateway client."""

import logging
from decimal import Decimal
from typing import Optional, Protocol

import httpx

from claimgate.config import settings
from claimgate.engine.errors import PaymentUnavailable
from claimgate.integrations.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpen,
)

logger = logging.getLogger(__name__)


class PaymentGateway(Protocol):
    """Creates payment intents; confirmation arrives later via webhook."""

    async def create_intent(self, amount: Decimal, currency: str, metadata: dict[str, str]) -> str: ...


def to_minor_units(amount: Decimal) -> int:
    """Convert a decimal amount to integer cents."""
    return int((amount * 100).quantize(Decimal("1")))


class HttpPaymentGateway:
    """Payment-intent client with circuit breaker protection."""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.endpoint = endpoint if endpoint is not None else settings.payment_endpoint
        self.api_key = api_key if api_key is not None else settings.payment_api_key
        self.timeout = (timeout_ms or settings.payment_timeout_ms) / 1000
        if breaker is None and settings.circuit_breaker_enabled:
            breaker = CircuitBreaker("payments", CircuitBreakerConfig.from_settings())
        self._breaker = breaker

    async def create_intent(self, amount: Decimal, currency: str, metadata: dict[str, str]) -> str:
        if not self.endpoint:
            raise PaymentUnavailable("payment_endpoint not configured")
        try:
            if self._breaker:
                return await self._breaker.call(self._post_intent, amount, currency, metadata)
            return await self._post_intent(amount, currency, metadata)
        except CircuitBreakerOpen as exc:
            raise PaymentUnavailable(str(exc)) from exc
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            logger.error("Payment intent creation failed: %s", exc)
            raise PaymentUnavailable(type(exc).__name__) from exc

    async def _post_intent(self, amount: Decimal, currency: str, metadata: dict[str, str]) -> str:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.endpoint.rstrip('/')}/payment_intents",
                json={
                    "amount": to_minor_units(amount),
                    "currency": currency,
                    "metadata": metadata,
                },
                headers=headers,
            )
            response.raise_for_status()
            return response.json()["id"]


_payment_gateway: Optional[HttpPaymentGateway] = None


def get_payment_gateway() -> HttpPaymentGateway:
    """Get or create payment gateway singleton."""
    global _payment_gateway
    if _payment_gateway is None:
        _payment_gateway = HttpPaymentGateway()
    return _payment_gateway
