"""External service integrations and resilience patterns."""

from claimgate.integrations.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpen,
    CircuitState,
)
from claimgate.integrations.notifications import (
    HttpNotificationGateway,
    NotificationDispatcher,
    NotificationGateway,
    get_notification_dispatcher,
)
from claimgate.integrations.payments import (
    HttpPaymentGateway,
    PaymentGateway,
    get_payment_gateway,
)

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerOpen",
    "CircuitState",
    "HttpNotificationGateway",
    "HttpPaymentGateway",
    "NotificationDispatcher",
    "NotificationGateway",
    "PaymentGateway",
    "get_notification_dispatcher",
    "get_payment_gateway",
]
