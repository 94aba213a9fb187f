"""API dependencies."""

import logging
import secrets

from fastapi import Header, HTTPException

from claimgate.config import Environment, settings
from claimgate.db.base import async_session_factory
from claimgate.db.repositories import (
    CustomChargeRepository,
    OrderRepository,
    ProviderRepository,
)
from claimgate.engine import TaskService
from claimgate.integrations import get_notification_dispatcher, get_payment_gateway
from claimgate.models import Actor, ActorRole

logger = logging.getLogger("claimgate.api")


async def verify_api_key(
    authorization: str | None = Header(None),
    x_api_key: str | None = Header(None, alias="X-API-Key"),
) -> None:
    """
    Verify the shared API key.

    Fails closed: without a configured key, every request is rejected unless
    insecure dev mode was explicitly enabled in development.
    """
    if settings.allow_insecure_dev and settings.env == Environment.DEVELOPMENT:
        return

    api_key = None
    if authorization and authorization.startswith("Bearer "):
        api_key = authorization[7:]
    elif x_api_key:
        api_key = x_api_key

    if not api_key:
        raise HTTPException(
            status_code=401,
            detail="Missing authorization. Use Authorization: Bearer <key> or X-API-Key header",
        )

    if not settings.api_key:
        logger.error("No API key configured; set CLAIMGATE_API_KEY")
        raise HTTPException(
            status_code=503,
            detail="Server misconfigured: authentication not properly initialized",
        )

    if not secrets.compare_digest(api_key, settings.api_key):
        raise HTTPException(status_code=401, detail="Invalid API key")


async def get_caller(
    x_caller_id: str | None = Header(None, alias="X-Caller-Id"),
    x_caller_role: str | None = Header(None, alias="X-Caller-Role"),
) -> Actor:
    """
    Identify the caller on whose behalf the request is made.

    The API key authenticates the upstream gateway; the gateway asserts the
    end user's identity and role in these headers.
    """
    if not x_caller_id or not x_caller_role:
        raise HTTPException(status_code=401, detail="Missing X-Caller-Id or X-Caller-Role")
    try:
        role = ActorRole(x_caller_role.lower())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid caller role: {x_caller_role}")
    if role == ActorRole.SYSTEM:
        raise HTTPException(status_code=403, detail="System role cannot be asserted by callers")
    return Actor(id=x_caller_id, role=role)


def get_task_service() -> TaskService:
    """Build the service over the SQL repositories and shared gateways."""
    return TaskService(
        orders=OrderRepository(async_session_factory),
        charges=CustomChargeRepository(async_session_factory),
        providers=ProviderRepository(async_session_factory),
        notifier=get_notification_dispatcher(),
        payments=get_payment_gateway(),
    )


def validate_auth_config() -> None:
    """
    Validate authentication configuration at startup.

    Raises:
        RuntimeError: If configuration is insecure for the current environment
    """
    if settings.allow_insecure_dev and settings.env != Environment.DEVELOPMENT:
        raise RuntimeError(
            f"SECURITY ERROR: allow_insecure_dev=true is only permitted in development. "
            f"Current environment: {settings.env.value}. "
            f"Set CLAIMGATE_ALLOW_INSECURE_DEV=false for {settings.env.value}."
        )

    if settings.allow_insecure_dev:
        logger.warning("Running in INSECURE DEV MODE: API key authentication is disabled")
    else:
        logger.info("Authentication enabled: shared API key for %s", settings.env.value)
