"""Service-role and internal-token guards for HTTP routes."""

import hmac
from typing import Awaitable, Callable

from fastapi import Header

from .config import GatewayConfig, ServiceRole
from .errors import AccessGuardError, AuthenticationError
from .logging_config import get_logger

logger = get_logger(__name__)


def check_role(config: GatewayConfig, *allowed: ServiceRole) -> None:
    """Raise AccessGuardError unless the configured role is allowed."""
    allowed_values = [role.value for role in allowed]
    if config.service_role not in allowed_values:
        message = (
            f"Access denied: SERVICE_ROLE={config.service_role} is not in "
            f"allowed roles [{', '.join(allowed_values)}]"
        )
        logger.warning(message)
        raise AccessGuardError(message, config.service_role)


def require_role(
    config: GatewayConfig, *allowed: ServiceRole
) -> Callable[[], Awaitable[None]]:
    """FastAPI dependency gating a route on the service role."""

    async def dependency() -> None:
        check_role(config, *allowed)

    return dependency


def require_internal_token(config: GatewayConfig) -> Callable[..., Awaitable[None]]:
    """FastAPI dependency checking ``Authorization: Bearer <INTERNAL_API_TOKEN>``."""

    async def dependency(authorization: str | None = Header(default=None)) -> None:
        if not config.internal_api_token:
            raise AccessGuardError(
                "INTERNAL_API_TOKEN not configured", config.service_role
            )

        scheme, _, token = (authorization or "").partition(" ")
        if scheme.lower() != "bearer" or not hmac.compare_digest(
            token.strip().encode("utf-8"), config.internal_api_token.encode("utf-8")
        ):
            raise AuthenticationError("invalid_internal_token")

    return dependency
