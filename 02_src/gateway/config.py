"""Project-level configuration and path helpers."""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Union

from .errors import ConfigurationError
from .logging_config import get_logger
from .models import InboundSecret, OutboundSecret

logger = get_logger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
DEFAULT_DB_PATH = DATA_DIR / "webhook_gateway.db"


class ServiceRole(str, Enum):
    """Role a gateway process runs as."""

    WEBHOOK_EDGE = "webhook-edge"
    INTERNAL = "internal"
    WORKER = "worker"


SERVICE_ROLES = tuple(role.value for role in ServiceRole)


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _optional(environ: Mapping[str, str], key: str) -> str | None:
    value = environ.get(key, "").strip()
    return value or None


@dataclass(frozen=True)
class GatewayConfig:
    """Process configuration, built once at startup and passed to components.

    Secrets are kept as raw strings here; ``inbound_secret()`` and
    ``outbound_secret()`` wrap them in their trust-domain types.
    """

    app_env: str = "development"
    service_role: str = "internal"
    api_host: str = "localhost"
    api_port: int = 8000
    database_url: str | None = None
    log_level: str = "INFO"
    log_file: str | None = None

    # Inbound
    entry_path: str = "/webhook/entry"
    inbound_hmac_secret: str | None = None
    timestamp_tolerance_seconds: int = 60
    replay_retention_seconds: int = 86400

    # Destination
    destination_url: str | None = None
    destination_path: str = "/api/v1/flow/create"
    outbound_hmac_secret: str | None = None
    destination_token: str | None = None
    device_id: str = "webhook-gateway"
    forward_timeout_seconds: float = 10.0
    forward_max_attempts: int = 3
    forward_base_delay_seconds: float = 1.0

    # Outcome store
    outcome_retention_seconds: int = 86400 * 7
    retention_sweep_interval_seconds: float = 3600.0

    internal_api_token: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "GatewayConfig":
        """Build configuration from environment variables."""
        if environ is None:
            environ = os.environ

        return cls(
            app_env=environ.get("APP_ENV", "development"),
            service_role=environ.get("SERVICE_ROLE", "internal"),
            api_host=environ.get("API_HOST", "localhost"),
            api_port=int(environ.get("API_PORT", "8000")),
            database_url=_optional(environ, "DATABASE_URL"),
            log_level=environ.get("LOG_LEVEL", "INFO"),
            log_file=_optional(environ, "LOG_FILE"),
            entry_path=environ.get("WEBHOOK_ENTRY_PATH", "/webhook/entry"),
            inbound_hmac_secret=_optional(environ, "WEBHOOK_HMAC_SECRET"),
            timestamp_tolerance_seconds=int(
                environ.get("WEBHOOK_TIMESTAMP_TOLERANCE_SECONDS", "60")
            ),
            replay_retention_seconds=int(
                environ.get("REPLAY_RETENTION_SECONDS", "86400")
            ),
            destination_url=_optional(environ, "MICRO_BACKEND_URL"),
            destination_path=environ.get("MICRO_BACKEND_PATH", "/api/v1/flow/create"),
            outbound_hmac_secret=_optional(environ, "MICRO_BACKEND_HMAC_SECRET"),
            destination_token=_optional(environ, "MICRO_BACKEND_JWT"),
            device_id=environ.get("MICRO_BACKEND_DEVICE_ID", "webhook-gateway"),
            forward_timeout_seconds=float(environ.get("FORWARD_TIMEOUT_SECONDS", "10")),
            forward_max_attempts=int(environ.get("FORWARD_MAX_ATTEMPTS", "3")),
            forward_base_delay_seconds=float(
                environ.get("FORWARD_BASE_DELAY_SECONDS", "1.0")
            ),
            outcome_retention_seconds=int(
                environ.get("OUTCOME_RETENTION_SECONDS", str(86400 * 7))
            ),
            retention_sweep_interval_seconds=float(
                environ.get("RETENTION_SWEEP_INTERVAL_SECONDS", "3600")
            ),
            internal_api_token=_optional(environ, "INTERNAL_API_TOKEN"),
        )

    @property
    def destination_endpoint(self) -> str | None:
        """Full destination URL, or None when forwarding is not configured."""
        if not self.destination_url:
            return None
        return f"{self.destination_url.rstrip('/')}{self.destination_path}"

    def inbound_secret(self) -> InboundSecret:
        """Secret used to verify inbound webhooks."""
        if not self.inbound_hmac_secret:
            raise ConfigurationError("WEBHOOK_HMAC_SECRET not configured")
        return InboundSecret(self.inbound_hmac_secret)

    def outbound_secret(self) -> OutboundSecret:
        """Secret used to sign forwarded envelopes."""
        if not self.outbound_hmac_secret:
            raise ConfigurationError("MICRO_BACKEND_HMAC_SECRET not configured")
        return OutboundSecret(self.outbound_hmac_secret)

    def validate(self) -> None:
        """Fail fast on misconfiguration. Collects every problem before raising."""
        errors: list[str] = []

        if self.service_role not in SERVICE_ROLES:
            errors.append(
                f"SERVICE_ROLE={self.service_role} is not one of {', '.join(SERVICE_ROLES)}"
            )

        try:
            self.inbound_secret()
        except (ConfigurationError, ValueError) as e:
            errors.append(str(e))

        if self.outbound_hmac_secret:
            try:
                self.outbound_secret()
            except ValueError as e:
                errors.append(str(e))

        if self.app_env == "production" and not self.destination_url:
            errors.append("Production requires MICRO_BACKEND_URL to be configured")

        if self.forward_max_attempts < 1:
            errors.append("FORWARD_MAX_ATTEMPTS must be at least 1")

        if self.service_role == ServiceRole.WEBHOOK_EDGE.value and self.internal_api_token:
            logger.warning(
                "INTERNAL_API_TOKEN is set on SERVICE_ROLE=webhook-edge; "
                "internal routes stay forbidden on the public edge"
            )

        if errors:
            message = "\n  ".join(errors)
            logger.error("Configuration validation failed:\n  %s", message)
            raise ConfigurationError(message)

        logger.info(
            "Configuration validated: APP_ENV=%s, SERVICE_ROLE=%s",
            self.app_env,
            self.service_role,
        )
