"""Exception types raised across the gateway."""


class GatewayError(Exception):
    """Base class for gateway errors."""


class AuthenticationError(GatewayError):
    """Inbound request failed signature or timestamp verification."""

    def __init__(self, reason: str):
        super().__init__(f"Webhook authentication failed: {reason}")
        self.reason = reason


class ValidationError(GatewayError):
    """Inbound body is structurally invalid."""


class ConfigurationError(GatewayError):
    """Required configuration is missing or invalid."""


class AccessGuardError(GatewayError):
    """Current service role may not perform an operation."""

    def __init__(self, message: str, service_role: str):
        super().__init__(message)
        self.service_role = service_role
