"""Trust-domain secrets.

Inbound verification and outbound signing use unrelated secrets. Each has
its own type so one can never be passed where the other is expected.
"""

MIN_SECRET_BYTES = 32


class _TrustSecret:
    """Opaque HMAC key that never reveals itself in logs or reprs."""

    __slots__ = ("_value",)

    def __init__(self, value: bytes | str):
        if isinstance(value, str):
            value = value.encode("utf-8")
        if not isinstance(value, bytes):
            raise TypeError("Secret must be bytes or str")
        if len(value) < MIN_SECRET_BYTES:
            raise ValueError(
                f"{type(self).__name__} must be at least {MIN_SECRET_BYTES} bytes"
            )
        self._value = value

    @property
    def key(self) -> bytes:
        """Raw key bytes for HMAC computation."""
        return self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}(<redacted>)"

    __str__ = __repr__


class InboundSecret(_TrustSecret):
    """Secret shared with the event provider; verifies inbound requests."""


class OutboundSecret(_TrustSecret):
    """Secret shared with the destination; signs forwarded envelopes."""
