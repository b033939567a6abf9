"""Forwarding to the destination service.

Handles the backend-to-backend handshake for one event:
1. Adapt the inbound body to the destination envelope
2. Sign it with the destination secret (the inbound signature is never reused)
3. Attach bearer token, device id and correlation id
4. Send with retries
"""

from typing import Any

from ..adapter import PayloadAdapter
from ..clock import IClock
from ..config import GatewayConfig
from ..errors import ConfigurationError
from ..logging_config import get_logger
from ..models import ForwardResult, ForwardState, SignedPayload
from ..signing import OutboundSigner
from .client import AttemptHandler, IForwardingClient

logger = get_logger(__name__)


def build_headers(
    signed: SignedPayload,
    device_id: str,
    token: str | None = None,
    correlation_id: str | None = None,
) -> dict[str, str]:
    """Request headers per the destination contract."""
    headers = {
        "Content-Type": "application/json",
        "X-Signature": signed.signature,
        "X-Timestamp": signed.timestamp,
        "X-Device-ID": device_id,
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    if correlation_id:
        if correlation_id.isascii() and correlation_id.isprintable():
            headers["X-Correlation-Id"] = correlation_id
        else:
            logger.warning(
                "Dropping non-ASCII correlation id from outbound headers",
                extra={"context": {"correlation_id": correlation_id}},
            )
    return headers


class DestinationForwarder:
    """Adapts, signs and sends one event to the configured destination."""

    def __init__(
        self,
        config: GatewayConfig,
        adapter: PayloadAdapter,
        signer: OutboundSigner,
        client: IForwardingClient,
        clock: IClock,
    ):
        self._config = config
        self._adapter = adapter
        self._signer = signer
        self._client = client
        self._clock = clock

    async def forward(
        self,
        payload: dict[str, Any],
        internal_event_id: str,
        correlation_id: str | None = None,
        on_attempt: AttemptHandler | None = None,
    ) -> ForwardResult:
        """Forward one event.

        Raises ConfigurationError when the destination secret is missing.
        An unset destination URL skips forwarding and reports success.
        """
        endpoint = self._config.destination_endpoint
        if not endpoint:
            logger.warning("MICRO_BACKEND_URL not configured; skipping forward")
            return ForwardResult(ok=True, status=204, state=ForwardState.NOT_STARTED)

        secret = self._config.outbound_secret()

        envelope = self._adapter.adapt(payload, internal_event_id, correlation_id)
        # Signed once; every retry replays these exact bytes and headers
        signed = self._signer.sign(envelope, secret, self._clock.now())
        headers = build_headers(
            signed,
            device_id=self._config.device_id,
            token=self._config.destination_token,
            correlation_id=correlation_id,
        )

        logger.info(
            "Forwarding to destination: url=%s internal_event_id=%s correlation_id=%s",
            endpoint,
            internal_event_id,
            correlation_id,
        )

        result = await self._client.send(endpoint, signed.body, headers, on_attempt)

        if not result.ok:
            logger.error(
                "Failed to forward to destination: status=%s state=%s",
                result.status,
                result.state.value,
            )

        return result
