"""Pytest configuration and fixtures."""

import hashlib
import hmac
import sys
from pathlib import Path

import httpx
import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

INBOUND_SECRET = "inbound_provider_secret_at_least_32_chars!!"
OUTBOUND_SECRET = "test_micro_backend_secret_at_least_32_chars_long_!!"
DESTINATION_URL = "http://destination.test"
ENTRY_PATH = "/webhook/entry"
NOW = 1_700_000_000


class FakeDestination:
    """MockTransport handler replaying scripted statuses or exceptions.

    The last scripted outcome repeats once the script runs out.
    """

    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [201])
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        if outcome < 400:
            return httpx.Response(outcome, json={"flow_id": "flow_123"})
        return httpx.Response(outcome, json={"error": f"status {outcome}"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


class SleepRecorder:
    """Stand-in for asyncio.sleep that only records delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def clock():
    """Frozen clock at a fixed Unix time."""
    from gateway.clock import FrozenClock

    return FrozenClock(NOW)


@pytest.fixture
def inbound_secret():
    from gateway.models import InboundSecret

    return InboundSecret(INBOUND_SECRET)


@pytest.fixture
def outbound_secret():
    from gateway.models import OutboundSecret

    return OutboundSecret(OUTBOUND_SECRET)


@pytest.fixture
def config():
    """Fully configured gateway using in-memory storage."""
    from gateway.config import GatewayConfig

    return GatewayConfig(
        app_env="staging",
        service_role="internal",
        database_url=":memory:",
        inbound_hmac_secret=INBOUND_SECRET,
        outbound_hmac_secret=OUTBOUND_SECRET,
        destination_url=DESTINATION_URL,
        destination_token="jwt_token_min_32_chars_long_!!!!!!",
        device_id="webhook-gateway",
        internal_api_token="internal-token",
        retention_sweep_interval_seconds=3600.0,
    )


@pytest.fixture
def sign_inbound():
    """Build provider-style headers for a body."""

    def _sign(
        body: bytes,
        timestamp: int = NOW,
        path: str = ENTRY_PATH,
        secret: str = INBOUND_SECRET,
        prefix: str = "sha256=",
    ) -> dict[str, str]:
        digest = hmac.new(
            secret.encode("utf-8"), path.encode("utf-8") + b"\n" + body, hashlib.sha256
        ).hexdigest()
        return {
            "Content-Type": "application/json",
            "X-Signature": f"{prefix}{digest}",
            "X-Timestamp": str(timestamp),
        }

    return _sign


@pytest.fixture
def destination():
    """Factory for scripted destinations."""
    return FakeDestination


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from gateway.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()
