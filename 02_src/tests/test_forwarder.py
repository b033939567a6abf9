"""Tests for DestinationForwarder."""

import dataclasses
import hashlib
import hmac
import json
import random

import pytest

from gateway.adapter import PayloadAdapter
from gateway.errors import ConfigurationError
from gateway.forwarding import DestinationForwarder, ForwardingClient, RetryPolicy
from gateway.forwarding.forwarder import build_headers
from gateway.models import SignedPayload
from gateway.signing import OutboundSigner

from conftest import INBOUND_SECRET, OUTBOUND_SECRET

PAYLOAD = {
    "type": "user.created",
    "id": "evt_123",
    "data": {"user_id": "456", "email": "test@example.com"},
}


def make_forwarder(config, clock, dest, sleep_recorder):
    client = ForwardingClient(
        dest.client(), RetryPolicy(), sleep=sleep_recorder, rng=random.Random(0)
    )
    return DestinationForwarder(
        config, PayloadAdapter(clock), OutboundSigner(), client, clock
    )


class TestDestinationForwarder:
    """Tests for DestinationForwarder.forward()."""

    @pytest.mark.asyncio
    async def test_posts_to_destination_endpoint(
        self, config, clock, destination, sleep_recorder
    ):
        dest = destination([201])
        result = await make_forwarder(config, clock, dest, sleep_recorder).forward(
            PAYLOAD, "evt_internal_789", "corr_123"
        )

        assert result.ok
        assert str(dest.requests[0].url) == "http://destination.test/api/v1/flow/create"

    @pytest.mark.asyncio
    async def test_includes_contract_headers(
        self, config, clock, destination, sleep_recorder
    ):
        dest = destination([201])
        await make_forwarder(config, clock, dest, sleep_recorder).forward(
            PAYLOAD, "evt_internal_789", "corr_123"
        )

        headers = dest.requests[0].headers
        assert headers["Content-Type"] == "application/json"
        assert headers["X-Timestamp"] == str(int(clock.now()))
        assert headers["X-Device-ID"] == "webhook-gateway"
        assert headers["Authorization"] == "Bearer jwt_token_min_32_chars_long_!!!!!!"
        assert headers["X-Correlation-Id"] == "corr_123"

    @pytest.mark.asyncio
    async def test_signs_sent_bytes_with_outbound_secret(
        self, config, clock, destination, sleep_recorder
    ):
        """Test that the destination can verify exactly the bytes it received."""
        dest = destination([201])
        await make_forwarder(config, clock, dest, sleep_recorder).forward(
            PAYLOAD, "evt_internal_789"
        )

        request = dest.requests[0]
        message = request.headers["X-Timestamp"].encode() + b"." + request.content
        expected = hmac.new(OUTBOUND_SECRET.encode(), message, hashlib.sha256).hexdigest()
        assert request.headers["X-Signature"] == expected

        inbound_style = hmac.new(INBOUND_SECRET.encode(), message, hashlib.sha256).hexdigest()
        assert request.headers["X-Signature"] != inbound_style

    @pytest.mark.asyncio
    async def test_body_is_adapted_envelope(
        self, config, clock, destination, sleep_recorder
    ):
        dest = destination([201])
        await make_forwarder(config, clock, dest, sleep_recorder).forward(
            PAYLOAD, "evt_internal_789", "corr_123"
        )

        sent = json.loads(dest.requests[0].content)
        assert sent == {
            "source": "webhook-gateway",
            "event_type": "user.created",
            "external_id": "evt_123",
            "payload": PAYLOAD,
            "occurred_at": "2023-11-14T22:13:20.000Z",
            "correlation_id": "corr_123",
            "internal_event_id": "evt_internal_789",
        }

    @pytest.mark.asyncio
    async def test_optional_headers_omitted(
        self, config, clock, destination, sleep_recorder
    ):
        config = dataclasses.replace(config, destination_token=None)
        dest = destination([201])
        await make_forwarder(config, clock, dest, sleep_recorder).forward(
            PAYLOAD, "evt_internal_789"
        )

        headers = dest.requests[0].headers
        assert "Authorization" not in headers
        assert "X-Correlation-Id" not in headers

    @pytest.mark.asyncio
    async def test_same_signed_request_on_every_retry(
        self, config, clock, destination, sleep_recorder
    ):
        dest = destination([500, 500, 201])
        forwarder = make_forwarder(config, clock, dest, sleep_recorder)

        async def on_attempt(attempt):
            # time moves between attempts; the signed request must not
            clock.advance(30)

        result = await forwarder.forward(PAYLOAD, "evt_internal_789", None, on_attempt)

        assert result.ok
        assert len({r.content for r in dest.requests}) == 1
        assert len({r.headers["X-Signature"] for r in dest.requests}) == 1
        assert len({r.headers["X-Timestamp"] for r in dest.requests}) == 1

    @pytest.mark.asyncio
    async def test_missing_destination_url_skips(
        self, config, clock, destination, sleep_recorder
    ):
        config = dataclasses.replace(config, destination_url=None)
        dest = destination([201])

        result = await make_forwarder(config, clock, dest, sleep_recorder).forward(
            PAYLOAD, "evt_internal_789"
        )

        assert result.ok
        assert result.status == 204
        assert dest.requests == []

    @pytest.mark.asyncio
    async def test_missing_outbound_secret_raises(
        self, config, clock, destination, sleep_recorder
    ):
        config = dataclasses.replace(config, outbound_hmac_secret=None)
        dest = destination([201])

        with pytest.raises(ConfigurationError):
            await make_forwarder(config, clock, dest, sleep_recorder).forward(
                PAYLOAD, "evt_internal_789"
            )
        assert dest.requests == []

    @pytest.mark.asyncio
    async def test_non_ascii_correlation_id_kept_out_of_headers(
        self, config, clock, destination, sleep_recorder
    ):
        """Test that the event is still forwarded with the id only in the body."""
        dest = destination([201])
        result = await make_forwarder(config, clock, dest, sleep_recorder).forward(
            PAYLOAD, "evt_internal_789", "café☃"
        )

        assert result.ok
        request = dest.requests[0]
        assert "X-Correlation-Id" not in request.headers
        assert json.loads(request.content)["correlation_id"] == "café☃"


@pytest.mark.parametrize("correlation_id", ["café", "line\nbreak", "tab\there"])
def test_build_headers_drops_unsafe_correlation_id(correlation_id):
    signed = SignedPayload(body=b"{}", signature="abc", timestamp="1")
    assert "X-Correlation-Id" not in build_headers(signed, "dev", None, correlation_id)


def test_build_headers_keeps_ascii_correlation_id():
    signed = SignedPayload(body=b"{}", signature="abc", timestamp="1")
    headers = build_headers(signed, "dev", None, "corr-123")
    assert headers["X-Correlation-Id"] == "corr-123"
