"""Tests for Pipeline."""

import asyncio
import dataclasses
import json
import random

import httpx
import pytest

from gateway.adapter import PayloadAdapter
from gateway.errors import AuthenticationError, ValidationError
from gateway.forwarding import DestinationForwarder, ForwardingClient, RetryPolicy
from gateway.models import AcceptanceStatus, InboundEvent, OutcomeStatus
from gateway.outcomes import OutcomeRecorder
from gateway.pipeline import Pipeline, parse_body
from gateway.replay import ReplayGuard
from gateway.signing import OutboundSigner, SignatureVerifier

from conftest import ENTRY_PATH, NOW

BODY = b'{"type":"user.created","id":"evt_123","data":{"user_id":"456"}}'


def make_pipeline(config, storage, clock, http_client, sleep):
    recorder = OutcomeRecorder(storage, clock, config.app_env, config.service_role)
    client = ForwardingClient(
        http_client, RetryPolicy(), sleep=sleep, rng=random.Random(0)
    )
    forwarder = DestinationForwarder(
        config, PayloadAdapter(clock), OutboundSigner(), client, clock
    )
    return Pipeline(
        verifier=SignatureVerifier(),
        inbound_secret=config.inbound_secret(),
        replay_guard=ReplayGuard(storage, clock),
        forwarder=forwarder,
        recorder=recorder,
        clock=clock,
    )


def make_event(headers, body=BODY, path=ENTRY_PATH, **kwargs) -> InboundEvent:
    return InboundEvent(
        path=path,
        raw_body=body,
        content_type=headers.get("Content-Type"),
        signature=headers.get("X-Signature"),
        timestamp=headers.get("X-Timestamp"),
        **kwargs,
    )


@pytest.fixture
def build(config, storage, clock, sleep_recorder):
    def _build(dest, cfg=None):
        return make_pipeline(cfg or config, storage, clock, dest.client(), sleep_recorder)

    return _build


class TestPipelineAccept:
    """Tests for the synchronous part of Pipeline.accept()."""

    @pytest.mark.asyncio
    async def test_accepts_and_forwards(self, build, destination, sign_inbound, storage):
        """Test the user.created scenario end to end."""
        dest = destination([201])
        pipeline = build(dest)

        acceptance = await pipeline.accept(
            make_event(sign_inbound(BODY), correlation_id="corr_123")
        )
        await pipeline.drain()

        assert acceptance.status is AcceptanceStatus.ACCEPTED
        assert acceptance.internal_event_id.startswith("evt_")

        sent = json.loads(dest.requests[0].content)
        assert sent["source"] == "webhook-gateway"
        assert sent["event_type"] == "user.created"
        assert sent["external_id"] == "evt_123"
        assert sent["payload"] == json.loads(BODY)
        assert sent["correlation_id"] == "corr_123"
        assert sent["internal_event_id"] == acceptance.internal_event_id
        # the inbound signature is never forwarded
        inbound_digest = sign_inbound(BODY)["X-Signature"].removeprefix("sha256=")
        assert dest.requests[0].headers["X-Signature"] != inbound_digest

        record = await storage.get_outcome(acceptance.internal_event_id)
        assert record.status is OutcomeStatus.SUCCESS
        assert record.response_status == 201

    @pytest.mark.asyncio
    async def test_rejects_bad_signature(self, build, destination, sign_inbound):
        dest = destination([201])
        headers = sign_inbound(BODY, secret="wrong_secret_that_is_at_least_32_bytes!!")

        with pytest.raises(AuthenticationError) as exc_info:
            await build(dest).accept(make_event(headers))

        assert exc_info.value.reason == "invalid_signature"
        assert dest.requests == []

    @pytest.mark.asyncio
    async def test_rejects_stale_timestamp(self, build, destination, sign_inbound):
        dest = destination([201])
        headers = sign_inbound(BODY, timestamp=NOW - 61)

        with pytest.raises(AuthenticationError) as exc_info:
            await build(dest).accept(make_event(headers))

        assert exc_info.value.reason == "timestamp_out_of_window"

    @pytest.mark.asyncio
    async def test_rejected_request_does_not_consume_fingerprint(
        self, build, destination, sign_inbound
    ):
        dest = destination([201])
        pipeline = build(dest)

        with pytest.raises(AuthenticationError):
            await pipeline.accept(make_event({"Content-Type": "application/json"}))

        acceptance = await pipeline.accept(make_event(sign_inbound(BODY)))
        assert acceptance.status is AcceptanceStatus.ACCEPTED
        await pipeline.drain()

    @pytest.mark.asyncio
    async def test_duplicate_forwarded_once(self, build, destination, sign_inbound):
        """Test that a replayed event is acknowledged but not forwarded again."""
        dest = destination([201])
        pipeline = build(dest)

        first = await pipeline.accept(make_event(sign_inbound(BODY)))
        second = await pipeline.accept(make_event(sign_inbound(BODY)))
        await pipeline.drain()

        assert first.status is AcceptanceStatus.ACCEPTED
        assert second.status is AcceptanceStatus.DUPLICATE
        assert second.internal_event_id is None
        assert len(dest.requests) == 1

    @pytest.mark.asyncio
    async def test_idempotency_key_distinguishes_same_id(
        self, build, destination, sign_inbound
    ):
        dest = destination([201])
        pipeline = build(dest)

        await pipeline.accept(make_event(sign_inbound(BODY), idempotency_key="k1"))
        second = await pipeline.accept(make_event(sign_inbound(BODY), idempotency_key="k2"))
        await pipeline.drain()

        assert second.status is AcceptanceStatus.ACCEPTED
        assert len(dest.requests) == 2

    @pytest.mark.asyncio
    async def test_acknowledges_before_forwarding_completes(
        self, config, storage, clock, sleep_recorder, sign_inbound
    ):
        """Test that the caller is not blocked on the destination."""
        release = asyncio.Event()
        received = []

        async def slow_destination(request):
            received.append(request)
            await release.wait()
            return httpx.Response(201)

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(slow_destination))
        pipeline = make_pipeline(config, storage, clock, http_client, sleep_recorder)

        acceptance = await pipeline.accept(make_event(sign_inbound(BODY)))

        assert acceptance.status is AcceptanceStatus.ACCEPTED

        await asyncio.sleep(0.01)
        assert pipeline.in_flight == 1
        record = await storage.get_outcome(acceptance.internal_event_id)
        assert record.status is OutcomeStatus.RECEIVED
        release.set()
        await pipeline.drain()

        assert pipeline.in_flight == 0
        record = await storage.get_outcome(acceptance.internal_event_id)
        assert record.status is OutcomeStatus.SUCCESS


class TestPipelineValidation:
    """Tests for structural validation."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [b"not json", b"[1,2,3]", b'"text"', b"\xff\xfe"])
    async def test_rejects_non_object_bodies(self, build, destination, sign_inbound, body):
        with pytest.raises(ValidationError):
            await build(destination([201])).accept(make_event(sign_inbound(body), body))

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            b'{"id":"e1","amount":NaN}',
            b'{"id":"e1","amount":Infinity}',
            b'{"id":"e1","amount":-Infinity}',
            b'{"id":"e1","amount":1e999}',
        ],
    )
    async def test_rejects_non_finite_numbers(self, build, destination, sign_inbound, body):
        """Test that bodies the destination could not parse are refused up front."""
        dest = destination([201])
        with pytest.raises(ValidationError):
            await build(dest).accept(make_event(sign_inbound(body), body))
        assert dest.requests == []

    @pytest.mark.asyncio
    async def test_rejects_wrong_content_type(self, build, destination, sign_inbound):
        headers = {**sign_inbound(BODY), "Content-Type": "text/plain"}
        with pytest.raises(ValidationError):
            await build(destination([201])).accept(make_event(headers))

    def test_content_type_parameters_allowed(self):
        event = InboundEvent(
            path=ENTRY_PATH,
            raw_body=b"{}",
            content_type="application/json; charset=utf-8",
        )
        assert parse_body(event) == {}


class TestPipelineOutcomes:
    """Tests for the forwarding continuation's outcome records."""

    @pytest.mark.asyncio
    async def test_retry_then_success(self, build, destination, sign_inbound, storage):
        """Test 500, 500, 201 records success after three attempts."""
        dest = destination([500, 500, 201])
        pipeline = build(dest)

        acceptance = await pipeline.accept(make_event(sign_inbound(BODY)))
        await pipeline.drain()

        assert len(dest.requests) == 3
        record = await storage.get_outcome(acceptance.internal_event_id)
        assert record.status is OutcomeStatus.SUCCESS
        assert record.response_status == 201
        assert record.retry_count == 2

    @pytest.mark.asyncio
    async def test_client_error_recorded_as_failure(
        self, build, destination, sign_inbound, storage
    ):
        dest = destination([400])
        pipeline = build(dest)

        acceptance = await pipeline.accept(make_event(sign_inbound(BODY)))
        await pipeline.drain()

        assert len(dest.requests) == 1
        record = await storage.get_outcome(acceptance.internal_event_id)
        assert record.status is OutcomeStatus.FAILED
        assert record.error_code == "forward_failed_400"
        assert record.response_status == 400
        assert record.retry_count == 0

    @pytest.mark.asyncio
    async def test_network_failure_recorded(
        self, build, destination, sign_inbound, storage
    ):
        dest = destination([httpx.ConnectError("refused")])
        pipeline = build(dest)

        acceptance = await pipeline.accept(make_event(sign_inbound(BODY)))
        await pipeline.drain()

        record = await storage.get_outcome(acceptance.internal_event_id)
        assert record.status is OutcomeStatus.FAILED
        assert record.error_code == "forward_failed_unknown"
        assert record.response_status is None
        assert record.retry_count == 2

    @pytest.mark.asyncio
    async def test_missing_outbound_secret_recorded(
        self, build, config, destination, sign_inbound, storage
    ):
        """Test that a configuration error degrades to a recorded failure."""
        dest = destination([201])
        pipeline = build(dest, dataclasses.replace(config, outbound_hmac_secret=None))

        acceptance = await pipeline.accept(make_event(sign_inbound(BODY)))
        await pipeline.drain()

        assert acceptance.status is AcceptanceStatus.ACCEPTED
        assert dest.requests == []
        record = await storage.get_outcome(acceptance.internal_event_id)
        assert record.status is OutcomeStatus.FAILED
        assert record.error_code == "configuration_error"

    @pytest.mark.asyncio
    async def test_non_ascii_correlation_id_still_forwarded(
        self, build, destination, sign_inbound, storage
    ):
        dest = destination([201])
        pipeline = build(dest)

        # latin-1 view of a UTF-8 header value, as the ASGI layer decodes it
        acceptance = await pipeline.accept(
            make_event(sign_inbound(BODY), correlation_id="cafÃ©")
        )
        await pipeline.drain()

        assert len(dest.requests) == 1
        record = await storage.get_outcome(acceptance.internal_event_id)
        assert record.status is OutcomeStatus.SUCCESS
        assert record.correlation_id == "cafÃ©"
