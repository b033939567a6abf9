"""Application bootstrap and lifecycle management."""

import asyncio
from typing import Protocol

import httpx

from .adapter import PayloadAdapter
from .clock import IClock, SystemClock
from .config import GatewayConfig
from .forwarding import DestinationForwarder, ForwardingClient, RetryPolicy
from .logging_config import get_logger
from .outcomes import OutcomeRecorder
from .pipeline import Pipeline
from .replay import ReplayGuard
from .signing import OutboundSigner, SignatureVerifier
from .storage import IStorage, Storage

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    @property
    def config(self) -> GatewayConfig:
        """Process configuration."""
        ...

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    @property
    def pipeline(self) -> Pipeline:
        """Inbound event pipeline."""
        ...

    @property
    def recorder(self) -> OutcomeRecorder:
        """Outcome recorder."""
        ...


class Application:
    """Main application bootstrap."""

    def __init__(
        self,
        config: GatewayConfig,
        clock: IClock | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._config = config
        self._clock = clock or SystemClock()
        self._external_http_client = http_client

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._http_client: httpx.AsyncClient | None = None
        self._replay_guard: ReplayGuard | None = None
        self._recorder: OutcomeRecorder | None = None
        self._pipeline: Pipeline | None = None
        self._sweep_task: asyncio.Task | None = None

    @property
    def config(self) -> GatewayConfig:
        """Process configuration."""
        return self._config

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")
        self._config.validate()

        # 1. Storage (no dependencies)
        self._storage = Storage(self._config.database_url)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. Durable components (depend on Storage + clock)
        self._replay_guard = ReplayGuard(
            self._storage, self._clock, self._config.replay_retention_seconds
        )
        self._recorder = OutcomeRecorder(
            self._storage,
            self._clock,
            env=self._config.app_env,
            service_role=self._config.service_role,
            retention_seconds=self._config.outcome_retention_seconds,
        )

        # 3. Forwarding (depends on HTTP client + clock)
        self._http_client = self._external_http_client or httpx.AsyncClient()
        client = ForwardingClient(
            self._http_client,
            policy=RetryPolicy(
                max_attempts=self._config.forward_max_attempts,
                base_delay=self._config.forward_base_delay_seconds,
            ),
            timeout=self._config.forward_timeout_seconds,
        )
        forwarder = DestinationForwarder(
            self._config,
            PayloadAdapter(self._clock),
            OutboundSigner(),
            client,
            self._clock,
        )

        # 4. Pipeline (depends on everything above)
        self._pipeline = Pipeline(
            verifier=SignatureVerifier(self._config.timestamp_tolerance_seconds),
            inbound_secret=self._config.inbound_secret(),
            replay_guard=self._replay_guard,
            forwarder=forwarder,
            recorder=self._recorder,
            clock=self._clock,
        )

        # 5. Retention sweep
        self._sweep_task = asyncio.create_task(self._retention_loop())
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
        if self._pipeline:
            await self._pipeline.drain()
            logger.info("In-flight forwards drained")
        if self._http_client and self._external_http_client is None:
            await self._http_client.aclose()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def sweep_expired(self) -> None:
        """Expire replay fingerprints and outcome records past retention."""
        fingerprints = await self.replay_guard.purge_expired()
        outcomes = await self.recorder.purge_expired()
        if fingerprints or outcomes:
            logger.info(
                "Retention sweep removed %s fingerprints and %s outcome records",
                fingerprints,
                outcomes,
            )

    async def _retention_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.retention_sweep_interval_seconds)
            try:
                await self.sweep_expired()
            except Exception as e:
                logger.error("Retention sweep failed: %s", e)

    @property
    def pipeline(self) -> Pipeline:
        """Get pipeline instance."""
        if not self._pipeline:
            raise RuntimeError("Application not started")
        return self._pipeline

    @property
    def replay_guard(self) -> ReplayGuard:
        """Get replay guard instance."""
        if not self._replay_guard:
            raise RuntimeError("Application not started")
        return self._replay_guard

    @property
    def recorder(self) -> OutcomeRecorder:
        """Get outcome recorder instance."""
        if not self._recorder:
            raise RuntimeError("Application not started")
        return self._recorder
