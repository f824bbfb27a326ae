"""Service wiring for the chain-state sync layer.

SyncService builds every component from Settings, seeds leaderboards, runs
an initial sweep and keeps the periodic sweep loop alive until stopped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from redis.asyncio import Redis

from mindshare_sync.admin import MarketAdmin
from mindshare_sync.batches.leaderboard import LeaderboardManager
from mindshare_sync.batches.markets import MarketDeployments
from mindshare_sync.batches.versioning import VersionedCollectionManager
from mindshare_sync.chain.client import ChainClient
from mindshare_sync.chain.fetcher import ChainStateFetcher
from mindshare_sync.config import Settings, get_settings
from mindshare_sync.registry import ContractRegistry
from mindshare_sync.storage.database import DatabaseManager
from mindshare_sync.sync.cache import CacheStore
from mindshare_sync.sync.freshness import FreshnessPolicy
from mindshare_sync.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)

# Upper bound on waiting for fire-and-forget refreshes at shutdown
DRAIN_TIMEOUT_SECONDS = 5.0


class ServiceState(str, Enum):
    """Service lifecycle states."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


@dataclass
class ServiceStats:
    """Statistics for the service."""

    started_at: datetime | None = None
    seeded_batches: int = 0
    rpc_healthy: bool | None = None
    last_error: str | None = None


class SyncService:
    """Owns the sync layer's resources and background work.

    Example:
        ```python
        from mindshare_sync.config import get_settings
        from mindshare_sync.service import SyncService

        async with SyncService(get_settings()) as service:
            markets = await service.deployments.list_latest()
        ```
    """

    def __init__(self, settings: Settings | None = None, *, background: bool = True) -> None:
        """Initialize the service.

        Args:
            settings: Application settings. If not provided, uses get_settings().
            background: Seed, sweep and run the periodic loop on start. One-shot
                commands pass False and only get the wired components.
        """
        self._settings = settings or get_settings()
        self._background = background

        self._state = ServiceState.STOPPED
        self._stats = ServiceStats()

        # Components (initialized in start())
        self._redis: Redis | None = None
        self._db: DatabaseManager | None = None
        self._client: ChainClient | None = None
        self._orchestrator: SyncOrchestrator | None = None
        self._versions: VersionedCollectionManager | None = None
        self._deployments: MarketDeployments | None = None
        self._leaderboard: LeaderboardManager | None = None
        self._registry: ContractRegistry | None = None
        self._admin: MarketAdmin | None = None

        self._stop_event: asyncio.Event | None = None

    @property
    def state(self) -> ServiceState:
        """Current service state."""
        return self._state

    @property
    def stats(self) -> ServiceStats:
        """Current service statistics."""
        return self._stats

    @property
    def is_running(self) -> bool:
        return self._state == ServiceState.RUNNING

    @property
    def db(self) -> DatabaseManager:
        return _require(self._db, "database")

    @property
    def client(self) -> ChainClient:
        return _require(self._client, "chain client")

    @property
    def orchestrator(self) -> SyncOrchestrator:
        return _require(self._orchestrator, "orchestrator")

    @property
    def versions(self) -> VersionedCollectionManager:
        return _require(self._versions, "versions")

    @property
    def deployments(self) -> MarketDeployments:
        return _require(self._deployments, "deployments")

    @property
    def leaderboard(self) -> LeaderboardManager:
        return _require(self._leaderboard, "leaderboard")

    @property
    def registry(self) -> ContractRegistry:
        return _require(self._registry, "registry")

    @property
    def admin(self) -> MarketAdmin:
        return _require(self._admin, "admin")

    async def start(self) -> None:
        """Start the service.

        Raises:
            RuntimeError: If the service is already running.
            Exception: If any component fails to initialize.
        """
        if self._state != ServiceState.STOPPED:
            raise RuntimeError(f"Cannot start service in state {self._state}")

        self._state = ServiceState.STARTING
        self._stop_event = asyncio.Event()
        logger.info("Starting sync service...")
        logger.debug("Settings: %s", self._settings.redacted_summary())

        try:
            await self._initialize_components()
            if self._background:
                await self._start_background_work()
            self._stats.started_at = datetime.now(UTC)
            self._state = ServiceState.RUNNING
            logger.info("Sync service started")
        except Exception as e:
            self._state = ServiceState.ERROR
            self._stats.last_error = str(e)
            logger.error("Failed to start sync service: %s", e)
            await self._cleanup()
            raise

    async def stop(self) -> None:
        """Stop the service, letting in-flight refreshes finish briefly."""
        if self._state == ServiceState.STOPPED:
            return

        self._state = ServiceState.STOPPING
        logger.info("Stopping sync service...")

        if self._stop_event:
            self._stop_event.set()

        if self._orchestrator:
            await self._orchestrator.stop()
            await self._orchestrator.drain(timeout=DRAIN_TIMEOUT_SECONDS)
        await self._cleanup()

        self._state = ServiceState.STOPPED
        logger.info("Sync service stopped")

    async def run(self) -> None:
        """Start the service and block until stopped or cancelled."""
        await self.start()

        try:
            if self._stop_event:
                await self._stop_event.wait()
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()

    def request_stop(self) -> None:
        """Ask a running `run()` to return."""
        if self._stop_event:
            self._stop_event.set()

    async def _initialize_components(self) -> None:
        settings = self._settings

        if settings.redis.url:
            logger.debug("Initializing Redis connection...")
            self._redis = Redis.from_url(settings.redis.url)

        logger.debug("Initializing database manager...")
        self._db = DatabaseManager(settings.database.url)

        logger.debug("Initializing chain client...")
        private_key = settings.chain.admin_private_key
        self._client = ChainClient(
            settings.chain.rpc_url,
            fallback_rpc_url=settings.chain.fallback_rpc_url,
            redis=self._redis,
            max_requests_per_second=settings.chain.max_requests_per_second,
            max_retries=settings.chain.max_retries,
            admin_private_key=private_key.get_secret_value() if private_key else None,
        )

        logger.debug("Initializing sync components...")
        cache = CacheStore(self._db)
        self._orchestrator = SyncOrchestrator(
            ChainStateFetcher(self._client),
            cache,
            freshness=FreshnessPolicy.from_seconds(settings.cache.freshness_seconds),
            cache_enabled=settings.cache.enabled,
            stake_token_contract=settings.cache.stake_token_contract,
            sweep_interval_seconds=settings.cache.sweep_interval_seconds,
        )
        self._versions = VersionedCollectionManager(self._db)
        self._deployments = MarketDeployments(self._db, self._versions, self._orchestrator)
        self._leaderboard = LeaderboardManager(self._versions)
        self._registry = ContractRegistry(self._db)
        self._admin = MarketAdmin(self._db, self._client, self._orchestrator)
        logger.info("All components initialized (cache %s)", "enabled" if settings.cache.enabled else "disabled")

    async def _start_background_work(self) -> None:
        self._stats.rpc_healthy = await self.client.health_check()
        if not self._stats.rpc_healthy:
            logger.warning("Ledger RPC is unreachable; the initial sweep will record failures")

        if self._settings.seed_leaderboard:
            seeded = await self.leaderboard.ensure_seed_data()
            self._stats.seeded_batches = len(seeded)

        await self.orchestrator.run_sweep()
        await self.orchestrator.start()

    async def _cleanup(self) -> None:
        """Clean up resources."""
        if self._client:
            await self._client.aclose()
            self._client = None

        if self._db:
            await self._db.dispose_async()
            self._db = None

        if self._redis:
            await self._redis.aclose()
            self._redis = None

        logger.debug("Resources cleaned up")

    async def __aenter__(self) -> SyncService:
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.stop()


def _require(component: Any, name: str) -> Any:
    if component is None:
        raise RuntimeError(f"Service not started: {name} unavailable")
    return component
