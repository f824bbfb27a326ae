"""Refresh orchestration between the ledger and the local mirror.

SyncOrchestrator composes ChainStateFetcher, CacheStore and FreshnessPolicy:

- per-kind refresh operations that never raise for a fetch failure,
- a sequential sweep over all known markets returning a SweepReport,
- the read path (fresh from cache, otherwise refresh, otherwise stale),
- synchronous invalidation after ledger writes,
- fire-and-forget background refreshes and an optional periodic sweep loop.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from mindshare_sync.chain.fetcher import ChainStateFetcher
from mindshare_sync.sync.cache import CacheStore
from mindshare_sync.sync.freshness import FreshnessPolicy
from mindshare_sync.sync.models import (
    BalanceKey,
    CacheKey,
    CachedRead,
    ClaimKey,
    FetchResult,
    FetchStatus,
    InvalidationReport,
    MarketKey,
    Snapshot,
    SweepReport,
    now_utc,
)

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 300
DEFAULT_STAKE_TOKEN_CONTRACT = "stakeToken"


class ChainStateUnavailableError(Exception):
    """Raised to a reader when nothing is cached and the ledger read failed."""

    def __init__(self, key: CacheKey, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"{key}: {reason}")


class SyncState(str, Enum):
    """State of the periodic sweep loop."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


@dataclass
class SyncStats:
    """Statistics for the periodic sweep loop."""

    total_sweeps: int = 0
    successful_sweeps: int = 0
    failed_sweeps: int = 0
    last_sweep_time: datetime | None = None
    last_report: SweepReport | None = None
    last_error: str | None = None


StateCallback = Callable[[SyncState], None]


class SyncOrchestrator:
    """Keeps the local mirror in step with the ledger.

    Example:
        ```python
        orchestrator = SyncOrchestrator(fetcher, cache, cache_enabled=True)

        read = await orchestrator.get_cached_or_refresh(MarketKey("0x..."))
        report = await orchestrator.sweep()

        await orchestrator.drain()
        ```
    """

    def __init__(
        self,
        fetcher: ChainStateFetcher,
        cache: CacheStore,
        *,
        freshness: FreshnessPolicy | None = None,
        cache_enabled: bool = True,
        stake_token_contract: str = DEFAULT_STAKE_TOKEN_CONTRACT,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = now_utc,
        on_state_change: StateCallback | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            fetcher: Reads authoritative state from the ledger.
            cache: Persisted mirror.
            freshness: Freshness policy (default: 30 seconds).
            cache_enabled: When False every per-entity read goes to the ledger.
            stake_token_contract: Registry name of the token contract.
            sweep_interval_seconds: Interval of the periodic sweep loop.
            clock: Source of the current time.
            on_state_change: Callback for sweep loop state changes.
        """
        self._fetcher = fetcher
        self._cache = cache
        self._freshness = freshness or FreshnessPolicy(clock=clock)
        self._cache_enabled = cache_enabled
        self._stake_token_contract = stake_token_contract
        self._sweep_interval = sweep_interval_seconds
        self._clock = clock
        self._on_state_change = on_state_change

        self._background: set[asyncio.Task[Any]] = set()
        self._sweep_task: asyncio.Task[Any] | None = None

        self._state = SyncState.STOPPED
        self._stats = SyncStats()
        self._loop_task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    @property
    def cache_enabled(self) -> bool:
        return self._cache_enabled

    @property
    def freshness(self) -> FreshnessPolicy:
        return self._freshness

    @property
    def state(self) -> SyncState:
        """Current sweep loop state."""
        return self._state

    @property
    def stats(self) -> SyncStats:
        """Current sweep loop statistics."""
        return self._stats

    @property
    def pending_background_tasks(self) -> int:
        return len(self._background)

    # Refresh operations

    async def refresh_market(self, address: str) -> FetchResult[Any]:
        """Fetch a market and store it if it was imported."""
        result = await self._fetcher.fetch_market(address)
        stored, _ = await self._store(MarketKey(address), result)
        return stored

    async def refresh_user_claim(self, market_address: str, user_address: str) -> FetchResult[Any]:
        """Fetch a user's claims and store them, creating the row if missing."""
        result = await self._fetcher.fetch_user_claim(market_address, user_address)
        stored, _ = await self._store(ClaimKey(market_address, user_address), result)
        return stored

    async def refresh_user_balance(self, user_address: str) -> FetchResult[Any] | None:
        """Fetch a user's token balance and store it.

        Returns:
            None when the token contract is not registered.
        """
        result, _ = await self._refresh_entry(BalanceKey(user_address))
        return result

    async def refresh(self, key: CacheKey) -> FetchResult[Any] | None:
        result, _ = await self._refresh_entry(key)
        return result

    async def sweep(self) -> SweepReport:
        """Refresh every known market, one at a time.

        A failing market never aborts the sweep; its outcome is tallied.
        If the market list itself cannot be read, the report carries the
        error and no market is refreshed.
        """
        report = SweepReport(started_at=self._clock())
        started = time.monotonic()
        try:
            addresses = await self._cache.list_market_addresses()
        except Exception as e:
            logger.exception("Sweep could not list markets")
            report.error = f"{type(e).__name__}: {e}"
            report.duration_seconds = time.monotonic() - started
            return report

        for address in addresses:
            result = await self.refresh_market(address)
            logger.debug("Sweep %s: %s", address, result.status.value)
            report.record(address, result)
        report.duration_seconds = time.monotonic() - started
        logger.info(
            "Sweep finished: %d markets (ok=%d absent=%d transient=%d unexpected=%d) in %.2fs",
            report.total,
            report.ok,
            report.absent,
            report.transient,
            report.unexpected,
            report.duration_seconds,
        )
        return report

    # Read path

    async def get_cached_or_refresh(
        self, key: CacheKey, *, background: bool = False
    ) -> CachedRead[Any] | None:
        """Answer a read for `key`.

        Fresh snapshots are served from the cache. Otherwise the entity is
        refreshed before answering, unless `background` is set and a stale
        snapshot exists, in which case the stale snapshot is served and the
        refresh is scheduled. If the refresh fails the stale snapshot is
        served with ``stale=True``.

        Returns:
            The answer, or None when nothing is cached and the ledger reports
            the entity absent.

        Raises:
            ChainStateUnavailableError: Nothing is cached and the ledger read
                failed (transient or unexpected).
        """
        if not self._cache_enabled:
            result = await self._fetch(key)
            if result is not None and result.ok:
                return CachedRead(value=result.value, cached=False, synced_at=self._clock())
            if result is not None and result.status is FetchStatus.ABSENT:
                return None
            raise ChainStateUnavailableError(key, _describe(result))

        snapshot = await self._cache.get(key)
        if snapshot is not None and self._freshness.is_fresh(snapshot):
            return CachedRead(value=snapshot.state, cached=True, synced_at=snapshot.last_synced_at)

        if snapshot is not None and background:
            self.schedule_refresh(key)
            return CachedRead(
                value=snapshot.state, cached=True, stale=True, synced_at=snapshot.last_synced_at
            )

        result = await self.refresh(key)
        if result is not None and result.ok:
            return CachedRead(value=result.value, cached=False, synced_at=self._clock())
        if snapshot is not None:
            logger.warning("Serving stale %s: %s", key, _describe(result))
            return CachedRead(
                value=snapshot.state, cached=True, stale=True, synced_at=snapshot.last_synced_at
            )
        if result is not None and result.status is FetchStatus.ABSENT:
            return None
        raise ChainStateUnavailableError(key, _describe(result))

    async def force_refresh(self, key: CacheKey) -> Snapshot[Any] | None:
        """Refresh `key` now.

        Returns:
            The stored snapshot, or None when the refresh was skipped (absent,
            failed, unregistered token or market never imported).
        """
        result = await self.refresh(key)
        if result is None or not result.ok:
            return None
        return await self._cache.get(key)

    async def invalidate(
        self, market_address: str | None = None, user_address: str | None = None
    ) -> InvalidationReport:
        """Synchronously refresh the entities touched by a ledger write.

        Refreshes the market, the user's claim in it and the user's balance,
        whichever the arguments identify. Skipped when caching is disabled.
        A market that was never imported is fetched but not stored, and is
        listed under `not_imported`.
        """
        report = InvalidationReport()
        if not self._cache_enabled:
            report.skipped = True
            return report

        keys: list[CacheKey] = []
        if market_address:
            keys.append(MarketKey(market_address))
            if user_address:
                keys.append(ClaimKey(market_address, user_address))
        if user_address:
            keys.append(BalanceKey(user_address))

        for key in keys:
            result, synced_at = await self._refresh_entry(key)
            if result is None or not result.ok:
                report.failed[str(key)] = _describe(result)
            elif synced_at is None:
                report.not_imported.append(str(key))
            else:
                report.updated.append(str(key))
        return report

    async def has_stale_markets(self) -> bool:
        return await self._cache.has_stale_markets(self._freshness.stale_cutoff())

    # Background work

    def schedule_refresh(self, key: CacheKey) -> asyncio.Task[Any]:
        """Refresh `key` without waiting for it."""
        return self._spawn(self.refresh(key), f"refresh {key}")

    def schedule_sweep(self) -> asyncio.Task[Any]:
        """Start a background sweep unless one is already running."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = self._spawn(self.sweep(), "sweep")
        return self._sweep_task

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight background work, up to `timeout` seconds."""
        if not self._background:
            return
        _, pending = await asyncio.wait(set(self._background), timeout=timeout)
        if pending:
            logger.warning("%d background refreshes still running", len(pending))

    def _spawn(self, coro: Coroutine[Any, Any, Any], label: str) -> asyncio.Task[Any]:
        task = asyncio.create_task(self._run_background(coro, label))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _run_background(self, coro: Coroutine[Any, Any, Any], label: str) -> Any:
        try:
            return await coro
        except Exception:
            logger.exception("Background %s failed", label)
            return None

    # Periodic sweep loop

    def _set_state(self, new_state: SyncState) -> None:
        """Update state and notify callback."""
        old_state = self._state
        self._state = new_state
        if self._on_state_change and old_state != new_state:
            try:
                self._on_state_change(new_state)
            except Exception as e:
                logger.warning("State change callback failed: %s", e)

    async def start(self) -> None:
        """Start the periodic sweep loop. A non-positive interval disables it."""
        if self._state != SyncState.STOPPED:
            logger.warning("Cannot start sweep loop: already in state %s", self._state.value)
            return
        if self._sweep_interval <= 0:
            logger.info("Periodic sweep disabled")
            return

        self._set_state(SyncState.STARTING)
        self._stop_event.clear()
        self._loop_task = asyncio.create_task(self._sweep_loop())
        self._set_state(SyncState.RUNNING)
        logger.info("Sweep loop started (interval=%ss)", self._sweep_interval)

    async def stop(self) -> None:
        """Stop the periodic sweep loop."""
        if self._state == SyncState.STOPPED:
            return

        self._set_state(SyncState.STOPPING)
        self._stop_event.set()

        if self._loop_task:
            self._loop_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._loop_task
            self._loop_task = None

        self._set_state(SyncState.STOPPED)
        logger.info("Sweep loop stopped")

    async def run_sweep(self) -> SweepReport:
        """Run one sweep and record it in the loop statistics."""
        self._stats.total_sweeps += 1
        try:
            report = await self.sweep()
        except Exception as e:
            self._stats.failed_sweeps += 1
            self._stats.last_error = str(e)
            raise
        self._stats.last_sweep_time = self._clock()
        self._stats.last_report = report
        if report.error:
            self._stats.failed_sweeps += 1
            self._stats.last_error = report.error
        else:
            self._stats.successful_sweeps += 1
            self._stats.last_error = None
        return report

    async def _sweep_loop(self) -> None:
        """Background loop that periodically sweeps all markets."""
        while not self._stop_event.is_set():
            try:
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._sweep_interval)
                    break
                except TimeoutError:
                    pass

                if self._stop_event.is_set():
                    break

                await self.run_sweep()
                self._set_state(SyncState.RUNNING)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Sweep loop error: %s", e)
                self._set_state(SyncState.ERROR)

    # Helpers

    async def _fetch(self, key: CacheKey) -> FetchResult[Any] | None:
        """Read `key` from the ledger without storing it."""
        if isinstance(key, MarketKey):
            return await self._fetcher.fetch_market(key.address)
        if isinstance(key, ClaimKey):
            return await self._fetcher.fetch_user_claim(key.market_address, key.user_address)
        return await self._fetch_balance(key.user_address)

    async def _fetch_balance(self, user_address: str) -> FetchResult[Any] | None:
        token_address = await self._cache.get_contract_address(self._stake_token_contract)
        if not token_address:
            logger.info(
                "Contract %r is not registered; skipping balance of %s",
                self._stake_token_contract,
                user_address,
            )
            return None
        return await self._fetcher.fetch_balance(token_address, user_address)

    async def _refresh_entry(
        self, key: CacheKey
    ) -> tuple[FetchResult[Any] | None, datetime | None]:
        """Fetch and store `key`, returning the outcome and the stored sync time."""
        try:
            result = await self._fetch(key)
        except Exception as e:
            logger.exception("Unexpected error refreshing %s", key)
            return FetchResult.unexpected(f"{type(e).__name__}: {e}"), None
        if result is None:
            return None, None
        return await self._store(key, result)

    async def _store(
        self, key: CacheKey, result: FetchResult[Any]
    ) -> tuple[FetchResult[Any], datetime | None]:
        """Store an OK result. The sync time is None when nothing was written."""
        if not result.ok:
            return result, None
        try:
            synced_at = await self._cache.upsert(key, result.value)
        except Exception as e:
            logger.exception("Failed to store %s", key)
            return FetchResult.unexpected(f"{type(e).__name__}: {e}"), None
        return result, synced_at


def _describe(result: FetchResult[Any] | None) -> str:
    if result is None:
        return "skipped: token contract not registered"
    return result.error or result.status.value
