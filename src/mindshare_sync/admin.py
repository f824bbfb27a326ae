"""Administrative ledger writes: closing markets whose lock time has passed."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from mindshare_sync.chain.abi import Phase, decode_uint
from mindshare_sync.chain.client import ChainClient, ChainClientError
from mindshare_sync.storage.database import DatabaseManager
from mindshare_sync.storage.repos import MarketDTO, MarketRepository
from mindshare_sync.sync.models import MarketKey
from mindshare_sync.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


class CloseStatus(str, Enum):
    """Outcome of trying to close one market."""

    CLOSED = "closed"
    NOT_READY = "not-ready"
    ALREADY_CLOSED = "already-closed"
    ERROR = "error"


@dataclass
class CloseResult:
    """Result for one market in a close-all run."""

    market_address: str
    status: CloseStatus
    phase: Phase | None = None
    lock_time: int | None = None
    tx_hash: str | None = None
    wait_seconds: int | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "market_address": self.market_address,
            "status": self.status.value,
            "phase": self.phase.value if self.phase else None,
            "lock_time": self.lock_time,
            "tx_hash": self.tx_hash,
            "wait_seconds": self.wait_seconds,
            "error": self.error,
        }


@dataclass
class CloseAllSummary:
    """Tally of a close-all run plus per-market results."""

    results: list[CloseResult] = field(default_factory=list)

    def count(self, status: CloseStatus) -> int:
        return sum(1 for r in self.results if r.status is status)

    @property
    def total(self) -> int:
        return len(self.results)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": {
                "total": self.total,
                "closed": self.count(CloseStatus.CLOSED),
                "not_ready": self.count(CloseStatus.NOT_READY),
                "already_closed": self.count(CloseStatus.ALREADY_CLOSED),
                "errors": self.count(CloseStatus.ERROR),
            },
            "results": [r.to_dict() for r in self.results],
        }


def _market_name(market: MarketDTO) -> str:
    if market.market_type == "top10":
        return market.project_name or market.market_address
    return f"{market.project_a} vs {market.project_b}"


class MarketAdmin:
    """Closes trading markets and refreshes them before reporting."""

    def __init__(
        self,
        db: DatabaseManager,
        client: ChainClient,
        orchestrator: SyncOrchestrator,
    ) -> None:
        self._db = db
        self._client = client
        self._orchestrator = orchestrator

    async def _current_time(self) -> int:
        try:
            return await self._client.get_latest_block_timestamp()
        except ChainClientError as e:
            logger.warning("Could not read latest block time, using local clock: %s", e)
            return int(time.time())

    async def close_all_markets(self) -> CloseAllSummary:
        """Send `close()` to every imported market that is trading and past lock time.

        A closed market is refreshed into the cache before its result is
        recorded. A failure on one market is reported as an ERROR result.
        """
        async with self._db.get_async_session() as session:
            markets = await MarketRepository(session).list_all()
        now = await self._current_time()
        logger.info("Closing markets (block time %d, %d markets)", now, len(markets))

        summary = CloseAllSummary()
        for market in markets:
            name = _market_name(market)
            try:
                result = await self._close_one(market.market_address, now)
            except Exception as e:
                logger.error("Error closing %s (%s): %s", name, market.market_address, e)
                result = CloseResult(
                    market_address=market.market_address, status=CloseStatus.ERROR, error=str(e)
                )
            logger.info("%s: %s", name, result.status.value)
            summary.results.append(result)

        logger.info(
            "Close-all: %d closed, %d not ready, %d already closed, %d errors",
            summary.count(CloseStatus.CLOSED),
            summary.count(CloseStatus.NOT_READY),
            summary.count(CloseStatus.ALREADY_CLOSED),
            summary.count(CloseStatus.ERROR),
        )
        return summary

    async def _close_one(self, address: str, now: int) -> CloseResult:
        phase = Phase.from_raw(
            decode_uint(await self._client.call_market(address, "phase"), field="phase")
        )
        lock_time = decode_uint(await self._client.call_market(address, "lockTime"), field="lockTime")

        if phase is not Phase.TRADING:
            return CloseResult(
                market_address=address,
                status=CloseStatus.ALREADY_CLOSED,
                phase=phase,
                lock_time=lock_time,
            )
        if now < lock_time:
            return CloseResult(
                market_address=address,
                status=CloseStatus.NOT_READY,
                phase=phase,
                lock_time=lock_time,
                wait_seconds=lock_time - now,
            )

        tx_hash = await self._client.close_market(address)
        async with self._db.get_async_session() as session:
            await MarketRepository(session).set_last_tx_hash(address, tx_hash)

        snapshot = await self._orchestrator.force_refresh(MarketKey(address))
        return CloseResult(
            market_address=address,
            status=CloseStatus.CLOSED,
            phase=snapshot.state.phase if snapshot else Phase.LOCKED,
            lock_time=lock_time,
            tx_hash=tx_hash,
        )
