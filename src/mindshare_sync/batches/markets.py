"""Market deployment imports and latest-deployment listing."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from mindshare_sync.batches.versioning import BatchId, BatchKind, VersionedCollectionManager
from mindshare_sync.chain.abi import Phase
from mindshare_sync.storage.database import DatabaseManager
from mindshare_sync.storage.repos import MarketDTO, MarketRepository
from mindshare_sync.sync.models import SweepReport
from mindshare_sync.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)

MARKET_TYPES = ("top10", "h2h")


@dataclass(frozen=True)
class MarketImport:
    """One deployed market as reported by the deployment tooling."""

    market_address: str
    market_id: str
    market_type: str
    question_hash: str
    lock_time: int
    resolve_time: int
    project_name: str | None = None
    project_a: str | None = None
    project_b: str | None = None
    phase: int | None = None
    status: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MarketImport | None:
        """Create a MarketImport from a deployment record.

        Accepts camelCase or snake_case keys. Returns None when the record
        lacks a market address or market id.
        """

        def pick(*names: str) -> Any:
            for name in names:
                if data.get(name) is not None:
                    return data[name]
            return None

        address = pick("marketAddress", "market_address")
        market_id = pick("marketId", "market_id")
        if not address or not market_id:
            return None

        market_type = str(pick("type", "market_type") or "top10")
        if market_type not in MARKET_TYPES:
            raise ValueError(f"Unknown market type {market_type!r} for {address}")
        phase = pick("phase")
        return cls(
            market_address=str(address),
            market_id=str(market_id),
            market_type=market_type,
            question_hash=str(pick("questionHash", "question_hash") or ""),
            lock_time=int(pick("lockTime", "lock_time") or 0),
            resolve_time=int(pick("resolveTime", "resolve_time") or 0),
            project_name=pick("projectName", "project_name"),
            project_a=pick("projectA", "project_a"),
            project_b=pick("projectB", "project_b"),
            phase=int(phase) if phase is not None else None,
            status=pick("status"),
        )

    def initial_phase(self) -> str:
        if self.status:
            return self.status
        return Phase.from_raw(self.phase or 0).value


@dataclass
class ImportResult:
    """Outcome of one market import."""

    count: int
    cleared: bool
    batch: BatchId
    skipped: int = 0
    sweep: SweepReport | None = None
    addresses: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "count": self.count,
            "cleared": self.cleared,
            "deployment_date": self.batch.date.isoformat(),
            "deployment_index": self.batch.index,
            "skipped": self.skipped,
        }


class MarketDeployments:
    """Imports deployment batches and serves the latest one."""

    def __init__(
        self,
        db: DatabaseManager,
        versions: VersionedCollectionManager,
        orchestrator: SyncOrchestrator,
    ) -> None:
        self._db = db
        self._versions = versions
        self._orchestrator = orchestrator

    async def import_markets(
        self, markets: Iterable[MarketImport | dict[str, Any]], *, clear_existing: bool = False
    ) -> ImportResult:
        """Store a deployment batch and sweep the ledger.

        With `clear_existing` every market row is deleted first and the batch
        is (today, 0); otherwise the batch is (today, next index). Markets
        are upserted by address, so re-importing an address moves it to the
        new batch while its ledger-mirrored fields are kept.

        Every record is parsed before anything is written, and the clear and
        the upserts share one transaction.

        Raises:
            ValueError: A record is malformed. Nothing is written.
        """
        records: list[MarketImport] = []
        skipped = 0
        for market in markets:
            record = market if isinstance(market, MarketImport) else MarketImport.from_dict(market)
            if record is None:
                skipped += 1
                continue
            records.append(record)

        async with self._db.get_async_session() as session:
            if clear_existing:
                batch = await self._versions.clear_and_reset(BatchKind.MARKETS, session)
            else:
                batch = await self._versions.next_batch(BatchKind.MARKETS)
            logger.info("Importing %d markets into batch %s", len(records), batch)
            repo = MarketRepository(session)
            for record in records:
                await repo.upsert_import(
                    MarketDTO(
                        market_address=record.market_address,
                        market_type=record.market_type,
                        market_id=record.market_id,
                        question_hash=record.question_hash,
                        lock_time=record.lock_time,
                        resolve_time=record.resolve_time,
                        project_name=record.project_name,
                        project_a=record.project_a,
                        project_b=record.project_b,
                        phase=record.initial_phase(),
                        deployment_date=batch.date,
                        deployment_index=batch.index,
                    )
                )

        report = await self._orchestrator.sweep()
        return ImportResult(
            count=len(records),
            cleared=clear_existing,
            batch=batch,
            skipped=skipped,
            sweep=report,
            addresses=[r.market_address.lower() for r in records],
        )

    async def list_latest(self) -> list[MarketDTO]:
        """Markets of the latest deployment ordered by lock time.

        Falls back to every market when no row carries batch information.
        With caching enabled the answer comes from the store and a background
        sweep is scheduled if anything is stale. With caching disabled a
        sweep runs before answering.
        """
        if not self._orchestrator.cache_enabled:
            await self._orchestrator.sweep()
            return await self._read_latest()

        markets = await self._read_latest()
        if await self._orchestrator.has_stale_markets():
            self._orchestrator.schedule_sweep()
        return markets

    async def _read_latest(self) -> list[MarketDTO]:
        markets = await self._versions.latest_markets()
        if markets:
            return markets
        async with self._db.get_async_session() as session:
            return await MarketRepository(session).list_all()
