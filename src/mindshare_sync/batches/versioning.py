"""(date, index) versioning for market deployments and leaderboard snapshots.

Each family stores rows tagged with a batch id. The current batch is the
greatest (date, index) pair present; older batches stay in the store but are
excluded from normal reads.

`next_index` reads the current maximum and is not locked against concurrent
writers: two imports for the same date can compute the same index. Markets
are keyed by contract address, so such a collision only re-tags rows.
Leaderboard writes delete the target batch before inserting, so a collision
leaves the last writer's entries.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mindshare_sync.storage.database import DatabaseManager
from mindshare_sync.storage.repos import (
    LeaderboardEntryDTO,
    LeaderboardRepository,
    MarketDTO,
    MarketRepository,
)

logger = logging.getLogger(__name__)


def today_utc() -> date:
    return datetime.now(UTC).date()


class BatchKind(str, Enum):
    """Entity families versioned by batch."""

    MARKETS = "markets"
    LEADERBOARD = "leaderboard"


@dataclass(frozen=True, order=True)
class BatchId:
    """One version of a collection. Ordered by date, then index."""

    date: date
    index: int

    def __post_init__(self) -> None:
        if self.index < 0:
            raise ValueError(f"Batch index must be >= 0, got {self.index}")

    def __str__(self) -> str:
        return f"{self.date.isoformat()}#{self.index}"

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date.isoformat(), "index": self.index}


class VersionedCollectionManager:
    """Latest-batch semantics over both versioned families."""

    def __init__(self, db: DatabaseManager, *, today: Callable[[], date] = today_utc) -> None:
        self._db = db
        self._today = today

    def today(self) -> date:
        return self._today()

    @staticmethod
    def _repo(session: AsyncSession, kind: BatchKind) -> MarketRepository | LeaderboardRepository:
        if kind is BatchKind.MARKETS:
            return MarketRepository(session)
        return LeaderboardRepository(session)

    async def current_batch(self, kind: BatchKind) -> BatchId | None:
        """Greatest (date, index) present for `kind`, or None when empty."""
        async with self._db.get_async_session() as session:
            found = await self._repo(session, kind).max_batch()
        if found is None:
            return None
        return BatchId(date=found[0], index=found[1])

    async def next_index(self, kind: BatchKind, day: date) -> int:
        """1 + the highest index stored for `day`, or 0 if `day` has no rows."""
        async with self._db.get_async_session() as session:
            highest = await self._repo(session, kind).max_index_for_date(day)
        return 0 if highest is None else highest + 1

    async def next_batch(self, kind: BatchKind, day: date | None = None) -> BatchId:
        day = day or self.today()
        return BatchId(date=day, index=await self.next_index(kind, day))

    async def latest_batch_for_date(self, kind: BatchKind, day: date) -> BatchId | None:
        async with self._db.get_async_session() as session:
            highest = await self._repo(session, kind).max_index_for_date(day)
        return None if highest is None else BatchId(date=day, index=highest)

    async def clear_and_reset(self, kind: BatchKind, session: AsyncSession | None = None) -> BatchId:
        """Delete every row of `kind`; indexing restarts at (today, 0).

        When `session` is given the delete joins the caller's transaction and
        is only committed with it.
        """
        if session is not None:
            deleted = await self._repo(session, kind).delete_all()
        else:
            async with self._db.get_async_session() as own_session:
                deleted = await self._repo(own_session, kind).delete_all()
        logger.info("Cleared %d %s rows", deleted, kind.value)
        return BatchId(date=self.today(), index=0)

    async def rows(self, kind: BatchKind, batch: BatchId) -> list[Any]:
        async with self._db.get_async_session() as session:
            return await self._repo(session, kind).list_for_batch(batch.date, batch.index)

    async def latest_only(self, kind: BatchKind) -> list[Any]:
        """Rows of the current batch only; empty when nothing is stored."""
        batch = await self.current_batch(kind)
        if batch is None:
            return []
        return await self.rows(kind, batch)

    async def latest_markets(self) -> list[MarketDTO]:
        return await self.latest_only(BatchKind.MARKETS)

    async def write_batch(self, batch: BatchId, entries: Sequence[LeaderboardEntryDTO]) -> int:
        """Replace the leaderboard rows of `batch` with `entries`.

        Writing the same entries twice leaves exactly one copy.
        """
        async with self._db.get_async_session() as session:
            count = await LeaderboardRepository(session).replace_batch(batch.date, batch.index, entries)
        logger.info("Stored %d leaderboard entries for batch %s", count, batch)
        return count
