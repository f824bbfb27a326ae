"""Leaderboard snapshots versioned by (date, index)."""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

from mindshare_sync.batches.seed import DEFAULT_PROJECTS, LOGO_BASE_URL
from mindshare_sync.batches.versioning import BatchId, BatchKind, VersionedCollectionManager
from mindshare_sync.storage.repos import LeaderboardEntryDTO

logger = logging.getLogger(__name__)

TOP_SCORE = 10000
SCORE_STEP = 250


class BatchError(Exception):
    """Base exception for versioned collection errors."""

    pass


class LeaderboardNotFoundError(BatchError):
    """No leaderboard exists for the requested date."""

    def __init__(self, day: date) -> None:
        self.day = day
        super().__init__(f"No leaderboard found for {day.isoformat()}")


class InvalidLeaderboardError(BatchError):
    """Entries cannot form a leaderboard."""

    pass


def default_entries(*, swap_top_two: bool = False) -> list[LeaderboardEntryDTO]:
    """The default 80-project board, optionally with ranks 1 and 2 swapped."""
    entries = []
    for position, (name, score, logo) in enumerate(DEFAULT_PROJECTS, start=1):
        rank = position
        if swap_top_two and rank in (1, 2):
            rank = 3 - rank
        entries.append(
            LeaderboardEntryDTO(rank=rank, name=name, score=Decimal(score), logo=LOGO_BASE_URL + logo)
        )
    return entries


def validate_entries(entries: Sequence[LeaderboardEntryDTO]) -> None:
    """Ranks must form a permutation of 1..N.

    Raises:
        InvalidLeaderboardError: If they do not.
    """
    if not entries:
        raise InvalidLeaderboardError("Leaderboard has no entries")
    ranks = sorted(e.rank for e in entries)
    if ranks != list(range(1, len(entries) + 1)):
        raise InvalidLeaderboardError(f"Ranks must be a permutation of 1..{len(entries)}")


def entry_from_dict(data: dict[str, Any]) -> LeaderboardEntryDTO:
    try:
        return LeaderboardEntryDTO(
            rank=int(data["rank"]),
            name=str(data["name"]),
            score=Decimal(str(data["score"])),
            logo=str(data.get("logo") or ""),
        )
    except (KeyError, ValueError, ArithmeticError) as e:
        raise InvalidLeaderboardError(f"Invalid leaderboard entry {data!r}: {e}") from e


@dataclass
class MarketSuggestions:
    """Randomly picked projects for the next market deployment."""

    top10: list[str] = field(default_factory=list)
    h2h: list[tuple[str, str]] = field(default_factory=list)
    batch: BatchId | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "top10": [{"type": "top10", "projectName": name} for name in self.top10],
            "h2h": [{"type": "h2h", "projectA": a, "projectB": b} for a, b in self.h2h],
            "top10Count": len(self.top10),
            "h2hCount": len(self.h2h),
            "leaderboard": self.batch.to_dict() if self.batch else None,
        }


class LeaderboardManager:
    """Reads and writes leaderboard snapshots.

    Every write goes to a fresh (date, next index) batch and replaces any
    rows already stored under that exact batch.
    """

    def __init__(self, versions: VersionedCollectionManager, *, rng: random.Random | None = None) -> None:
        self._versions = versions
        self._rng = rng or random.Random()

    async def get_for_date(self, day: date) -> list[LeaderboardEntryDTO]:
        """Entries of the highest index stored for `day`, ordered by rank."""
        batch = await self._versions.latest_batch_for_date(BatchKind.LEADERBOARD, day)
        if batch is None:
            return []
        return await self._versions.rows(BatchKind.LEADERBOARD, batch)

    async def today(self) -> list[LeaderboardEntryDTO]:
        return await self.get_for_date(self._versions.today())

    async def yesterday(self) -> list[LeaderboardEntryDTO]:
        return await self.get_for_date(self._versions.today() - timedelta(days=1))

    async def latest(self) -> list[LeaderboardEntryDTO]:
        """Entries of the current batch across all dates."""
        return await self._versions.latest_only(BatchKind.LEADERBOARD)

    async def submit_snapshot(
        self, day: date, entries: Iterable[LeaderboardEntryDTO | dict[str, Any]]
    ) -> BatchId:
        """Store `entries` as the next batch of `day`."""
        dtos = [e if isinstance(e, LeaderboardEntryDTO) else entry_from_dict(e) for e in entries]
        validate_entries(dtos)
        batch = await self._versions.next_batch(BatchKind.LEADERBOARD, day)
        await self._versions.write_batch(batch, dtos)
        logger.info("Saved leaderboard snapshot %s (%d projects)", batch, len(dtos))
        return batch

    async def regenerate(self) -> tuple[BatchId, list[LeaderboardEntryDTO]]:
        """Shuffle today's latest board into a new batch.

        Rank r gets score ``10000 - (r - 1) * 250``.

        Raises:
            LeaderboardNotFoundError: No leaderboard exists for today.
        """
        day = self._versions.today()
        current = await self.get_for_date(day)
        if not current:
            raise LeaderboardNotFoundError(day)

        shuffled = list(current)
        self._rng.shuffle(shuffled)
        entries = [
            LeaderboardEntryDTO(
                rank=rank,
                name=entry.name,
                score=Decimal(TOP_SCORE - (rank - 1) * SCORE_STEP),
                logo=entry.logo,
            )
            for rank, entry in enumerate(shuffled, start=1)
        ]
        batch = await self.submit_snapshot(day, entries)
        return batch, entries

    async def ensure_seed_data(self) -> list[BatchId]:
        """Seed today's and yesterday's boards when those dates have no rows.

        Yesterday's board has ranks 1 and 2 swapped.
        """
        today = self._versions.today()
        seeded = []
        for day, swap in ((today, False), (today - timedelta(days=1), True)):
            if await self._versions.latest_batch_for_date(BatchKind.LEADERBOARD, day) is not None:
                continue
            batch = BatchId(date=day, index=0)
            await self._versions.write_batch(batch, default_entries(swap_top_two=swap))
            logger.info("Seeded leaderboard for %s", batch)
            seeded.append(batch)
        return seeded

    async def suggest_markets(self, top10_count: int = 5, h2h_count: int = 5) -> MarketSuggestions:
        """Pick random projects from today's board for top-10 and head-to-head markets.

        Head-to-head pairs never reuse a project.

        Raises:
            LeaderboardNotFoundError: No leaderboard exists for today.
            InvalidLeaderboardError: Fewer than two projects on the board.
        """
        day = self._versions.today()
        batch = await self._versions.latest_batch_for_date(BatchKind.LEADERBOARD, day)
        if batch is None:
            raise LeaderboardNotFoundError(day)
        names = [e.name for e in await self._versions.rows(BatchKind.LEADERBOARD, batch)]
        if len(names) < 2:
            raise InvalidLeaderboardError("Not enough projects in leaderboard")

        self._rng.shuffle(names)
        suggestions = MarketSuggestions(top10=names[: max(top10_count, 0)], batch=batch)

        available = list(names)
        self._rng.shuffle(available)
        while len(suggestions.h2h) < h2h_count and len(available) >= 2:
            suggestions.h2h.append((available.pop(), available.pop()))
        return suggestions
