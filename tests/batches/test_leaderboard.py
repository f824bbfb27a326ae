"""Tests for leaderboard snapshots."""

import random
from datetime import date, timedelta
from decimal import Decimal

import pytest

from mindshare_sync.batches.leaderboard import (
    InvalidLeaderboardError,
    LeaderboardManager,
    LeaderboardNotFoundError,
    default_entries,
    entry_from_dict,
    validate_entries,
)
from mindshare_sync.batches.versioning import BatchId, VersionedCollectionManager
from mindshare_sync.storage.database import DatabaseManager
from mindshare_sync.storage.repos import LeaderboardEntryDTO

TODAY = date(2025, 1, 15)
YESTERDAY = TODAY - timedelta(days=1)


@pytest.fixture
def versions(db: DatabaseManager) -> VersionedCollectionManager:
    return VersionedCollectionManager(db, today=lambda: TODAY)


@pytest.fixture
def manager(versions: VersionedCollectionManager) -> LeaderboardManager:
    return LeaderboardManager(versions, rng=random.Random(7))


class TestEntries:
    """Tests for entry helpers."""

    def test_default_entries(self) -> None:
        entries = default_entries()

        assert len(entries) == 80
        assert (entries[0].rank, entries[0].name, entries[0].score) == (1, "Ethereum", Decimal(9500))
        assert entries[0].logo.startswith("https://assets.coingecko.com/coins/images/")
        assert entries[-1].name == "Foundation"

    def test_default_entries_swapped(self) -> None:
        entries = {e.name: e.rank for e in default_entries(swap_top_two=True)}

        assert entries["Ethereum"] == 2
        assert entries["Bitcoin"] == 1
        assert entries["Uniswap"] == 3

    def test_validate_rejects_gaps(self) -> None:
        entries = [
            LeaderboardEntryDTO(rank=1, name="A", score=Decimal(1), logo=""),
            LeaderboardEntryDTO(rank=3, name="B", score=Decimal(1), logo=""),
        ]

        with pytest.raises(InvalidLeaderboardError):
            validate_entries(entries)

    def test_validate_rejects_empty(self) -> None:
        with pytest.raises(InvalidLeaderboardError):
            validate_entries([])

    def test_entry_from_dict(self) -> None:
        entry = entry_from_dict({"rank": "2", "name": "Solana", "score": 7200.5, "logo": "x.png"})

        assert entry.rank == 2
        assert entry.score == Decimal("7200.5")

    def test_entry_from_dict_missing_field(self) -> None:
        with pytest.raises(InvalidLeaderboardError):
            entry_from_dict({"name": "Solana"})


class TestLeaderboardManager:
    """Tests for LeaderboardManager."""

    @pytest.mark.asyncio
    async def test_ensure_seed_data(self, manager: LeaderboardManager) -> None:
        seeded = await manager.ensure_seed_data()

        assert seeded == [BatchId(TODAY, 0), BatchId(YESTERDAY, 0)]
        today = await manager.today()
        yesterday = await manager.yesterday()
        assert len(today) == 80
        assert [e.name for e in today[:2]] == ["Ethereum", "Bitcoin"]
        assert [e.name for e in yesterday[:2]] == ["Bitcoin", "Ethereum"]

    @pytest.mark.asyncio
    async def test_ensure_seed_data_is_idempotent(self, manager: LeaderboardManager) -> None:
        await manager.ensure_seed_data()

        assert await manager.ensure_seed_data() == []
        assert len(await manager.today()) == 80

    @pytest.mark.asyncio
    async def test_submit_snapshot_uses_next_index(self, manager: LeaderboardManager) -> None:
        entries = [
            {"rank": 1, "name": "Solana", "score": 100, "logo": ""},
            {"rank": 2, "name": "Ethereum", "score": 90, "logo": ""},
        ]

        first = await manager.submit_snapshot(TODAY, entries)
        second = await manager.submit_snapshot(TODAY, entries)

        assert first == BatchId(TODAY, 0)
        assert second == BatchId(TODAY, 1)
        assert [e.name for e in await manager.latest()] == ["Solana", "Ethereum"]

    @pytest.mark.asyncio
    async def test_submit_invalid_snapshot(self, manager: LeaderboardManager) -> None:
        with pytest.raises(InvalidLeaderboardError):
            await manager.submit_snapshot(TODAY, [{"rank": 2, "name": "Solana", "score": 1}])

        assert await manager.today() == []

    @pytest.mark.asyncio
    async def test_regenerate(self, manager: LeaderboardManager) -> None:
        await manager.ensure_seed_data()

        batch, entries = await manager.regenerate()

        assert batch == BatchId(TODAY, 1)
        assert [e.rank for e in entries] == list(range(1, 81))
        assert entries[0].score == Decimal(10000)
        assert entries[1].score == Decimal(9750)
        assert entries[79].score == Decimal(10000 - 79 * 250)
        assert {e.name for e in entries} == {e.name for e in default_entries()}
        stored = await manager.today()
        assert [e.name for e in stored] == [e.name for e in entries]

    @pytest.mark.asyncio
    async def test_regenerate_without_board(self, manager: LeaderboardManager) -> None:
        with pytest.raises(LeaderboardNotFoundError, match="2025-01-15"):
            await manager.regenerate()

    @pytest.mark.asyncio
    async def test_suggest_markets(self, manager: LeaderboardManager) -> None:
        await manager.ensure_seed_data()

        suggestions = await manager.suggest_markets(top10_count=5, h2h_count=5)

        assert len(suggestions.top10) == 5
        assert len(suggestions.h2h) == 5
        paired = [name for pair in suggestions.h2h for name in pair]
        assert len(set(paired)) == 10
        assert suggestions.batch == BatchId(TODAY, 0)
        assert suggestions.to_dict()["h2hCount"] == 5

    @pytest.mark.asyncio
    async def test_suggest_markets_caps_pairs(self, manager: LeaderboardManager) -> None:
        await manager.submit_snapshot(
            TODAY,
            [
                {"rank": 1, "name": "A", "score": 3},
                {"rank": 2, "name": "B", "score": 2},
                {"rank": 3, "name": "C", "score": 1},
            ],
        )

        suggestions = await manager.suggest_markets(top10_count=10, h2h_count=5)

        assert len(suggestions.top10) == 3
        assert len(suggestions.h2h) == 1

    @pytest.mark.asyncio
    async def test_suggest_markets_needs_two_projects(self, manager: LeaderboardManager) -> None:
        await manager.submit_snapshot(TODAY, [{"rank": 1, "name": "A", "score": 1}])

        with pytest.raises(InvalidLeaderboardError):
            await manager.suggest_markets()

    @pytest.mark.asyncio
    async def test_suggest_markets_without_board(self, manager: LeaderboardManager) -> None:
        with pytest.raises(LeaderboardNotFoundError):
            await manager.suggest_markets()
