"""Tests for (date, index) batch versioning."""

from datetime import date
from decimal import Decimal

import pytest

from mindshare_sync.batches.versioning import BatchId, BatchKind, VersionedCollectionManager
from mindshare_sync.storage.database import DatabaseManager
from mindshare_sync.storage.repos import LeaderboardEntryDTO, MarketDTO, MarketRepository

D1 = date(2025, 1, 14)
D2 = date(2025, 1, 15)
D3 = date(2025, 1, 16)


def _entries(*names: str) -> list[LeaderboardEntryDTO]:
    return [
        LeaderboardEntryDTO(rank=i + 1, name=name, score=Decimal(100 - i), logo=f"{name}.png")
        for i, name in enumerate(names)
    ]


async def _import(db: DatabaseManager, address: str, day: date, index: int) -> None:
    async with db.get_async_session() as session:
        await MarketRepository(session).upsert_import(
            MarketDTO(
                market_address=address,
                market_type="top10",
                market_id="0x" + "1" * 64,
                question_hash="0x" + "2" * 64,
                lock_time=1_000,
                resolve_time=2_000,
                deployment_date=day,
                deployment_index=index,
            )
        )


@pytest.fixture
def versions(db: DatabaseManager) -> VersionedCollectionManager:
    return VersionedCollectionManager(db, today=lambda: D2)


class TestBatchId:
    """Tests for BatchId."""

    def test_ordering(self) -> None:
        assert BatchId(D1, 5) < BatchId(D2, 0) < BatchId(D2, 1)
        assert max([BatchId(D1, 9), BatchId(D2, 0), BatchId(D1, 1)]) == BatchId(D2, 0)

    def test_rejects_negative_index(self) -> None:
        with pytest.raises(ValueError):
            BatchId(D1, -1)

    def test_str_and_dict(self) -> None:
        assert str(BatchId(D2, 3)) == "2025-01-15#3"
        assert BatchId(D2, 3).to_dict() == {"date": "2025-01-15", "index": 3}


class TestLeaderboardVersions:
    """Tests for leaderboard batches."""

    @pytest.mark.asyncio
    async def test_empty(self, versions: VersionedCollectionManager) -> None:
        assert await versions.current_batch(BatchKind.LEADERBOARD) is None
        assert await versions.latest_only(BatchKind.LEADERBOARD) == []
        assert await versions.next_index(BatchKind.LEADERBOARD, D2) == 0

    @pytest.mark.asyncio
    async def test_current_and_next(self, versions: VersionedCollectionManager) -> None:
        await versions.write_batch(BatchId(D1, 0), _entries("Ethereum"))
        await versions.write_batch(BatchId(D1, 1), _entries("Solana"))
        await versions.write_batch(BatchId(D2, 0), _entries("Bitcoin"))

        assert await versions.current_batch(BatchKind.LEADERBOARD) == BatchId(D2, 0)
        assert await versions.next_index(BatchKind.LEADERBOARD, D1) == 2
        assert await versions.next_index(BatchKind.LEADERBOARD, D3) == 0
        assert await versions.next_batch(BatchKind.LEADERBOARD) == BatchId(D2, 1)
        assert await versions.latest_batch_for_date(BatchKind.LEADERBOARD, D1) == BatchId(D1, 1)
        assert [e.name for e in await versions.latest_only(BatchKind.LEADERBOARD)] == ["Bitcoin"]

    @pytest.mark.asyncio
    async def test_same_batch_written_twice_keeps_one_copy(
        self, versions: VersionedCollectionManager
    ) -> None:
        batch = BatchId(D2, 3)

        await versions.write_batch(batch, _entries("Ethereum", "Solana"))
        await versions.write_batch(batch, _entries("Ethereum", "Solana"))

        rows = await versions.rows(BatchKind.LEADERBOARD, batch)
        assert [(e.rank, e.name) for e in rows] == [(1, "Ethereum"), (2, "Solana")]

    @pytest.mark.asyncio
    async def test_clear_and_reset(self, versions: VersionedCollectionManager) -> None:
        await versions.write_batch(BatchId(D1, 4), _entries("Ethereum"))

        batch = await versions.clear_and_reset(BatchKind.LEADERBOARD)

        assert batch == BatchId(D2, 0)
        assert await versions.current_batch(BatchKind.LEADERBOARD) is None


class TestMarketVersions:
    """Tests for market deployment batches."""

    @pytest.mark.asyncio
    async def test_latest_only_excludes_older_batches(
        self, db: DatabaseManager, versions: VersionedCollectionManager
    ) -> None:
        await _import(db, "0x" + "a" * 40, D1, 0)
        await _import(db, "0x" + "b" * 40, D2, 0)
        await _import(db, "0x" + "c" * 40, D2, 1)

        latest = await versions.latest_markets()

        assert [m.market_address for m in latest] == ["0x" + "c" * 40]
        assert await versions.next_index(BatchKind.MARKETS, D2) == 2

    @pytest.mark.asyncio
    async def test_reimported_address_moves_to_new_batch(
        self, db: DatabaseManager, versions: VersionedCollectionManager
    ) -> None:
        await _import(db, "0x" + "a" * 40, D1, 0)
        await _import(db, "0x" + "b" * 40, D1, 0)
        await _import(db, "0x" + "a" * 40, D2, 0)

        latest = await versions.latest_markets()

        assert [m.market_address for m in latest] == ["0x" + "a" * 40]
        assert [m.market_address for m in await versions.rows(BatchKind.MARKETS, BatchId(D1, 0))] == [
            "0x" + "b" * 40
        ]
