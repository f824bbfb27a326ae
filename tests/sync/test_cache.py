"""Tests for the persisted chain-state cache."""

from datetime import date, timedelta

import pytest

from mindshare_sync.chain.abi import Phase
from mindshare_sync.storage.database import DatabaseManager
from mindshare_sync.storage.repos import ContractDTO, ContractRepository, MarketDTO, MarketRepository
from mindshare_sync.sync.cache import CacheStore
from mindshare_sync.sync.models import (
    BalanceKey,
    BalanceState,
    ClaimKey,
    ClaimState,
    MarketKey,
    MarketState,
)


async def _import_market(db: DatabaseManager, address: str) -> None:
    async with db.get_async_session() as session:
        await MarketRepository(session).upsert_import(
            MarketDTO(
                market_address=address,
                market_type="h2h",
                market_id="0x" + "1" * 64,
                question_hash="0x" + "2" * 64,
                lock_time=1_000,
                resolve_time=2_000,
                project_a="Ethereum",
                project_b="Solana",
                deployment_date=date(2025, 1, 15),
                deployment_index=0,
            )
        )


def _market_state(address: str, **overrides: object) -> MarketState:
    values: dict[str, object] = {
        "address": address,
        "phase": Phase.LOCKED,
        "pool_a": 10**30,
        "pool_b": 5,
        "winner": None,
        "lock_time": 1_000,
        "resolve_time": 2_000,
    }
    values.update(overrides)
    return MarketState(**values)  # type: ignore[arg-type]


@pytest.fixture
def cache(db: DatabaseManager, clock) -> CacheStore:
    return CacheStore(db, clock=clock)


class TestMarketCache:
    """Tests for market snapshots."""

    @pytest.mark.asyncio
    async def test_imported_but_never_synced(
        self, db: DatabaseManager, cache: CacheStore, market_address: str
    ) -> None:
        await _import_market(db, market_address)

        assert await cache.get(MarketKey(market_address)) is None

    @pytest.mark.asyncio
    async def test_upsert_then_get(
        self, db: DatabaseManager, cache: CacheStore, clock, market_address: str
    ) -> None:
        await _import_market(db, market_address)

        synced_at = await cache.upsert(MarketKey(market_address), _market_state(market_address))
        snapshot = await cache.get(MarketKey(market_address))

        assert synced_at == clock.now
        assert snapshot is not None
        assert snapshot.last_synced_at == clock.now
        assert snapshot.state.phase is Phase.LOCKED
        assert snapshot.state.pool_a == 10**30
        assert snapshot.state.pool_b == 5

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(
        self, db: DatabaseManager, cache: CacheStore, market_address: str
    ) -> None:
        await _import_market(db, market_address)
        state = _market_state(market_address)

        await cache.upsert(MarketKey(market_address), state)
        first = await cache.get(MarketKey(market_address))
        await cache.upsert(MarketKey(market_address), state)
        second = await cache.get(MarketKey(market_address))

        assert first == second
        assert await cache.list_market_addresses() == [market_address]

    @pytest.mark.asyncio
    async def test_upsert_replaces_all_fields(
        self, db: DatabaseManager, cache: CacheStore, market_address: str
    ) -> None:
        await _import_market(db, market_address)
        await cache.upsert(MarketKey(market_address), _market_state(market_address))

        await cache.upsert(
            MarketKey(market_address),
            _market_state(market_address, phase=Phase.RESOLVED, winner=2, pool_a=0),
        )
        snapshot = await cache.get_market(market_address)

        assert snapshot is not None
        assert snapshot.state.phase is Phase.RESOLVED
        assert snapshot.state.winner == 2
        assert snapshot.state.pool_a == 0

    @pytest.mark.asyncio
    async def test_market_not_imported_is_not_stored(self, cache: CacheStore, market_address: str) -> None:
        assert await cache.upsert_market(_market_state(market_address)) is None
        assert await cache.get_market(market_address) is None

    @pytest.mark.asyncio
    async def test_has_stale_markets(
        self, db: DatabaseManager, cache: CacheStore, clock, market_address: str
    ) -> None:
        await _import_market(db, market_address)
        # never synced
        assert await cache.has_stale_markets(clock.now) is True

        synced_at = await cache.upsert_market(_market_state(market_address))
        assert synced_at is not None

        assert await cache.has_stale_markets(synced_at - timedelta(seconds=1)) is False
        assert await cache.has_stale_markets(synced_at) is True


class TestUserCaches:
    """Tests for claim and balance snapshots."""

    @pytest.mark.asyncio
    async def test_claim_created_on_first_write(
        self, cache: CacheStore, clock, market_address: str, user_address: str
    ) -> None:
        key = ClaimKey(market_address, user_address)
        assert await cache.get(key) is None

        state = ClaimState(market_address, user_address, a_claims=300, b_claims=0, redeemed=False)
        await cache.upsert(key, state)
        snapshot = await cache.get(key)

        assert snapshot is not None
        assert snapshot.state == state
        assert snapshot.last_synced_at == clock.now

    @pytest.mark.asyncio
    async def test_balance_round_trip_large_value(
        self, cache: CacheStore, user_address: str
    ) -> None:
        key = BalanceKey(user_address)

        await cache.upsert(key, BalanceState(user_address, balance=2**200))
        snapshot = await cache.get(key)

        assert snapshot is not None
        assert snapshot.state.balance == 2**200

    @pytest.mark.asyncio
    async def test_mismatched_key_and_state(self, cache: CacheStore, user_address: str) -> None:
        with pytest.raises(TypeError):
            await cache.upsert(MarketKey(user_address), BalanceState(user_address, balance=1))

    @pytest.mark.asyncio
    async def test_contract_address(self, db: DatabaseManager, cache: CacheStore, token_address: str) -> None:
        assert await cache.get_contract_address("stakeToken") is None

        async with db.get_async_session() as session:
            await ContractRepository(session).upsert(ContractDTO("stakeToken", token_address))

        assert await cache.get_contract_address("stakeToken") == token_address
