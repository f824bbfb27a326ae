"""Persisted mirror of ledger state keyed by entity.

CacheStore is a thin storage abstraction over the repositories: `upsert`
replaces every mirrored field of one key and stamps `last_synced_at`,
`get` returns the stored snapshot or None. It holds no TTL logic.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from mindshare_sync.chain.abi import Phase
from mindshare_sync.storage.database import DatabaseManager
from mindshare_sync.storage.repos import (
    ContractRepository,
    MarketDTO,
    MarketRepository,
    UserBalanceDTO,
    UserBalanceRepository,
    UserClaimDTO,
    UserClaimRepository,
)
from mindshare_sync.sync.models import (
    BalanceKey,
    BalanceState,
    CacheKey,
    ChainState,
    ClaimKey,
    ClaimState,
    MarketKey,
    MarketState,
    Snapshot,
    now_utc,
)

logger = logging.getLogger(__name__)


def _stored_phase(value: str) -> Phase:
    try:
        return Phase(value)
    except ValueError:
        return Phase.UNKNOWN


def market_snapshot(dto: MarketDTO) -> Snapshot[MarketState] | None:
    """Snapshot of a market row, None when the row has never been synced."""
    if dto.last_synced_at is None:
        return None
    state = MarketState(
        address=dto.market_address,
        phase=_stored_phase(dto.phase),
        pool_a=int(dto.pool_a or 0),
        pool_b=int(dto.pool_b or 0),
        winner=dto.winner,
        lock_time=dto.lock_time,
        resolve_time=dto.resolve_time,
    )
    return Snapshot(state=state, last_synced_at=dto.last_synced_at)


class CacheStore:
    """Key to last-known snapshot mapping backed by the database."""

    def __init__(self, db: DatabaseManager, *, clock: Callable[[], datetime] = now_utc) -> None:
        self._db = db
        self._clock = clock

    async def get(self, key: CacheKey) -> Snapshot[Any] | None:
        if isinstance(key, MarketKey):
            return await self.get_market(key.address)
        if isinstance(key, ClaimKey):
            return await self.get_claim(key.market_address, key.user_address)
        return await self.get_balance(key.user_address)

    async def upsert(self, key: CacheKey, state: ChainState) -> datetime | None:
        """Store `state` under `key` and return its sync time.

        Returns None when a market was never imported, in which case
        nothing is stored.
        """
        if isinstance(key, MarketKey) and isinstance(state, MarketState):
            return await self.upsert_market(state)
        if isinstance(key, ClaimKey) and isinstance(state, ClaimState):
            return await self.upsert_claim(state)
        if isinstance(key, BalanceKey) and isinstance(state, BalanceState):
            return await self.upsert_balance(state)
        raise TypeError(f"State {type(state).__name__} does not match key {key}")

    async def get_market(self, address: str) -> Snapshot[MarketState] | None:
        async with self._db.get_async_session() as session:
            dto = await MarketRepository(session).get(address)
        return market_snapshot(dto) if dto else None

    async def upsert_market(self, state: MarketState) -> datetime | None:
        synced_at = self._clock()
        async with self._db.get_async_session() as session:
            updated = await MarketRepository(session).update_chain_state(
                state.address,
                phase=state.phase.value,
                pool_a=str(state.pool_a),
                pool_b=str(state.pool_b),
                winner=state.winner,
                lock_time=state.lock_time,
                resolve_time=state.resolve_time,
                synced_at=synced_at,
            )
        if not updated:
            logger.debug("Market %s is not imported; state not stored", state.address)
            return None
        return synced_at

    async def get_claim(self, market_address: str, user_address: str) -> Snapshot[ClaimState] | None:
        async with self._db.get_async_session() as session:
            dto = await UserClaimRepository(session).get(market_address, user_address)
        if dto is None:
            return None
        state = ClaimState(
            market_address=dto.market_address,
            user_address=dto.user_address,
            a_claims=int(dto.a_claims),
            b_claims=int(dto.b_claims),
            redeemed=dto.redeemed,
        )
        return Snapshot(state=state, last_synced_at=dto.last_synced_at)

    async def upsert_claim(self, state: ClaimState) -> datetime:
        synced_at = self._clock()
        async with self._db.get_async_session() as session:
            await UserClaimRepository(session).upsert(
                UserClaimDTO(
                    market_address=state.market_address,
                    user_address=state.user_address,
                    a_claims=str(state.a_claims),
                    b_claims=str(state.b_claims),
                    redeemed=state.redeemed,
                    last_synced_at=synced_at,
                )
            )
        return synced_at

    async def get_balance(self, user_address: str) -> Snapshot[BalanceState] | None:
        async with self._db.get_async_session() as session:
            dto = await UserBalanceRepository(session).get(user_address)
        if dto is None:
            return None
        state = BalanceState(user_address=dto.user_address, balance=int(dto.balance))
        return Snapshot(state=state, last_synced_at=dto.last_synced_at)

    async def upsert_balance(self, state: BalanceState) -> datetime:
        synced_at = self._clock()
        async with self._db.get_async_session() as session:
            await UserBalanceRepository(session).upsert(
                UserBalanceDTO(
                    user_address=state.user_address,
                    balance=str(state.balance),
                    last_synced_at=synced_at,
                )
            )
        return synced_at

    async def list_market_addresses(self) -> list[str]:
        async with self._db.get_async_session() as session:
            return await MarketRepository(session).list_addresses()

    async def has_stale_markets(self, cutoff: datetime) -> bool:
        """True if any market was never synced or last synced at or before `cutoff`."""
        async with self._db.get_async_session() as session:
            return await MarketRepository(session).count_stale(cutoff) > 0

    async def get_contract_address(self, contract_type: str) -> str | None:
        async with self._db.get_async_session() as session:
            return await ContractRepository(session).get_address(contract_type)
