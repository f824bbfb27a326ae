"""Repository pattern implementations for data access.

This module provides data access abstractions for the market mirror, the
per-user claim and balance caches, leaderboard snapshots and the contract
registry. Addresses are stored lower-cased.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from mindshare_sync.storage.models import (
    ContractModel,
    LeaderboardEntryModel,
    MarketModel,
    UserBalanceModel,
    UserClaimModel,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# Market columns written by the sync layer; a re-import leaves them alone
LEDGER_MARKET_COLUMNS = frozenset({"phase", "winner", "lock_time", "resolve_time"})


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _insert_for(session: AsyncSession, model: type[Any]) -> Any:
    if session.get_bind().dialect.name == "postgresql":
        return pg_insert(model)
    return sqlite_insert(model)


@dataclass
class MarketDTO:
    """Data transfer object for imported markets."""

    market_address: str
    market_type: str
    market_id: str
    question_hash: str
    lock_time: int
    resolve_time: int
    project_name: str | None = None
    project_a: str | None = None
    project_b: str | None = None
    phase: str = "trading"
    pool_a: str | None = None
    pool_b: str | None = None
    winner: int | None = None
    last_tx_hash: str | None = None
    deployment_date: date | None = None
    deployment_index: int | None = None
    last_synced_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, model: MarketModel) -> MarketDTO:
        return cls(
            market_address=model.market_address,
            market_type=model.market_type,
            market_id=model.market_id,
            question_hash=model.question_hash,
            lock_time=model.lock_time,
            resolve_time=model.resolve_time,
            project_name=model.project_name,
            project_a=model.project_a,
            project_b=model.project_b,
            phase=model.phase,
            pool_a=model.pool_a,
            pool_b=model.pool_b,
            winner=model.winner,
            last_tx_hash=model.last_tx_hash,
            deployment_date=model.deployment_date,
            deployment_index=model.deployment_index,
            last_synced_at=_as_utc(model.last_synced_at),
            created_at=_as_utc(model.created_at),
            updated_at=_as_utc(model.updated_at),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "market_address": self.market_address,
            "type": self.market_type,
            "project_name": self.project_name,
            "project_a": self.project_a,
            "project_b": self.project_b,
            "market_id": self.market_id,
            "question_hash": self.question_hash,
            "phase": self.phase,
            "pools": {"A": self.pool_a, "B": self.pool_b},
            "winner": self.winner,
            "lock_time": self.lock_time,
            "resolve_time": self.resolve_time,
            "last_tx_hash": self.last_tx_hash,
            "deployment_date": self.deployment_date.isoformat() if self.deployment_date else None,
            "deployment_index": self.deployment_index,
            "last_synced_at": self.last_synced_at.isoformat() if self.last_synced_at else None,
        }


@dataclass
class UserClaimDTO:
    """Data transfer object for cached user claims."""

    market_address: str
    user_address: str
    a_claims: str
    b_claims: str
    redeemed: bool
    last_synced_at: datetime

    @classmethod
    def from_model(cls, model: UserClaimModel) -> UserClaimDTO:
        return cls(
            market_address=model.market_address,
            user_address=model.user_address,
            a_claims=model.a_claims,
            b_claims=model.b_claims,
            redeemed=model.redeemed,
            last_synced_at=_as_utc(model.last_synced_at),  # type: ignore[arg-type]
        )


@dataclass
class UserBalanceDTO:
    """Data transfer object for cached token balances."""

    user_address: str
    balance: str
    last_synced_at: datetime

    @classmethod
    def from_model(cls, model: UserBalanceModel) -> UserBalanceDTO:
        return cls(
            user_address=model.user_address,
            balance=model.balance,
            last_synced_at=_as_utc(model.last_synced_at),  # type: ignore[arg-type]
        )


@dataclass
class LeaderboardEntryDTO:
    """Data transfer object for one leaderboard row."""

    rank: int
    name: str
    score: Decimal
    logo: str
    snapshot_date: date | None = None
    snapshot_index: int | None = None

    @classmethod
    def from_model(cls, model: LeaderboardEntryModel) -> LeaderboardEntryDTO:
        return cls(
            rank=model.rank,
            name=model.name,
            score=model.score,
            logo=model.logo,
            snapshot_date=model.snapshot_date,
            snapshot_index=model.snapshot_index,
        )

    def to_dict(self) -> dict[str, Any]:
        return {"rank": self.rank, "name": self.name, "score": float(self.score), "logo": self.logo}


@dataclass
class ContractDTO:
    """Data transfer object for contract registry entries."""

    contract_type: str
    address: str
    details: dict[str, Any] | None = None

    @classmethod
    def from_model(cls, model: ContractModel) -> ContractDTO:
        return cls(contract_type=model.contract_type, address=model.address, details=model.details)


class MarketRepository:
    """Repository for the market mirror.

    Import writes create or replace a row by contract address. Chain-state
    writes only touch rows that already exist.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, address: str) -> MarketDTO | None:
        result = await self.session.execute(
            select(MarketModel).where(MarketModel.market_address == address.lower())
        )
        model = result.scalar_one_or_none()
        return MarketDTO.from_model(model) if model else None

    async def list_all(self) -> list[MarketDTO]:
        result = await self.session.execute(
            select(MarketModel).order_by(MarketModel.lock_time, MarketModel.market_address)
        )
        return [MarketDTO.from_model(m) for m in result.scalars().all()]

    async def list_for_batch(self, snapshot_date: date, index: int) -> list[MarketDTO]:
        result = await self.session.execute(
            select(MarketModel)
            .where(
                (MarketModel.deployment_date == snapshot_date)
                & (MarketModel.deployment_index == index)
            )
            .order_by(MarketModel.lock_time, MarketModel.market_address)
        )
        return [MarketDTO.from_model(m) for m in result.scalars().all()]

    async def list_addresses(self) -> list[str]:
        result = await self.session.execute(
            select(MarketModel.market_address).order_by(MarketModel.market_address)
        )
        return list(result.scalars().all())

    async def max_batch(self) -> tuple[date, int] | None:
        """Return the greatest (deployment_date, deployment_index) present."""
        result = await self.session.execute(
            select(MarketModel.deployment_date, MarketModel.deployment_index)
            .where(MarketModel.deployment_date.is_not(None))
            .order_by(MarketModel.deployment_date.desc(), MarketModel.deployment_index.desc())
            .limit(1)
        )
        row = result.first()
        if row is None:
            return None
        return row[0], row[1] or 0

    async def max_index_for_date(self, snapshot_date: date) -> int | None:
        result = await self.session.execute(
            select(func.max(MarketModel.deployment_index)).where(
                MarketModel.deployment_date == snapshot_date
            )
        )
        return result.scalar_one_or_none()

    async def count_stale(self, cutoff: datetime) -> int:
        """Count markets never synced or last synced at or before `cutoff`."""
        result = await self.session.execute(
            select(func.count()).select_from(MarketModel).where(
                or_(MarketModel.last_synced_at.is_(None), MarketModel.last_synced_at <= cutoff)
            )
        )
        return int(result.scalar_one())

    async def upsert_import(self, dto: MarketDTO) -> None:
        """Create a market, or replace its import metadata and batch by address.

        Phase, winner and times of an existing row are left as mirrored from
        the ledger; the imported values only seed a new row.
        """
        now = datetime.now(UTC)
        values = {
            "market_address": dto.market_address.lower(),
            "market_type": dto.market_type,
            "project_name": dto.project_name,
            "project_a": dto.project_a,
            "project_b": dto.project_b,
            "market_id": dto.market_id,
            "question_hash": dto.question_hash,
            "phase": dto.phase,
            "winner": dto.winner,
            "lock_time": dto.lock_time,
            "resolve_time": dto.resolve_time,
            "deployment_date": dto.deployment_date,
            "deployment_index": dto.deployment_index,
        }
        stmt = _insert_for(self.session, MarketModel).values(**values, created_at=now, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=["market_address"],
            set_={
                **{
                    name: getattr(stmt.excluded, name)
                    for name in values
                    if name != "market_address" and name not in LEDGER_MARKET_COLUMNS
                },
                "updated_at": now,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()

    async def update_chain_state(
        self,
        address: str,
        *,
        phase: str,
        pool_a: str,
        pool_b: str,
        winner: int | None,
        lock_time: int,
        resolve_time: int,
        synced_at: datetime,
    ) -> bool:
        """Replace the mirrored ledger fields of an existing market.

        Returns:
            False when no market with that address has been imported.
        """
        result = await self.session.execute(
            update(MarketModel)
            .where(MarketModel.market_address == address.lower())
            .values(
                phase=phase,
                pool_a=pool_a,
                pool_b=pool_b,
                winner=winner,
                lock_time=lock_time,
                resolve_time=resolve_time,
                last_synced_at=synced_at,
                updated_at=datetime.now(UTC),
            )
        )
        await self.session.flush()
        return (result.rowcount or 0) > 0

    async def set_last_tx_hash(self, address: str, tx_hash: str) -> None:
        await self.session.execute(
            update(MarketModel)
            .where(MarketModel.market_address == address.lower())
            .values(last_tx_hash=tx_hash, updated_at=datetime.now(UTC))
        )
        await self.session.flush()

    async def delete_all(self) -> int:
        result = await self.session.execute(delete(MarketModel))
        await self.session.flush()
        return result.rowcount or 0


class UserClaimRepository:
    """Repository for cached per-user claims. Rows are created on first write."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, market_address: str, user_address: str) -> UserClaimDTO | None:
        result = await self.session.execute(
            select(UserClaimModel).where(
                (UserClaimModel.market_address == market_address.lower())
                & (UserClaimModel.user_address == user_address.lower())
            )
        )
        model = result.scalar_one_or_none()
        return UserClaimDTO.from_model(model) if model else None

    async def upsert(self, dto: UserClaimDTO) -> None:
        values = {
            "market_address": dto.market_address.lower(),
            "user_address": dto.user_address.lower(),
            "a_claims": dto.a_claims,
            "b_claims": dto.b_claims,
            "redeemed": dto.redeemed,
            "last_synced_at": dto.last_synced_at,
        }
        stmt = _insert_for(self.session, UserClaimModel).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["market_address", "user_address"],
            set_={
                "a_claims": stmt.excluded.a_claims,
                "b_claims": stmt.excluded.b_claims,
                "redeemed": stmt.excluded.redeemed,
                "last_synced_at": stmt.excluded.last_synced_at,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()


class UserBalanceRepository:
    """Repository for cached token balances. Rows are created on first write."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, user_address: str) -> UserBalanceDTO | None:
        result = await self.session.execute(
            select(UserBalanceModel).where(UserBalanceModel.user_address == user_address.lower())
        )
        model = result.scalar_one_or_none()
        return UserBalanceDTO.from_model(model) if model else None

    async def upsert(self, dto: UserBalanceDTO) -> None:
        values = {
            "user_address": dto.user_address.lower(),
            "balance": dto.balance,
            "last_synced_at": dto.last_synced_at,
        }
        stmt = _insert_for(self.session, UserBalanceModel).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_address"],
            set_={
                "balance": stmt.excluded.balance,
                "last_synced_at": stmt.excluded.last_synced_at,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()


class LeaderboardRepository:
    """Repository for leaderboard snapshots grouped by (date, index)."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def max_batch(self) -> tuple[date, int] | None:
        result = await self.session.execute(
            select(LeaderboardEntryModel.snapshot_date, LeaderboardEntryModel.snapshot_index)
            .order_by(
                LeaderboardEntryModel.snapshot_date.desc(),
                LeaderboardEntryModel.snapshot_index.desc(),
            )
            .limit(1)
        )
        row = result.first()
        return (row[0], row[1]) if row else None

    async def max_index_for_date(self, snapshot_date: date) -> int | None:
        result = await self.session.execute(
            select(func.max(LeaderboardEntryModel.snapshot_index)).where(
                LeaderboardEntryModel.snapshot_date == snapshot_date
            )
        )
        return result.scalar_one_or_none()

    async def list_for_batch(self, snapshot_date: date, index: int) -> list[LeaderboardEntryDTO]:
        result = await self.session.execute(
            select(LeaderboardEntryModel)
            .where(
                (LeaderboardEntryModel.snapshot_date == snapshot_date)
                & (LeaderboardEntryModel.snapshot_index == index)
            )
            .order_by(LeaderboardEntryModel.rank)
        )
        return [LeaderboardEntryDTO.from_model(m) for m in result.scalars().all()]

    async def replace_batch(
        self, snapshot_date: date, index: int, entries: Iterable[LeaderboardEntryDTO]
    ) -> int:
        """Delete any rows of (date, index) then insert `entries` under it."""
        await self.session.execute(
            delete(LeaderboardEntryModel).where(
                (LeaderboardEntryModel.snapshot_date == snapshot_date)
                & (LeaderboardEntryModel.snapshot_index == index)
            )
        )
        now = datetime.now(UTC)
        models = [
            LeaderboardEntryModel(
                snapshot_date=snapshot_date,
                snapshot_index=index,
                rank=e.rank,
                name=e.name,
                score=e.score,
                logo=e.logo,
                created_at=now,
            )
            for e in entries
        ]
        self.session.add_all(models)
        await self.session.flush()
        return len(models)

    async def delete_all(self) -> int:
        result = await self.session.execute(delete(LeaderboardEntryModel))
        await self.session.flush()
        return result.rowcount or 0


class ContractRepository:
    """Repository for the contract registry (logical name to address)."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_address(self, contract_type: str) -> str | None:
        result = await self.session.execute(
            select(ContractModel.address).where(ContractModel.contract_type == contract_type)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[ContractDTO]:
        result = await self.session.execute(select(ContractModel).order_by(ContractModel.contract_type))
        return [ContractDTO.from_model(m) for m in result.scalars().all()]

    async def upsert(self, dto: ContractDTO) -> None:
        now = datetime.now(UTC)
        model = await self.session.get(ContractModel, dto.contract_type)
        if model is None:
            self.session.add(
                ContractModel(
                    contract_type=dto.contract_type,
                    address=dto.address,
                    details=dto.details,
                    created_at=now,
                    updated_at=now,
                )
            )
        else:
            model.address = dto.address
            model.details = dto.details
            model.updated_at = now
        await self.session.flush()
