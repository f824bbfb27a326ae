"""Data models for the sync layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from mindshare_sync.chain.abi import Phase


def now_utc() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class MarketKey:
    """Identifies a market by contract address."""

    address: str

    def __str__(self) -> str:
        return f"market:{self.address.lower()}"


@dataclass(frozen=True)
class ClaimKey:
    """Identifies one user's claims in one market."""

    market_address: str
    user_address: str

    def __str__(self) -> str:
        return f"investment:{self.market_address.lower()}:{self.user_address.lower()}"


@dataclass(frozen=True)
class BalanceKey:
    """Identifies a user's token balance."""

    user_address: str

    def __str__(self) -> str:
        return f"balance:{self.user_address.lower()}"


CacheKey = MarketKey | ClaimKey | BalanceKey


@dataclass(frozen=True)
class MarketState:
    """Authoritative market values as read from the ledger.

    Pool amounts are exact integers in smallest token units and are never
    negative.
    """

    address: str
    phase: Phase
    pool_a: int
    pool_b: int
    winner: int | None
    lock_time: int
    resolve_time: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "phase": self.phase.value,
            "pools": {"A": str(self.pool_a), "B": str(self.pool_b)},
            "winner": self.winner,
            "lock_time": self.lock_time,
            "resolve_time": self.resolve_time,
        }


@dataclass(frozen=True)
class ClaimState:
    """A user's claims in a market as read from the ledger."""

    market_address: str
    user_address: str
    a_claims: int
    b_claims: int
    redeemed: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "market_address": self.market_address,
            "user_address": self.user_address,
            "a_claims": str(self.a_claims),
            "b_claims": str(self.b_claims),
            "redeemed": self.redeemed,
        }


@dataclass(frozen=True)
class BalanceState:
    """A user's token balance as read from the ledger."""

    user_address: str
    balance: int

    def to_dict(self) -> dict[str, Any]:
        return {"user_address": self.user_address, "balance": str(self.balance)}


ChainState = MarketState | ClaimState | BalanceState

T = TypeVar("T", MarketState, ClaimState, BalanceState)


@dataclass(frozen=True)
class Snapshot(Generic[T]):
    """Last-known state of an entity and when it was read."""

    state: T
    last_synced_at: datetime


class FetchStatus(str, Enum):
    """Outcome of reading one entity from the ledger."""

    OK = "ok"
    ABSENT = "absent"
    TRANSIENT = "transient"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Typed outcome of a ledger read. `value` is set only for OK."""

    status: FetchStatus
    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is FetchStatus.OK

    @classmethod
    def success(cls, value: T) -> FetchResult[T]:
        return cls(status=FetchStatus.OK, value=value)

    @classmethod
    def absent(cls) -> FetchResult[T]:
        return cls(status=FetchStatus.ABSENT)

    @classmethod
    def transient(cls, error: str) -> FetchResult[T]:
        return cls(status=FetchStatus.TRANSIENT, error=error)

    @classmethod
    def unexpected(cls, error: str) -> FetchResult[T]:
        return cls(status=FetchStatus.UNEXPECTED, error=error)


@dataclass(frozen=True)
class CachedRead(Generic[T]):
    """Answer to a read request.

    `cached` is True when the value came from the local mirror rather than a
    ledger read made for this request; `stale` is True when that mirrored
    value is older than the freshness threshold.
    """

    value: T
    cached: bool
    stale: bool = False
    synced_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        data = self.value.to_dict()
        data["cached"] = self.cached
        if self.stale:
            data["stale"] = True
        return data


@dataclass
class SweepReport:
    """Aggregated outcome of one sweep over all known markets."""

    total: int = 0
    ok: int = 0
    absent: int = 0
    transient: int = 0
    unexpected: int = 0
    failures: dict[str, str] = field(default_factory=dict)
    started_at: datetime | None = None
    duration_seconds: float = 0.0
    error: str | None = None  # set when the market list could not be read

    def record(self, address: str, result: FetchResult[Any]) -> None:
        self.total += 1
        if result.status is FetchStatus.OK:
            self.ok += 1
        elif result.status is FetchStatus.ABSENT:
            self.absent += 1
        elif result.status is FetchStatus.TRANSIENT:
            self.transient += 1
            self.failures[address] = result.error or "transient"
        else:
            self.unexpected += 1
            self.failures[address] = result.error or "unexpected"


@dataclass
class InvalidationReport:
    """Keys synchronously refreshed by an invalidation call."""

    updated: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    not_imported: list[str] = field(default_factory=list)
    skipped: bool = False
