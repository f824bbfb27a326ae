"""Sync layer - Mirrors ledger state into the local store."""

from mindshare_sync.sync.freshness import DEFAULT_FRESHNESS_SECONDS, FreshnessPolicy
from mindshare_sync.sync.models import (
    BalanceKey,
    BalanceState,
    CachedRead,
    CacheKey,
    ClaimKey,
    ClaimState,
    FetchResult,
    FetchStatus,
    InvalidationReport,
    MarketKey,
    MarketState,
    Snapshot,
    SweepReport,
)

__all__ = [
    "DEFAULT_FRESHNESS_SECONDS",
    "BalanceKey",
    "BalanceState",
    "CacheKey",
    "CachedRead",
    "ClaimKey",
    "ClaimState",
    "FetchResult",
    "FetchStatus",
    "FreshnessPolicy",
    "InvalidationReport",
    "MarketKey",
    "MarketState",
    "Snapshot",
    "SweepReport",
]
