"""Versioned collections - Market deployments and leaderboard snapshots."""

from mindshare_sync.batches.leaderboard import (
    BatchError,
    InvalidLeaderboardError,
    LeaderboardManager,
    LeaderboardNotFoundError,
    MarketSuggestions,
)
from mindshare_sync.batches.markets import ImportResult, MarketDeployments, MarketImport
from mindshare_sync.batches.versioning import BatchId, BatchKind, VersionedCollectionManager

__all__ = [
    "BatchError",
    "BatchId",
    "BatchKind",
    "ImportResult",
    "InvalidLeaderboardError",
    "LeaderboardManager",
    "LeaderboardNotFoundError",
    "MarketDeployments",
    "MarketImport",
    "MarketSuggestions",
    "VersionedCollectionManager",
]
