"""Freshness policy for cached ledger snapshots."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from mindshare_sync.sync.models import Snapshot, now_utc

DEFAULT_FRESHNESS_SECONDS = 30.0


@dataclass(frozen=True)
class FreshnessPolicy:
    """Decides whether a cached snapshot can be served without a refetch.

    A snapshot is fresh iff it exists and ``now - last_synced_at`` is
    strictly less than the threshold. At exactly the threshold it is stale.
    """

    threshold: timedelta = timedelta(seconds=DEFAULT_FRESHNESS_SECONDS)
    clock: Callable[[], datetime] = field(default=now_utc, compare=False)

    @classmethod
    def from_seconds(
        cls, seconds: float, *, clock: Callable[[], datetime] | None = None
    ) -> FreshnessPolicy:
        if seconds < 0:
            raise ValueError("Freshness threshold must be non-negative")
        return cls(threshold=timedelta(seconds=seconds), clock=clock or now_utc)

    def is_fresh_at(self, last_synced_at: datetime | None, now: datetime | None = None) -> bool:
        if last_synced_at is None:
            return False
        now = now or self.clock()
        return now - last_synced_at < self.threshold

    def is_fresh(self, snapshot: Snapshot[Any] | None, now: datetime | None = None) -> bool:
        if snapshot is None:
            return False
        return self.is_fresh_at(snapshot.last_synced_at, now)

    def stale_cutoff(self, now: datetime | None = None) -> datetime:
        """Rows synced at or before this instant are stale."""
        return (now or self.clock()) - self.threshold
