"""Pytest configuration and fixtures."""

from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from mindshare_sync.storage.database import DatabaseManager

MARKET_ADDRESS = "0x1234567890abcdef1234567890abcdef12345678"
USER_ADDRESS = "0xabcdefabcdefabcdefabcdefabcdefabcdefabcd"
TOKEN_ADDRESS = "0x3c499c542cef5e3811e1192ce70d8cc03d5c3359"


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    """Clock starting at a fixed instant."""
    return FakeClock(datetime(2025, 1, 15, 12, 0, 0, tzinfo=UTC))


@pytest.fixture
async def db(tmp_path: Path) -> AsyncIterator[DatabaseManager]:
    """Database manager on a throwaway SQLite file with the schema created."""
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await manager.init_schema_async()
    yield manager
    await manager.dispose_async()


@pytest.fixture
def market_address() -> str:
    """Sample market contract address (lower-cased as stored)."""
    return MARKET_ADDRESS


@pytest.fixture
def user_address() -> str:
    """Sample user address (lower-cased as stored)."""
    return USER_ADDRESS


@pytest.fixture
def token_address() -> str:
    """Sample stake token address."""
    return TOKEN_ADDRESS
