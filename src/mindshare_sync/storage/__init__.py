"""Storage layer - Database schema, sessions and repositories."""

from mindshare_sync.storage.database import (
    DatabaseManager,
    create_async_db_engine,
    create_async_session_factory,
    init_async_db,
)
from mindshare_sync.storage.models import (
    Base,
    ContractModel,
    LeaderboardEntryModel,
    MarketModel,
    UserBalanceModel,
    UserClaimModel,
)
from mindshare_sync.storage.repos import (
    ContractDTO,
    ContractRepository,
    LeaderboardEntryDTO,
    LeaderboardRepository,
    MarketDTO,
    MarketRepository,
    UserBalanceDTO,
    UserBalanceRepository,
    UserClaimDTO,
    UserClaimRepository,
)

__all__ = [
    "Base",
    "ContractDTO",
    "ContractModel",
    "ContractRepository",
    "DatabaseManager",
    "LeaderboardEntryDTO",
    "LeaderboardEntryModel",
    "LeaderboardRepository",
    "MarketDTO",
    "MarketModel",
    "MarketRepository",
    "UserBalanceDTO",
    "UserBalanceModel",
    "UserBalanceRepository",
    "UserClaimDTO",
    "UserClaimModel",
    "UserClaimRepository",
    "create_async_db_engine",
    "create_async_session_factory",
    "init_async_db",
]
