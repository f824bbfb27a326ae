"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
chain-state sync service, loading and validating environment variables
at startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        alias="DATABASE_URL",
        description="PostgreSQL (or sqlite+aiosqlite for local runs) connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError("DATABASE_URL must be a PostgreSQL or sqlite+aiosqlite connection string")
        return v


class RedisSettings(BaseSettings):
    """Redis connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description="Optional Redis connection string (enables the contract-code cache)",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith("redis://"):
            raise ValueError("REDIS_URL must start with redis://")
        return v


class ChainSettings(BaseSettings):
    """Ledger RPC settings."""

    model_config = SettingsConfigDict(env_prefix="CHAIN_", extra="ignore")

    rpc_url: str = Field(
        default="https://sepolia.base.org",
        alias="RPC_URL",
        description="Primary RPC endpoint",
    )
    fallback_rpc_url: str | None = Field(
        default=None,
        alias="RPC_FALLBACK_URL",
        description="Fallback RPC endpoint",
    )
    max_requests_per_second: float = Field(
        default=25,
        alias="CHAIN_MAX_REQUESTS_PER_SECOND",
        gt=0,
        le=1000,
        description="Client-side rate limit for RPC calls",
    )
    max_retries: int = Field(
        default=3,
        alias="CHAIN_MAX_RETRIES",
        ge=1,
        le=10,
        description="Transport retries per RPC call",
    )
    admin_private_key: SecretStr | None = Field(
        default=None,
        alias="ADMIN_PRIVATE_KEY",
        description="Signer used to close markets (admin only)",
    )

    @field_validator("rpc_url", "fallback_rpc_url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate RPC URL format."""
        if v is None:
            return v
        if not v.startswith(("http://", "https://")):
            raise ValueError("RPC URL must be an HTTP(S) endpoint")
        return v


class CacheSettings(BaseSettings):
    """Chain-state cache and sweep settings."""

    model_config = SettingsConfigDict(env_prefix="CACHE_", extra="ignore")

    enabled: bool = Field(
        default=False,
        alias="ENABLE_CACHE",
        description="Serve reads from the local mirror when fresh",
    )
    freshness_seconds: float = Field(
        default=30.0,
        alias="CACHE_FRESHNESS_SECONDS",
        gt=0,
        le=24 * 3600,
        description="Age after which a cached snapshot is stale",
    )
    sweep_interval_seconds: int = Field(
        default=300,
        alias="SWEEP_INTERVAL_SECONDS",
        ge=0,
        le=24 * 3600,
        description="Interval between periodic market sweeps (0 disables the loop)",
    )
    stake_token_contract: str = Field(
        default="stakeToken",
        alias="STAKE_TOKEN_CONTRACT",
        min_length=1,
        description="Registry name of the token whose balances are mirrored",
    )


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from mindshare_sync.config import get_settings

        settings = get_settings()
        print(settings.database.url)
        print(settings.cache.enabled)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # NOTE: Each nested BaseSettings must be given the same env_file, otherwise it
    # will only read from the process environment (and ignore `.env`).
    database: DatabaseSettings = Field(
        default_factory=lambda: DatabaseSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    redis: RedisSettings = Field(
        default_factory=lambda: RedisSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    chain: ChainSettings = Field(
        default_factory=lambda: ChainSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    cache: CacheSettings = Field(
        default_factory=lambda: CacheSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    # Application settings
    seed_leaderboard: bool = Field(
        default=True,
        alias="SEED_LEADERBOARD",
        description="Seed today's and yesterday's leaderboards on start when missing",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "database_url": self._redact_url(self.database.url),
            "redis_url": self._redact_url(self.redis.url) if self.redis.url else "(not set)",
            "chain": {
                "rpc_url": self.chain.rpc_url,
                "fallback_rpc_url": self.chain.fallback_rpc_url or "(not set)",
                "max_requests_per_second": str(self.chain.max_requests_per_second),
                "admin_private_key": "(set)" if self.chain.admin_private_key else "(not set)",
            },
            "cache": {
                "enabled": str(self.cache.enabled),
                "freshness_seconds": str(self.cache.freshness_seconds),
                "sweep_interval_seconds": str(self.cache.sweep_interval_seconds),
                "stake_token_contract": self.cache.stake_token_contract,
            },
            "seed_leaderboard": str(self.seed_leaderboard),
            "log_level": self.log_level,
        }

    def validate_requirements(
        self,
        *,
        command: Literal[
            "run",
            "sweep",
            "seed",
            "close-all",
            "regenerate-leaderboard",
            "import-markets",
            "save-contracts",
        ],
    ) -> None:
        """Validate command-specific requirements.

        A command that needs a capability which is not configured must refuse
        to run.
        """
        if command == "close-all" and not self.chain.admin_private_key:
            raise ValueError("ADMIN_PRIVATE_KEY is required to close markets")

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Uses LRU cache to ensure settings are loaded only once and
    reused across the application.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If required environment variables are missing
            or have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
