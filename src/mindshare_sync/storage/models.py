"""SQLAlchemy models for persistent storage.

This module defines the database schema for the market mirror, per-user
claim and balance caches, leaderboard snapshots and the contract registry.
Token amounts are stored as exact decimal strings.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# uint256 needs at most 78 decimal digits
AMOUNT_LENGTH = 78


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class MarketModel(Base):
    """Imported market deployment plus its mirrored ledger state."""

    __tablename__ = "markets"

    market_address: Mapped[str] = mapped_column(String(42), primary_key=True)

    # Import metadata
    market_type: Mapped[str] = mapped_column(String(8), nullable=False)  # top10|h2h
    project_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    project_a: Mapped[str | None] = mapped_column(String(128), nullable=True)
    project_b: Mapped[str | None] = mapped_column(String(128), nullable=True)
    market_id: Mapped[str] = mapped_column(String(66), nullable=False)
    question_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    last_tx_hash: Mapped[str | None] = mapped_column(String(66), nullable=True)

    # Deployment batch
    deployment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    deployment_index: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Mirrored ledger state
    phase: Mapped[str] = mapped_column(String(16), nullable=False, default="trading")
    pool_a: Mapped[str | None] = mapped_column(String(AMOUNT_LENGTH), nullable=True)
    pool_b: Mapped[str | None] = mapped_column(String(AMOUNT_LENGTH), nullable=True)
    winner: Mapped[int | None] = mapped_column(Integer, nullable=True)
    lock_time: Mapped[int] = mapped_column(BigInteger, nullable=False)
    resolve_time: Mapped[int] = mapped_column(BigInteger, nullable=False)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        Index("idx_markets_deployment", "deployment_date", "deployment_index"),
        Index("idx_markets_last_synced", "last_synced_at"),
    )


class UserClaimModel(Base):
    """Cached per-user claims in a market."""

    __tablename__ = "user_claims"

    market_address: Mapped[str] = mapped_column(String(42), primary_key=True)
    user_address: Mapped[str] = mapped_column(String(42), primary_key=True)

    a_claims: Mapped[str] = mapped_column(String(AMOUNT_LENGTH), nullable=False, default="0")
    b_claims: Mapped[str] = mapped_column(String(AMOUNT_LENGTH), nullable=False, default="0")
    redeemed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_user_claims_user", "user_address"),)


class UserBalanceModel(Base):
    """Cached token balance per user."""

    __tablename__ = "user_balances"

    user_address: Mapped[str] = mapped_column(String(42), primary_key=True)
    balance: Mapped[str] = mapped_column(String(AMOUNT_LENGTH), nullable=False, default="0")
    last_synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class LeaderboardEntryModel(Base):
    """One ranked project within a (date, index) leaderboard snapshot."""

    __tablename__ = "leaderboard_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    snapshot_date: Mapped[date] = mapped_column(Date, nullable=False)
    snapshot_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    score: Mapped[Decimal] = mapped_column(Numeric(20, 6), nullable=False)
    logo: Mapped[str] = mapped_column(String(512), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        UniqueConstraint(
            "snapshot_date", "snapshot_index", "rank", name="uq_leaderboard_entries_rank"
        ),
        Index("idx_leaderboard_entries_batch", "snapshot_date", "snapshot_index"),
    )


class ContractModel(Base):
    """Contract registry: logical name to deployed address."""

    __tablename__ = "contracts"

    contract_type: Mapped[str] = mapped_column(String(64), primary_key=True)
    address: Mapped[str] = mapped_column(String(42), nullable=False)
    # `metadata` is reserved on declarative classes
    details: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
