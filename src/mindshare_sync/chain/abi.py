"""Contract ABIs and ledger value decoding."""

from __future__ import annotations

from enum import Enum
from typing import Any

MARKET_ABI: list[dict[str, Any]] = [
    {
        "inputs": [],
        "name": "phase",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "close",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "lockTime",
        "outputs": [{"name": "", "type": "uint64"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "pools",
        "outputs": [
            {"name": "A", "type": "uint128"},
            {"name": "B", "type": "uint128"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "winner",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "resolveTime",
        "outputs": [{"name": "", "type": "uint64"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "", "type": "address"}],
        "name": "a",
        "outputs": [
            {"name": "aClaims", "type": "uint128"},
            {"name": "bClaims", "type": "uint128"},
            {"name": "redeemed", "type": "bool"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
]

# ERC20 balanceOf ABI
STAKE_TOKEN_ABI: list[dict[str, Any]] = [
    {
        "constant": True,
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function",
    }
]


class Phase(str, Enum):
    """Lifecycle stage of a market contract."""

    TRADING = "trading"
    LOCKED = "locked"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"

    @classmethod
    def from_raw(cls, value: int) -> Phase:
        """Decode the uint8 phase reported by the market contract."""
        return _PHASES_BY_RAW.get(int(value), cls.UNKNOWN)


_PHASES_BY_RAW: dict[int, Phase] = {
    0: Phase.TRADING,
    1: Phase.LOCKED,
    2: Phase.RESOLVED,
    3: Phase.CANCELLED,
}


def decode_uint(value: object, *, field: str) -> int:
    """Decode a non-negative integer returned by a contract call.

    Raises:
        ValueError: If the value is not an integer or is negative.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field}: expected integer, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{field}: negative value {value}")
    return value


def decode_pair(value: object, *, field: str) -> tuple[int, int]:
    """Decode a two-element uint tuple such as `pools()`."""
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError(f"{field}: expected a pair, got {value!r}")
    return decode_uint(value[0], field=f"{field}[0]"), decode_uint(value[1], field=f"{field}[1]")
