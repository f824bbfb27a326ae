"""Ledger access layer - RPC client and contract ABIs."""

from mindshare_sync.chain.abi import MARKET_ABI, STAKE_TOKEN_ABI, Phase
from mindshare_sync.chain.client import (
    ChainClient,
    ChainClientError,
    ContractCallError,
    RateLimiter,
    RPCError,
)

__all__ = [
    "MARKET_ABI",
    "STAKE_TOKEN_ABI",
    "ChainClient",
    "ChainClientError",
    "ContractCallError",
    "Phase",
    "RPCError",
    "RateLimiter",
]
