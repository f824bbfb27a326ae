"""Reads authoritative market, claim and balance state from the ledger.

Every fetch first probes for contract code at the target address. No code
means the entity is absent, which is a terminal outcome rather than an
error. Failures are classified instead of raised:

- TRANSIENT: the call was rejected or returned malformed data.
- UNEXPECTED: anything else; logged with a traceback.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from web3 import AsyncWeb3

from mindshare_sync.chain.abi import Phase, decode_pair, decode_uint
from mindshare_sync.chain.client import ChainClient, ContractCallError
from mindshare_sync.sync.models import (
    BalanceState,
    ClaimState,
    FetchResult,
    MarketState,
    T,
)

logger = logging.getLogger(__name__)


class ChainStateFetcher:
    """Fetches canonical entity state and classifies the outcome."""

    def __init__(self, client: ChainClient) -> None:
        self._client = client

    async def fetch_market(self, address: str) -> FetchResult[MarketState]:
        """Read phase, pools, winner, lockTime and resolveTime of a market.

        The five reads are issued concurrently and treated as one snapshot.
        """

        async def read() -> MarketState:
            results = await asyncio.gather(
                self._client.call_market(address, "phase"),
                self._client.call_market(address, "pools"),
                self._client.call_market(address, "winner"),
                self._client.call_market(address, "lockTime"),
                self._client.call_market(address, "resolveTime"),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result
            phase, pools, winner, lock_time, resolve_time = results
            pool_a, pool_b = decode_pair(pools, field="pools")
            winner_raw = decode_uint(winner, field="winner")
            return MarketState(
                address=address,
                phase=Phase.from_raw(decode_uint(phase, field="phase")),
                pool_a=pool_a,
                pool_b=pool_b,
                winner=winner_raw if winner_raw > 0 else None,
                lock_time=decode_uint(lock_time, field="lockTime"),
                resolve_time=decode_uint(resolve_time, field="resolveTime"),
            )

        return await self._fetch("market", address, address, read)

    async def fetch_user_claim(self, market_address: str, user_address: str) -> FetchResult[ClaimState]:
        """Read a user's (aClaims, bClaims, redeemed) tuple from a market."""

        async def read() -> ClaimState:
            info = await self._client.call_market(market_address, "a", AsyncWeb3.to_checksum_address(user_address))
            if not isinstance(info, (list, tuple)) or len(info) != 3:
                raise ValueError(f"a(): expected a 3-tuple, got {info!r}")
            a_claims, b_claims, redeemed = info
            return ClaimState(
                market_address=market_address,
                user_address=user_address,
                a_claims=decode_uint(a_claims, field="aClaims"),
                b_claims=decode_uint(b_claims, field="bClaims"),
                redeemed=bool(redeemed),
            )

        return await self._fetch("claim", f"{market_address}:{user_address}", market_address, read)

    async def fetch_balance(self, token_address: str, user_address: str) -> FetchResult[BalanceState]:
        """Read a user's token balance."""

        async def read() -> BalanceState:
            balance = await self._client.get_token_balance(token_address, user_address)
            return BalanceState(
                user_address=user_address,
                balance=decode_uint(balance, field="balanceOf"),
            )

        return await self._fetch("balance", user_address, token_address, read)

    async def _fetch(
        self,
        kind: str,
        key: str,
        code_address: str,
        read: Callable[[], Awaitable[T]],
    ) -> FetchResult[T]:
        try:
            if not await self._client.has_code(code_address):
                logger.warning("No contract code at %s - %s %s is absent", code_address, kind, key)
                return FetchResult.absent()
            return FetchResult.success(await read())
        except (ContractCallError, ValueError) as e:
            logger.warning("Skipping %s %s: %s", kind, key, e)
            return FetchResult.transient(str(e))
        except Exception as e:
            logger.exception("Unexpected error fetching %s %s", kind, key)
            return FetchResult.unexpected(f"{type(e).__name__}: {e}")
