"""Ledger RPC client with rate limiting, retry and failover.

This module provides the connection to the ledger used by the sync layer:
- Rate limiting to respect provider limits
- Retry logic with exponential backoff
- Failover to secondary RPC URL
- Optional Redis cache for contract-code presence
- Contract view calls and the admin-only `close()` transaction
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

from hexbytes import HexBytes
from redis.asyncio import Redis
from web3 import AsyncWeb3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError, Web3Exception
from web3.providers import AsyncHTTPProvider

from mindshare_sync.chain.abi import MARKET_ABI, STAKE_TOKEN_ABI

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_CODE_CACHE_TTL_SECONDS = 3600
DEFAULT_MAX_REQUESTS_PER_SECOND = 25
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_SECONDS = 1.0
DEFAULT_TX_TIMEOUT_SECONDS = 120


class ChainClientError(Exception):
    """Base exception for ledger client errors."""


class RPCError(ChainClientError):
    """Raised when an RPC call fails after all retries and failover."""


class ContractCallError(ChainClientError):
    """Raised when a contract call is rejected or returns undecodable data."""


@dataclass
class RateLimiter:
    """Token bucket rate limiter."""

    max_tokens: float
    refill_rate: float  # tokens per second
    tokens: float
    last_refill: float

    @classmethod
    def create(cls, max_requests_per_second: float) -> RateLimiter:
        """Create a rate limiter with specified max requests per second."""
        return cls(
            max_tokens=max_requests_per_second,
            refill_rate=max_requests_per_second,
            tokens=max_requests_per_second,
            last_refill=time.monotonic(),
        )

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.max_tokens, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    async def acquire(self, tokens: float = 1.0) -> None:
        """Acquire tokens, waiting if necessary."""
        while True:
            self._refill()
            if self.tokens >= tokens:
                self.tokens -= tokens
                return
            wait_time = (tokens - self.tokens) / self.refill_rate
            await asyncio.sleep(wait_time)


def _is_rejected_call(error: Exception) -> bool:
    """Whether a contract-call failure means the call itself was refused.

    Reverts and undecodable return data are never retried.
    """
    if isinstance(error, (ContractLogicError, BadFunctionCallOutput)):
        return True
    return "missing revert data" in str(error)


class ChainClient:
    """Ledger client with rate limiting, retry and failover.

    Example:
        ```python
        client = ChainClient(
            rpc_url="https://sepolia.base.org",
            fallback_rpc_url="https://base-sepolia-rpc.publicnode.com",
        )

        if await client.has_code("0x..."):
            phase = await client.call_market("0x...", "phase")
        ```
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        fallback_rpc_url: str | None = None,
        redis: Redis | None = None,
        code_cache_ttl_seconds: int = DEFAULT_CODE_CACHE_TTL_SECONDS,
        max_requests_per_second: float = DEFAULT_MAX_REQUESTS_PER_SECOND,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
        admin_private_key: str | None = None,
    ) -> None:
        """Initialize the ledger client.

        Args:
            rpc_url: Primary RPC endpoint URL.
            fallback_rpc_url: Optional fallback RPC URL for failover.
            redis: Optional Redis client for caching contract-code presence.
            code_cache_ttl_seconds: TTL of a positive code-presence entry.
            max_requests_per_second: Rate limit for RPC calls.
            max_retries: Maximum retry attempts on failure.
            retry_delay_seconds: Initial delay between retries.
            admin_private_key: Signer for state-changing calls (close-market).
        """
        self._rpc_url = rpc_url
        self._fallback_rpc_url = fallback_rpc_url
        self._redis = redis
        self._code_cache_ttl = code_cache_ttl_seconds
        self._max_retries = max_retries
        self._retry_delay = retry_delay_seconds
        self._admin_private_key = admin_private_key

        self._w3: AsyncWeb3[AsyncHTTPProvider] = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self._w3_fallback: AsyncWeb3[AsyncHTTPProvider] | None = None
        if fallback_rpc_url:
            self._w3_fallback = AsyncWeb3(AsyncHTTPProvider(fallback_rpc_url))

        self._rate_limiter = RateLimiter.create(max_requests_per_second)

        # Track primary RPC health
        self._primary_healthy = True
        self._last_primary_check = 0.0
        self._primary_recovery_interval = 60.0

        self._cache_prefix = "chain:"
        # Serializes nonce allocation for admin transactions
        self._tx_lock = asyncio.Lock()

    def _cache_key(self, key_type: str, address: str) -> str:
        return f"{self._cache_prefix}{key_type}:{address.lower()}"

    async def _get_cached(self, key: str) -> str | None:
        if not self._redis:
            return None
        try:
            value = await self._redis.get(key)
            if isinstance(value, bytes):
                return value.decode()
            return str(value) if value is not None else None
        except Exception as e:
            logger.warning("Cache get failed: %s", e)
            return None

    async def _set_cached(self, key: str, value: str, ttl: int) -> None:
        if not self._redis:
            return
        try:
            await self._redis.set(key, value, ex=ttl)
        except Exception as e:
            logger.warning("Cache set failed: %s", e)

    def _should_try_primary(self) -> bool:
        if self._primary_healthy:
            return True
        now = time.monotonic()
        if now - self._last_primary_check > self._primary_recovery_interval:
            self._last_primary_check = now
            return True
        return False

    def _endpoints(self) -> list[tuple[str, AsyncWeb3[AsyncHTTPProvider]]]:
        endpoints: list[tuple[str, AsyncWeb3[AsyncHTTPProvider]]] = []
        if self._should_try_primary():
            endpoints.append(("primary", self._w3))
        if self._w3_fallback is not None:
            endpoints.append(("fallback", self._w3_fallback))
        if not endpoints:
            # Primary is unhealthy and there is nothing to fail over to.
            endpoints.append(("primary", self._w3))
        return endpoints

    async def _run_with_retry(self, label: str, call: Any) -> Any:
        """Run `call(w3)` with retry and failover.

        Args:
            label: Operation name used in logs and errors.
            call: Coroutine function taking an AsyncWeb3 instance.

        Returns:
            Result of the call.

        Raises:
            ContractCallError: If the target rejected the call.
            RPCError: If all retries and failover fail.
        """
        await self._rate_limiter.acquire()

        last_error: Exception | None = None
        for name, w3 in self._endpoints():
            delay = self._retry_delay
            for attempt in range(self._max_retries):
                try:
                    result = await call(w3)
                    if name == "primary":
                        self._primary_healthy = True
                    else:
                        logger.info("Fallback RPC succeeded for %s", label)
                    return result
                except (Web3Exception, OSError, TimeoutError) as e:
                    if _is_rejected_call(e):
                        raise ContractCallError(f"{label} rejected: {e}") from e
                    last_error = e
                    logger.warning(
                        "%s RPC %s failed (attempt %d/%d): %s",
                        name.capitalize(),
                        label,
                        attempt + 1,
                        self._max_retries,
                        e,
                    )
                    if attempt < self._max_retries - 1:
                        await asyncio.sleep(delay)
                        delay *= 2  # Exponential backoff

            if name == "primary":
                self._primary_healthy = False
                self._last_primary_check = time.monotonic()

        raise RPCError(f"RPC call {label} failed after all retries: {last_error}")

    async def _execute_with_retry(self, func_name: str, *args: Any, **kwargs: Any) -> Any:
        """Execute a `web3.eth` method with retry and failover."""

        async def call(w3: AsyncWeb3[AsyncHTTPProvider]) -> Any:
            method = getattr(w3.eth, func_name)
            return await method(*args, **kwargs)

        return await self._run_with_retry(func_name, call)

    async def has_code(self, address: str) -> bool:
        """Whether contract code is deployed at `address`.

        Only positive answers are cached: a contract that appears later must
        be picked up on the next probe.
        """
        cache_key = self._cache_key("code", address)
        if await self._get_cached(cache_key) == "1":
            return True

        code = await self._execute_with_retry("get_code", AsyncWeb3.to_checksum_address(address))
        present = len(HexBytes(code)) > 0
        if present:
            await self._set_cached(cache_key, "1", self._code_cache_ttl)
        return present

    async def call_function(
        self,
        address: str,
        abi: list[dict[str, Any]],
        fn_name: str,
        *args: Any,
    ) -> Any:
        """Call a view function on a contract.

        Raises:
            ContractCallError: If the call reverts or returns undecodable data.
            RPCError: If the transport fails after retries and failover.
        """
        checksum = AsyncWeb3.to_checksum_address(address)

        async def call(w3: AsyncWeb3[AsyncHTTPProvider]) -> Any:
            contract = w3.eth.contract(address=checksum, abi=abi)
            return await getattr(contract.functions, fn_name)(*args).call()

        return await self._run_with_retry(f"{fn_name}@{address.lower()}", call)

    async def call_market(self, market_address: str, fn_name: str, *args: Any) -> Any:
        """Call a view function on a market contract."""
        return await self.call_function(market_address, MARKET_ABI, fn_name, *args)

    async def get_token_balance(self, token_address: str, holder_address: str) -> int:
        """Get the token balance of `holder_address` in smallest units."""
        balance = await self.call_function(
            token_address,
            STAKE_TOKEN_ABI,
            "balanceOf",
            AsyncWeb3.to_checksum_address(holder_address),
        )
        return int(balance)

    async def get_latest_block_timestamp(self) -> int:
        """Get the timestamp of the latest block in epoch seconds."""
        block = await self._execute_with_retry("get_block", "latest")
        return int(block["timestamp"])

    async def close_market(self, market_address: str) -> str:
        """Send `close()` to a market and wait for it to be mined.

        Returns:
            The transaction hash as a 0x-prefixed hex string.

        Raises:
            ChainClientError: If no admin key is configured or the transaction reverts.
        """
        if not self._admin_private_key:
            raise ChainClientError("admin private key not configured")

        await self._rate_limiter.acquire()
        w3 = self._w3 if self._primary_healthy else (self._w3_fallback or self._w3)
        account = w3.eth.account.from_key(self._admin_private_key)
        contract = w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(market_address),
            abi=MARKET_ABI,
        )
        try:
            async with self._tx_lock:
                nonce = await w3.eth.get_transaction_count(account.address, "pending")
                tx = await contract.functions.close().build_transaction(
                    {"from": account.address, "nonce": nonce}
                )
                signed = account.sign_transaction(tx)
                tx_hash = await w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = await w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=DEFAULT_TX_TIMEOUT_SECONDS
            )
        except Web3Exception as e:
            if _is_rejected_call(e):
                raise ContractCallError(f"close() rejected for {market_address}: {e}") from e
            raise RPCError(f"close() failed for {market_address}: {e}") from e

        tx_hex = HexBytes(tx_hash).to_0x_hex()
        if int(receipt["status"]) != 1:
            raise ContractCallError(f"close() reverted for {market_address} (tx {tx_hex})")
        return tx_hex

    async def health_check(self) -> bool:
        """Check if the client can connect to the RPC."""
        try:
            await self._execute_with_retry("get_block_number")
            return True
        except RPCError:
            return False

    async def aclose(self) -> None:
        """Close async HTTP provider sessions to avoid leaked aiohttp sessions."""
        providers = [self._w3.provider]
        if self._w3_fallback is not None:
            providers.append(self._w3_fallback.provider)

        for provider in providers:
            disconnect = getattr(provider, "disconnect", None)
            if not callable(disconnect):
                continue
            try:
                result = disconnect()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.warning("Failed to close RPC provider session: %s", e)
