"""Tests for the ledger RPC client."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from web3.exceptions import ContractLogicError, Web3Exception

from mindshare_sync.chain.client import (
    ChainClient,
    ChainClientError,
    ContractCallError,
    RateLimiter,
    RPCError,
    _is_rejected_call,
)

MARKET = "0x1234567890abcdef1234567890abcdef12345678"


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Create a mock Redis client."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock()
    return redis


@pytest.fixture
def client(mock_redis: AsyncMock) -> ChainClient:
    return ChainClient(
        "http://localhost:8545",
        redis=mock_redis,
        max_retries=2,
        retry_delay_seconds=0,
        max_requests_per_second=1000,
    )


class TestRateLimiter:
    """Tests for the token bucket."""

    def test_create(self) -> None:
        limiter = RateLimiter.create(10)

        assert limiter.max_tokens == 10
        assert limiter.refill_rate == 10
        assert limiter.tokens == 10

    @pytest.mark.asyncio
    async def test_acquire_consumes_token(self) -> None:
        limiter = RateLimiter.create(10)

        await limiter.acquire()

        assert limiter.tokens < 10


class TestRejectedCall:
    """Tests for rejected-call classification."""

    def test_contract_logic_error(self) -> None:
        assert _is_rejected_call(ContractLogicError("execution reverted"))

    def test_missing_revert_data(self) -> None:
        assert _is_rejected_call(Web3Exception("missing revert data in call exception"))

    def test_transport_error(self) -> None:
        assert not _is_rejected_call(OSError("connection reset"))


class TestRetry:
    """Tests for retry and failover."""

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, client: ChainClient) -> None:
        call = AsyncMock(side_effect=[OSError("connection reset"), "ok"])

        result = await client._run_with_retry("phase", call)

        assert result == "ok"
        assert call.await_count == 2

    @pytest.mark.asyncio
    async def test_rejected_call_not_retried(self, client: ChainClient) -> None:
        call = AsyncMock(side_effect=ContractLogicError("execution reverted"))

        with pytest.raises(ContractCallError):
            await client._run_with_retry("phase", call)

        assert call.await_count == 1

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_rpc_error(self, client: ChainClient) -> None:
        call = AsyncMock(side_effect=OSError("connection refused"))

        with pytest.raises(RPCError):
            await client._run_with_retry("phase", call)

        assert call.await_count == 2
        assert client._primary_healthy is False

    @pytest.mark.asyncio
    async def test_fails_over_to_fallback(self) -> None:
        client = ChainClient(
            "http://localhost:8545",
            fallback_rpc_url="http://localhost:8546",
            max_retries=1,
            retry_delay_seconds=0,
        )

        async def call(w3: Any) -> int:
            if w3 is client._w3:
                raise OSError("primary down")
            return 7

        assert await client._run_with_retry("phase", call) == 7
        assert client._primary_healthy is False


class TestHasCode:
    """Tests for contract-code probing and caching."""

    @pytest.mark.asyncio
    async def test_positive_is_cached(self, client: ChainClient, mock_redis: AsyncMock) -> None:
        client._execute_with_retry = AsyncMock(return_value=b"\x60\x80\x60\x40")  # type: ignore[method-assign]

        assert await client.has_code(MARKET) is True

        mock_redis.set.assert_awaited_once_with(f"chain:code:{MARKET}", "1", ex=3600)

    @pytest.mark.asyncio
    async def test_cache_hit_skips_rpc(self, client: ChainClient, mock_redis: AsyncMock) -> None:
        mock_redis.get.return_value = b"1"
        client._execute_with_retry = AsyncMock()  # type: ignore[method-assign]

        assert await client.has_code(MARKET) is True

        client._execute_with_retry.assert_not_called()

    @pytest.mark.asyncio
    async def test_negative_is_not_cached(self, client: ChainClient, mock_redis: AsyncMock) -> None:
        client._execute_with_retry = AsyncMock(return_value=b"")  # type: ignore[method-assign]

        assert await client.has_code(MARKET) is False

        mock_redis.set.assert_not_called()

    @pytest.mark.asyncio
    async def test_redis_failure_falls_through(
        self, client: ChainClient, mock_redis: AsyncMock
    ) -> None:
        mock_redis.get.side_effect = ConnectionError("redis down")
        client._execute_with_retry = AsyncMock(return_value=b"\x60")  # type: ignore[method-assign]

        assert await client.has_code(MARKET) is True


class TestCalls:
    """Tests for typed call helpers."""

    @pytest.mark.asyncio
    async def test_token_balance_is_int(self, client: ChainClient) -> None:
        client.call_function = AsyncMock(return_value=10**24)  # type: ignore[method-assign]

        balance = await client.get_token_balance(MARKET, "0xabcdefabcdefabcdefabcdefabcdefabcdefabcd")

        assert balance == 10**24

    @pytest.mark.asyncio
    async def test_latest_block_timestamp(self, client: ChainClient) -> None:
        client._execute_with_retry = AsyncMock(return_value={"timestamp": 1_736_942_400})  # type: ignore[method-assign]

        assert await client.get_latest_block_timestamp() == 1_736_942_400

    @pytest.mark.asyncio
    async def test_health_check_false_on_rpc_error(self, client: ChainClient) -> None:
        client._execute_with_retry = AsyncMock(side_effect=RPCError("down"))  # type: ignore[method-assign]

        assert await client.health_check() is False

    @pytest.mark.asyncio
    async def test_close_market_requires_admin_key(self, client: ChainClient) -> None:
        with pytest.raises(ChainClientError, match="admin private key"):
            await client.close_market(MARKET)

    @pytest.mark.asyncio
    async def test_aclose_disconnects_providers(self, client: ChainClient) -> None:
        provider = MagicMock()
        provider.disconnect = AsyncMock()
        client._w3 = MagicMock(provider=provider)

        await client.aclose()

        provider.disconnect.assert_awaited_once()
