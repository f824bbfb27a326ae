"""Tests for the contract registry."""

import pytest

from mindshare_sync.registry import ContractRegistry
from mindshare_sync.storage.database import DatabaseManager
from mindshare_sync.storage.repos import ContractDTO


@pytest.fixture
def registry(db: DatabaseManager) -> ContractRegistry:
    return ContractRegistry(db)


class TestContractRegistry:
    """Tests for ContractRegistry."""

    @pytest.mark.asyncio
    async def test_save_from_dicts(self, registry: ContractRegistry, token_address: str) -> None:
        count = await registry.save_contracts(
            [
                {"type": "stakeToken", "address": token_address, "metadata": {"decimals": 6}},
                {"contract_type": "factory", "address": "0x" + "f" * 40},
            ]
        )

        assert count == 2
        assert await registry.get_address("stakeToken") == token_address
        contracts = {c.contract_type: c for c in await registry.list_contracts()}
        assert contracts["stakeToken"].details == {"decimals": 6}
        assert contracts["factory"].details is None

    @pytest.mark.asyncio
    async def test_save_replaces_by_name(self, registry: ContractRegistry, token_address: str) -> None:
        await registry.save_contracts([ContractDTO("stakeToken", "0x" + "1" * 40)])
        await registry.save_contracts([ContractDTO("stakeToken", token_address)])

        assert await registry.get_address("stakeToken") == token_address
        assert len(await registry.list_contracts()) == 1

    @pytest.mark.asyncio
    async def test_missing_fields_rejected(self, registry: ContractRegistry) -> None:
        with pytest.raises(ValueError, match="type and address"):
            await registry.save_contracts([{"type": "stakeToken"}])

        assert await registry.list_contracts() == []

    @pytest.mark.asyncio
    async def test_unknown_contract(self, registry: ContractRegistry) -> None:
        assert await registry.get_address("stakeToken") is None
