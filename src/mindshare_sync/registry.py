"""Contract registry: logical contract names to deployed addresses."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from mindshare_sync.storage.database import DatabaseManager
from mindshare_sync.storage.repos import ContractDTO, ContractRepository

logger = logging.getLogger(__name__)


class ContractRegistry:
    """Records where each contract of a deployment lives."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def save_contracts(self, contracts: Iterable[ContractDTO | dict[str, Any]]) -> int:
        """Upsert contracts by logical name.

        Raises:
            ValueError: If an entry lacks a type or an address.
        """
        dtos = []
        for contract in contracts:
            if isinstance(contract, dict):
                contract_type = contract.get("type") or contract.get("contract_type")
                address = contract.get("address")
                if not contract_type or not address:
                    raise ValueError(f"Contract entry needs type and address: {contract!r}")
                contract = ContractDTO(
                    contract_type=str(contract_type),
                    address=str(address),
                    details=contract.get("metadata"),
                )
            dtos.append(contract)

        async with self._db.get_async_session() as session:
            repo = ContractRepository(session)
            for dto in dtos:
                await repo.upsert(dto)
        logger.info("Saved %d contracts", len(dtos))
        return len(dtos)

    async def get_address(self, contract_type: str) -> str | None:
        async with self._db.get_async_session() as session:
            return await ContractRepository(session).get_address(contract_type)

    async def list_contracts(self) -> list[ContractDTO]:
        async with self._db.get_async_session() as session:
            return await ContractRepository(session).list_all()
