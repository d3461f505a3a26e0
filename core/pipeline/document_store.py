"""Document store port: contract records and their clause rows.

The pipeline reports status transitions here but does not own the schema.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from uuid import UUID

from app.models.analysis import ContractAnalysis
from app.models.clause import ClauseRow
from app.models.document import Contract, ContractStatus

logger = logging.getLogger("clauseguard.document_store")


class DocumentStore(ABC):
    """Async persistence port for contracts and clause rows."""

    @abstractmethod
    async def create_contract(self, contract: Contract) -> Contract:
        """Persist a new contract record."""

    @abstractmethod
    async def update_status(
        self,
        contract_id: UUID,
        status: ContractStatus,
        analysis: ContractAnalysis | None = None,
        failure_reason: str | None = None,
        clause_count: int | None = None,
    ) -> Contract | None:
        """Update a contract's analysis status and optional result fields."""

    @abstractmethod
    async def save_clauses(self, contract_id: UUID, rows: list[ClauseRow]) -> None:
        """Replace the clause rows of a contract."""

    @abstractmethod
    async def get_contract(self, contract_id: UUID) -> Contract | None:
        ...

    @abstractmethod
    async def list_contracts(self) -> list[Contract]:
        """All contracts, newest first."""

    @abstractmethod
    async def get_clauses(self, contract_id: UUID) -> list[ClauseRow]:
        """Clause rows of a contract by ascending position."""


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store for development and tests."""

    def __init__(self) -> None:
        self._contracts: dict[UUID, Contract] = {}
        self._clauses: dict[UUID, list[ClauseRow]] = {}

    async def create_contract(self, contract: Contract) -> Contract:
        self._contracts[contract.id] = contract
        return contract

    async def update_status(
        self,
        contract_id: UUID,
        status: ContractStatus,
        analysis: ContractAnalysis | None = None,
        failure_reason: str | None = None,
        clause_count: int | None = None,
    ) -> Contract | None:
        contract = self._contracts.get(contract_id)
        if contract is None:
            logger.warning(f"Status update for unknown contract {contract_id}")
            return None

        update: dict = {"analysis_status": status, "updated_at": datetime.now(timezone.utc)}
        if analysis is not None:
            update["analysis_data"] = analysis
            update["contract_type"] = analysis.contract_type
        if failure_reason is not None:
            update["failure_reason"] = failure_reason
        if clause_count is not None:
            update["clause_count"] = clause_count

        contract = contract.model_copy(update=update)
        self._contracts[contract_id] = contract
        logger.debug(f"Contract {contract_id} -> {status.value}")
        return contract

    async def save_clauses(self, contract_id: UUID, rows: list[ClauseRow]) -> None:
        self._clauses[contract_id] = sorted(rows, key=lambda r: r.position_in_doc)

    async def get_contract(self, contract_id: UUID) -> Contract | None:
        return self._contracts.get(contract_id)

    async def list_contracts(self) -> list[Contract]:
        # Insertion order breaks created_at ties
        newest_first = list(reversed(self._contracts.values()))
        return sorted(newest_first, key=lambda c: c.created_at, reverse=True)

    async def get_clauses(self, contract_id: UUID) -> list[ClauseRow]:
        return list(self._clauses.get(contract_id, []))
