"""Contract record models."""

from datetime import datetime, timezone
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from app.models.analysis import ContractAnalysis, ContractType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ContractStatus(str, Enum):
    """Status of contract analysis."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Contract(BaseModel):
    """Contract record tracked through the analysis pipeline."""
    id: UUID = Field(default_factory=uuid4)
    title: str
    filename: str
    file_size: int = 0
    contract_type: ContractType | None = None
    analysis_status: ContractStatus = ContractStatus.PENDING
    analysis_data: ContractAnalysis | None = None
    failure_reason: str | None = None
    clause_count: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class ContractResponse(BaseModel):
    """Response schema for contract lookups."""
    id: UUID
    title: str
    filename: str
    file_size: int
    contract_type: ContractType | None
    analysis_status: ContractStatus
    failure_reason: str | None
    clause_count: int
    created_at: datetime

    @classmethod
    def from_contract(cls, contract: Contract) -> "ContractResponse":
        return cls(
            id=contract.id,
            title=contract.title,
            filename=contract.filename,
            file_size=contract.file_size,
            contract_type=contract.contract_type,
            analysis_status=contract.analysis_status,
            failure_reason=contract.failure_reason,
            clause_count=contract.clause_count,
            created_at=contract.created_at,
        )
