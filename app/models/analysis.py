"""Contract analysis data models and API envelopes."""

from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.clause import FlaggedClause, RiskLevel, SimilarClause, risk_level_for_score


class ContractType(str, Enum):
    """Contract families the analyzer understands."""
    NDA = "NDA"
    SERVICE_AGREEMENT = "Service Agreement"
    EMPLOYMENT_CONTRACT = "Employment Contract"
    FREELANCE_AGREEMENT = "Freelance Agreement"
    OTHER = "Other"

    @classmethod
    def normalize(cls, value: "str | ContractType | None") -> "ContractType | None":
        """Map a loose hint ("nda", "freelance", "SOW") onto a contract type."""
        if value is None:
            return None
        if isinstance(value, ContractType):
            return value
        v = value.strip().lower().replace("_", " ").replace("-", " ")
        if not v:
            return None
        for member in cls:
            if member.value.lower() == v:
                return member
        if "nda" in v.split() or "non disclosure" in v or "confidentiality" in v:
            return cls.NDA
        if "freelanc" in v or "contractor" in v or "consult" in v:
            return cls.FREELANCE_AGREEMENT
        if "employ" in v:
            return cls.EMPLOYMENT_CONTRACT
        if "service" in v or "sow" in v.split() or "msa" in v.split():
            return cls.SERVICE_AGREEMENT
        return cls.OTHER


class ContractAnalysis(BaseModel):
    """Document-level risk assessment."""
    contract_type: ContractType
    overall_risk: RiskLevel
    risk_score: int = Field(..., ge=0, le=100)
    summary: str
    flagged_clauses: list[FlaggedClause] = Field(default_factory=list)
    positive_points: list[str] = Field(default_factory=list)
    negotiation_priorities: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_invariants(self) -> "ContractAnalysis":
        expected = risk_level_for_score(self.risk_score)
        if self.overall_risk != expected:
            raise ValueError(
                f"overall_risk {self.overall_risk.value} inconsistent with score {self.risk_score}"
            )
        positions = [c.position for c in self.flagged_clauses]
        if positions != sorted(positions):
            raise ValueError("flagged_clauses must be in ascending position order")
        return self


class ClauseFailure(BaseModel):
    """A per-clause failure recorded in degraded mode."""
    position: int
    error_type: str
    reason: str


class AnalysisRequest(BaseModel):
    """Request body for contract analysis."""
    contract_text: str
    contract_type: str | None = None
    filename: str = "contract.txt"


class AnalysisResponse(BaseModel):
    """Response envelope for contract analysis."""
    success: bool
    analysis: ContractAnalysis | None = None
    error: str | None = None
    contract_id: str | None = None
    degraded: bool = False
    failures: list[ClauseFailure] = Field(default_factory=list)


class SimilarClausesRequest(BaseModel):
    """Request body for precedent lookup."""
    clause_text: str
    k: int = 5

    @field_validator("clause_text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("clause_text must not be empty")
        return v


class SimilarClausesResponse(BaseModel):
    """Ranked precedent clauses."""
    results: list[SimilarClause] = Field(default_factory=list)


class EmbeddingRequest(BaseModel):
    text: str


class EmbeddingResponse(BaseModel):
    embedding: list[float]
