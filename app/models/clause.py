"""Clause data models."""

from datetime import datetime, timezone
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

HIGH_RISK_THRESHOLD = 70
MEDIUM_RISK_THRESHOLD = 40


class ClauseType(str, Enum):
    """Clause types recognised in freelance/service contracts."""
    TERMINATION = "termination"
    PAYMENT = "payment"
    LIABILITY = "liability"
    IP_RIGHTS = "ip_rights"
    CONFIDENTIALITY = "confidentiality"
    NON_COMPETE = "non_compete"
    JURISDICTION = "jurisdiction"
    OTHER = "other"

    @property
    def label(self) -> str:
        """Human-readable label."""
        return CLAUSE_TYPE_LABELS[self]


CLAUSE_TYPE_LABELS: dict[ClauseType, str] = {
    ClauseType.TERMINATION: "Termination",
    ClauseType.PAYMENT: "Payment",
    ClauseType.LIABILITY: "Liability",
    ClauseType.IP_RIGHTS: "IP rights",
    ClauseType.CONFIDENTIALITY: "Confidentiality",
    ClauseType.NON_COMPETE: "Non-compete",
    ClauseType.JURISDICTION: "Jurisdiction",
    ClauseType.OTHER: "Other",
}


class RiskLevel(str, Enum):
    """Risk level assessment for a clause. Ordered high > medium > low."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _RISK_RANK[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def from_score(cls, score: int) -> "RiskLevel":
        """Derive the risk level from a 0-100 score."""
        if score >= HIGH_RISK_THRESHOLD:
            return cls.HIGH
        if score >= MEDIUM_RISK_THRESHOLD:
            return cls.MEDIUM
        return cls.LOW


_RISK_RANK = {RiskLevel.LOW: 0, RiskLevel.MEDIUM: 1, RiskLevel.HIGH: 2}


def risk_level_for_score(score: int) -> RiskLevel:
    """Threshold rule shared by clause-level and document-level results."""
    return RiskLevel.from_score(score)


class Clause(BaseModel):
    """A segmented clause. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    text: str = Field(..., min_length=1)
    clause_type: ClauseType = ClauseType.OTHER
    position: int = Field(..., ge=0, description="Character offset in the source text")


class FlaggedClause(Clause):
    """A clause judged risk-relevant and annotated with risk metadata."""
    risk_level: RiskLevel
    risk_score: int = Field(..., ge=0, le=100)
    explanation: str = ""
    suggestion: str = ""

    @model_validator(mode="after")
    def check_level_matches_score(self) -> "FlaggedClause":
        expected = risk_level_for_score(self.risk_score)
        if self.risk_level != expected:
            raise ValueError(
                f"risk_level {self.risk_level.value} inconsistent with score "
                f"{self.risk_score} (expected {expected.value})"
            )
        return self


class ClauseRecord(BaseModel):
    """A historical clause stored in the precedent corpus."""
    model_config = ConfigDict(frozen=True)

    id: str
    clause_text: str
    clause_type: ClauseType = ClauseType.OTHER
    is_favorable: bool = False
    explanation: str = ""


class SimilarClause(ClauseRecord):
    """A precedent clause ranked by cosine similarity to a query vector."""
    similarity: float = Field(..., ge=-1.0, le=1.0)


class ClauseRow(BaseModel):
    """Persisted clause record for a contract."""
    id: UUID = Field(default_factory=uuid4)
    contract_id: UUID
    clause_text: str
    clause_type: ClauseType
    risk_level: RiskLevel
    risk_score: int
    explanation: str = ""
    suggestions: list[str] = Field(default_factory=list)
    position_in_doc: int
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_flagged(cls, contract_id: UUID, clause: FlaggedClause) -> "ClauseRow":
        return cls(
            contract_id=contract_id,
            clause_text=clause.text,
            clause_type=clause.clause_type,
            risk_level=clause.risk_level,
            risk_score=clause.risk_score,
            explanation=clause.explanation,
            suggestions=[clause.suggestion] if clause.suggestion else [],
            position_in_doc=clause.position,
        )
