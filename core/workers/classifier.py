"""Clause Classifier - second stage of the analysis pipeline.

Wraps a LanguageModelClassifier backend and turns its untrusted judgement
into a FlaggedClause. Model output is never trusted as-is:

1. Structural validation (missing fields, score range, clause type)
2. ``risk_relevant: false`` excludes the clause without an error
3. Reconciliation: the numeric score wins over the stated level
"""

import logging
from typing import Any

from pydantic import BaseModel, BeforeValidator, ValidationError, field_validator
from typing_extensions import Annotated

from app.models.clause import ClauseType, FlaggedClause, risk_level_for_score
from core.decomposition.clause_segmenter import RawClause
from core.errors import ClassificationError
from core.utils.risk_taxonomy import normalize_clause_type, normalize_risk_level
from core.workers.base_worker import ClassificationContext, LanguageModelClassifier
from core.workers.context_builder import ContextBuilder, context_builder as default_context_builder

logger = logging.getLogger("clauseguard.classifier")


def reject_bool(v: Any) -> Any:
    """Booleans are ints in Python; they are never a valid score."""
    if isinstance(v, bool):
        raise ValueError("risk_score must be an integer, not a boolean")
    return v


StrictScore = Annotated[int, BeforeValidator(reject_bool)]


class ClauseJudgement(BaseModel):
    """Validated shape of a backend judgement."""
    type: ClauseType
    risk_level: str
    risk_score: StrictScore
    explanation: str
    suggestion: str
    risk_relevant: bool = True

    @field_validator("type", mode="before")
    @classmethod
    def validate_type(cls, v: Any) -> ClauseType:
        """Map aliases onto the closed enumeration; reject anything else."""
        if isinstance(v, ClauseType):
            return v
        return normalize_clause_type(v)

    @field_validator("risk_score")
    @classmethod
    def validate_score(cls, v: int) -> int:
        if not 0 <= v <= 100:
            raise ValueError(f"risk_score {v} outside 0-100")
        return v

    @field_validator("explanation", "suggestion", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        if v is None:
            return ""
        if isinstance(v, list):
            return " ".join(str(item) for item in v)
        return str(v)


class ClauseClassifier:
    """Validates and reconciles backend judgements into flagged clauses.

    Example:
        classifier = ClauseClassifier(KeywordClauseJudge())
        flagged = classifier.classify(raw_clause, ClassificationContext())
    """

    def __init__(
        self,
        backend: LanguageModelClassifier,
        context_builder: ContextBuilder | None = None,
    ) -> None:
        self.backend = backend
        self.context_builder = context_builder or default_context_builder

    def request_judgement(self, clause: RawClause, context: ClassificationContext) -> dict[str, Any]:
        """Send one clause to the backend and return its raw judgement.

        Upstream exceptions propagate unchanged so the caller can decide
        whether they are retryable.
        """
        clause_text = self.context_builder.build_text(clause.text)
        return self.backend.classify(clause_text, context)

    def reconcile(self, clause: RawClause, judgement: Any) -> FlaggedClause | None:
        """Validate a raw judgement and build the flagged clause.

        Returns:
            FlaggedClause, or None if the backend marked the clause as not
            risk-relevant.

        Raises:
            ClassificationError: If the judgement is structurally invalid.
        """
        if not isinstance(judgement, dict):
            raise ClassificationError(
                f"Judgement must be an object, got {type(judgement).__name__}",
                position=clause.position,
            )

        if judgement.get("risk_relevant") is False:
            logger.debug(f"Clause at {clause.position} not risk-relevant")
            return None

        try:
            parsed = ClauseJudgement.model_validate(judgement)
        except ValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            raise ClassificationError(
                f"Invalid judgement for clause at {clause.position} (fields: {', '.join(fields)})",
                position=clause.position,
            ) from e

        expected = risk_level_for_score(parsed.risk_score)
        stated = normalize_risk_level(parsed.risk_level)
        if stated != expected:
            logger.warning(
                f"Risk level mismatch at position {clause.position}: stated "
                f"{parsed.risk_level!r}, score {parsed.risk_score} -> {expected.value}"
            )

        return FlaggedClause(
            text=clause.text,
            clause_type=parsed.type,
            position=clause.position,
            risk_level=expected,
            risk_score=parsed.risk_score,
            explanation=parsed.explanation,
            suggestion=parsed.suggestion,
        )

    def classify(self, clause: RawClause, context: ClassificationContext) -> FlaggedClause | None:
        """Judge and validate one clause.

        Raises:
            ClassificationError: On backend failure or invalid judgement.
        """
        try:
            judgement = self.request_judgement(clause, context)
        except ClassificationError as e:
            if e.position is None:
                e.position = clause.position
            raise
        except Exception as e:
            raise ClassificationError(
                f"{self.backend.BACKEND} backend failed: {e}", position=clause.position
            ) from e
        return self.reconcile(clause, judgement)


def build_context(
    clause: RawClause,
    contract_type=None,
    similar_clauses=None,
    metadata: dict[str, Any] | None = None,
) -> ClassificationContext:
    """Build the per-clause classification context."""
    return ClassificationContext(
        contract_type=contract_type,
        clause_type_hint=clause.type_hint,
        title=clause.title,
        position=clause.position,
        similar_clauses=list(similar_clauses or []),
        metadata=dict(metadata or {}),
    )
