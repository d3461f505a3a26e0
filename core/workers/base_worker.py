"""Base Worker - capability interface for clause judgement backends.

All language-model backends inherit from LanguageModelClassifier and
implement classify(). Backends are stateless between calls: the same
clause text and context may be sent concurrently from many pipeline tasks.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any
import logging

from app.models.analysis import ContractType
from app.models.clause import ClauseType, SimilarClause


@dataclass
class ClassificationContext:
    """Contract-level context sent alongside one clause.

    Contains only what the backend needs - nothing more.
    """
    contract_type: ContractType | None = None
    clause_type_hint: ClauseType | None = None
    title: str = ""
    position: int = 0
    similar_clauses: list[SimilarClause] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def precedent_lines(self, limit: int = 3) -> list[str]:
        """Short, prompt-ready descriptions of similar precedent clauses."""
        lines = []
        for similar in self.similar_clauses[:limit]:
            verdict = "favorable" if similar.is_favorable else "unfavorable"
            lines.append(
                f"- ({similar.clause_type.value}, {verdict}, similarity {similar.similarity:.2f}) "
                f"{similar.clause_text[:200]} -- {similar.explanation}"
            )
        return lines


class LanguageModelClassifier(ABC):
    """Abstract base class for clause judgement backends.

    Backends must:
    1. Be stateless - no instance variables modified per call
    2. Return a plain dict judgement with keys ``type``, ``risk_level``,
       ``risk_score``, ``explanation``, ``suggestion`` and optionally
       ``risk_relevant``
    3. Raise on upstream failure; validation is done by the caller
    """

    # Subclasses must define these
    BACKEND: str = "base"  # Unique identifier for this backend
    DESCRIPTION: str = "Base backend"  # Human-readable description

    def __init__(self):
        """Initialize backend. Subclasses should not add per-call state."""
        self._logger = logging.getLogger(f"clauseguard.{self.__class__.__name__}")

    @abstractmethod
    def classify(self, clause_text: str, context: ClassificationContext) -> dict[str, Any]:
        """Judge one clause.

        Args:
            clause_text: Sanitized clause text.
            context: Contract-level context.

        Returns:
            Raw judgement dict (untrusted; validated by ClauseClassifier).
        """
        pass

    @property
    def model_name(self) -> str:
        """Model identifier used for logging."""
        return self.BACKEND


# Type alias for backend classes
BackendType = type[LanguageModelClassifier]
