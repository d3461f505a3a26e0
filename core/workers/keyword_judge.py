"""Keyword clause judge - deterministic offline backend.

Scores clauses against the freelance red-flag catalogue and protective
patterns in ``core.utils.risk_taxonomy``. No network, no cost; used when no
LLM key is configured and as a stable backend in tests.
"""

from typing import Any

from app.models.clause import ClauseType, risk_level_for_score
from core.utils.risk_taxonomy import guess_clause_type, match_protections, match_red_flags
from core.workers.base_worker import ClassificationContext, LanguageModelClassifier
from core.workers.worker_registry import ClassifierRegistry


@ClassifierRegistry.register
class KeywordClauseJudge(LanguageModelClassifier):
    """Red-flag catalogue judge.

    Scoring:
    - worst matching red flag sets the base score
    - each extra red flag adds ``EXTRA_FLAG_PENALTY``
    - each protective pattern of the same clause type subtracts
      ``PROTECTION_CREDIT``
    - protections only -> ``PROTECTIVE_SCORE``; recognised type with
      nothing notable -> ``STANDARD_SCORE``; otherwise not risk-relevant
    """

    BACKEND = "keyword"
    DESCRIPTION = "Offline red-flag catalogue judge"

    EXTRA_FLAG_PENALTY = 5
    PROTECTION_CREDIT = 10
    PROTECTIVE_SCORE = 15
    STANDARD_SCORE = 25

    def classify(self, clause_text: str, context: ClassificationContext) -> dict[str, Any]:
        flags = match_red_flags(clause_text)
        protections = match_protections(clause_text)
        hint = context.clause_type_hint or guess_clause_type(context.title, clause_text)

        if flags:
            worst = max(flags, key=lambda f: f.risk_score)
            clause_type = worst.clause_type if worst.clause_type != ClauseType.OTHER else hint
            credits = sum(1 for p in protections if p.clause_type == worst.clause_type)
            score = worst.risk_score + self.EXTRA_FLAG_PENALTY * (len(flags) - 1)
            score = max(0, min(100, score - self.PROTECTION_CREDIT * credits))
            explanation = " ".join(f.explanation for f in sorted(flags, key=lambda f: -f.risk_score)[:2])
            self._logger.debug(
                f"pos={context.position} flags={[f.name for f in flags]} score={score}"
            )
            return {
                "type": clause_type.value,
                "risk_level": risk_level_for_score(score).value,
                "risk_score": score,
                "explanation": explanation,
                "suggestion": worst.suggestion,
                "risk_relevant": True,
            }

        if protections:
            return {
                "type": protections[0].clause_type.value,
                "risk_level": risk_level_for_score(self.PROTECTIVE_SCORE).value,
                "risk_score": self.PROTECTIVE_SCORE,
                "explanation": " ".join(p.explanation for p in protections[:2]),
                "suggestion": "",
                "risk_relevant": True,
            }

        if hint != ClauseType.OTHER:
            return {
                "type": hint.value,
                "risk_level": risk_level_for_score(self.STANDARD_SCORE).value,
                "risk_score": self.STANDARD_SCORE,
                "explanation": f"Standard {hint.label.lower()} clause; no known red flags detected.",
                "suggestion": "",
                "risk_relevant": True,
            }

        return {"risk_relevant": False}
