"""Analysis Aggregator - final stage of the analysis pipeline.

Folds the flagged clauses of one document into a ContractAnalysis.

Scoring is worst-clause dominant:
    risk_score = round(w_max * max(scores) + w_mean * mean(scores))
with half-up rounding, clamped to [0, 100]. The overall level is always
derived from the score, never set independently.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from app.models.analysis import ContractAnalysis, ContractType
from app.models.clause import FlaggedClause, RiskLevel, risk_level_for_score
from core.errors import EmptyAnalysisError

logger = logging.getLogger("clauseguard.aggregator")


@dataclass(frozen=True)
class AggregationWeights:
    """Weights of the max and mean clause scores."""
    max_weight: float = 0.6
    mean_weight: float = 0.4

    def __post_init__(self) -> None:
        if self.max_weight < 0 or self.mean_weight < 0:
            raise ValueError("Aggregation weights must be non-negative")


class AnalysisAggregator:
    """Builds the document-level analysis from flagged clauses."""

    TOP_DRIVERS = 3
    NO_RISK_POINT = "No significant risks were identified in the reviewed clauses."
    DEFAULT_SUGGESTION = "Review this clause and negotiate more balanced terms."

    def __init__(self, weights: AggregationWeights | None = None) -> None:
        self.weights = weights or AggregationWeights()

    def score(self, scores: list[int]) -> int:
        """Combine clause scores into the overall document score."""
        if not scores:
            return 0
        worst = Decimal(max(scores))
        mean = Decimal(sum(scores)) / Decimal(len(scores))
        combined = Decimal(str(self.weights.max_weight)) * worst + Decimal(str(self.weights.mean_weight)) * mean
        rounded = int(combined.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return max(0, min(100, rounded))

    def aggregate(
        self,
        flagged: list[FlaggedClause],
        contract_type: ContractType | None,
        segmented_count: int,
        failed_count: int = 0,
    ) -> ContractAnalysis:
        """Build the ContractAnalysis for one document.

        Args:
            flagged: Flagged clauses in any order.
            contract_type: Detected or supplied contract type.
            segmented_count: Number of clauses the segmenter produced.
            failed_count: Clauses that could not be classified (degraded runs).

        Raises:
            EmptyAnalysisError: If the segmenter produced zero clauses.
        """
        if segmented_count <= 0:
            raise EmptyAnalysisError("No clauses were segmented from the document")

        ordered = sorted(flagged, key=lambda c: c.position)
        risk_score = self.score([c.risk_score for c in ordered])
        overall_risk = risk_level_for_score(risk_score)

        analysis = ContractAnalysis(
            contract_type=contract_type or ContractType.OTHER,
            overall_risk=overall_risk,
            risk_score=risk_score,
            summary=self._summarize(ordered, overall_risk, risk_score, segmented_count, failed_count),
            flagged_clauses=ordered,
            positive_points=self._positive_points(ordered, failed_count),
            negotiation_priorities=self._negotiation_priorities(ordered),
        )
        logger.info(
            f"Aggregated {len(ordered)}/{segmented_count} flagged clauses -> "
            f"{overall_risk.value} ({risk_score})"
        )
        return analysis

    def _by_severity(self, clauses: list[FlaggedClause]) -> list[FlaggedClause]:
        """Descending score, ties by ascending position."""
        return sorted(clauses, key=lambda c: (-c.risk_score, c.position))

    def _summarize(
        self,
        clauses: list[FlaggedClause],
        overall_risk: RiskLevel,
        risk_score: int,
        segmented_count: int,
        failed_count: int = 0,
    ) -> str:
        parts = [
            f"Overall risk is {overall_risk.value} ({risk_score}/100) based on "
            f"{len(clauses)} flagged of {segmented_count} reviewed clauses."
        ]
        if failed_count:
            parts.append(f"{failed_count} clause{'s' if failed_count != 1 else ''} could not be assessed.")

        risky = [c for c in clauses if c.risk_level >= RiskLevel.MEDIUM]
        if not risky:
            if not failed_count:
                parts.append("No high or medium risk clauses were found.")
            return " ".join(parts)

        drivers: list[str] = []
        seen: set = set()
        for clause in self._by_severity(risky):
            if clause.clause_type in seen:
                continue
            seen.add(clause.clause_type)
            drivers.append(f"{clause.clause_type.label} ({clause.risk_score})")
            if len(drivers) == self.TOP_DRIVERS:
                break
        parts.append(f"Main risk drivers: {', '.join(drivers)}.")

        high = sum(1 for c in clauses if c.risk_level == RiskLevel.HIGH)
        if high:
            parts.append(f"{high} clause{'s' if high != 1 else ''} should be renegotiated before signing.")
        return " ".join(parts)

    def _positive_points(self, clauses: list[FlaggedClause], failed_count: int = 0) -> list[str]:
        if not clauses:
            return [] if failed_count else [self.NO_RISK_POINT]

        points: list[str] = []
        for clause in clauses:
            if clause.risk_level != RiskLevel.LOW:
                continue
            if clause.explanation:
                point = f"{clause.clause_type.label}: {clause.explanation}"
            else:
                point = f"{clause.clause_type.label} terms look balanced."
            if point not in points:
                points.append(point)

        # Clause types where every flagged clause is low risk
        types = {c.clause_type for c in clauses}
        for clause_type in sorted(types, key=lambda t: t.value):
            of_type = [c for c in clauses if c.clause_type == clause_type]
            if all(c.risk_level == RiskLevel.LOW for c in of_type):
                note = f"{clause_type.label} terms carry low risk."
                if note not in points:
                    points.append(note)
        return points

    def _negotiation_priorities(self, clauses: list[FlaggedClause]) -> list[str]:
        priorities: list[str] = []
        for clause in self._by_severity(clauses):
            if clause.risk_level < RiskLevel.MEDIUM:
                continue
            item = f"{clause.clause_type.label}: {clause.suggestion or self.DEFAULT_SUGGESTION}"
            if item not in priorities:
                priorities.append(item)
        return priorities
