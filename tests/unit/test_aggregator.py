"""Unit tests for the Analysis Aggregator.

Tests cover:
- Weighted max/mean scoring with half-up rounding
- Overall level derived from the score
- Ordering of flagged clauses
- Summary, positive points and negotiation priorities
- Documents with no segmented clauses
"""

import pytest

from app.models.analysis import ContractType
from app.models.clause import ClauseType, FlaggedClause, RiskLevel, risk_level_for_score
from core.aggregation.aggregator import AggregationWeights, AnalysisAggregator
from core.errors import EmptyAnalysisError


def flagged(
    score: int,
    position: int = 0,
    clause_type: ClauseType = ClauseType.OTHER,
    explanation: str = "",
    suggestion: str = "",
) -> FlaggedClause:
    return FlaggedClause(
        text=f"Clause at {position}",
        clause_type=clause_type,
        position=position,
        risk_level=risk_level_for_score(score),
        risk_score=score,
        explanation=explanation,
        suggestion=suggestion,
    )


@pytest.fixture
def aggregator() -> AnalysisAggregator:
    return AnalysisAggregator()


class TestScoring:
    """Tests for the document risk score."""

    def test_single_high_clause(self, aggregator):
        analysis = aggregator.aggregate([flagged(85)], ContractType.FREELANCE_AGREEMENT, 1)

        assert analysis.risk_score == 85
        assert analysis.overall_risk == RiskLevel.HIGH

    def test_worst_clause_dominates(self, aggregator):
        """0.6 * 80 + 0.4 * 50 = 68."""
        analysis = aggregator.aggregate([flagged(80, 0), flagged(20, 10)], ContractType.OTHER, 2)

        assert analysis.risk_score == 68
        assert analysis.overall_risk == RiskLevel.MEDIUM

    def test_half_up_rounding(self, aggregator):
        """0.6 * 15 + 0.4 * 3.75 = 10.5 rounds to 11, not to even."""
        assert aggregator.score([15, 0, 0, 0]) == 11

    def test_no_flagged_clauses(self, aggregator):
        analysis = aggregator.aggregate([], ContractType.NDA, 4)

        assert analysis.risk_score == 0
        assert analysis.overall_risk == RiskLevel.LOW
        assert analysis.flagged_clauses == []
        assert analysis.positive_points == [AnalysisAggregator.NO_RISK_POINT]
        assert analysis.negotiation_priorities == []

    def test_custom_weights(self):
        aggregator = AnalysisAggregator(AggregationWeights(max_weight=1.0, mean_weight=0.0))
        assert aggregator.score([90, 10, 10]) == 90

    def test_score_clamped(self):
        aggregator = AnalysisAggregator(AggregationWeights(max_weight=1.0, mean_weight=1.0))
        assert aggregator.score([100, 100]) == 100

    def test_negative_weights_rejected(self):
        with pytest.raises(ValueError):
            AggregationWeights(max_weight=-0.1)

    def test_zero_segmented_clauses(self, aggregator):
        with pytest.raises(EmptyAnalysisError):
            aggregator.aggregate([], ContractType.OTHER, 0)


class TestStructure:
    """Tests for the shape of the analysis."""

    def test_clauses_sorted_by_position(self, aggregator):
        clauses = [flagged(50, 300), flagged(90, 10), flagged(20, 150)]
        analysis = aggregator.aggregate(clauses, ContractType.OTHER, 5)
        assert [c.position for c in analysis.flagged_clauses] == [10, 150, 300]

    def test_missing_contract_type_defaults_to_other(self, aggregator):
        analysis = aggregator.aggregate([flagged(30)], None, 1)
        assert analysis.contract_type == ContractType.OTHER


class TestNarrative:
    """Tests for summary, positive points and priorities."""

    @pytest.fixture
    def clauses(self) -> list[FlaggedClause]:
        return [
            flagged(85, 0, ClauseType.TERMINATION, "No notice.", "Require 14 days notice."),
            flagged(60, 100, ClauseType.PAYMENT, "Net 90.", "Ask for Net 30."),
            flagged(75, 200, ClauseType.TERMINATION, "No kill fee.", "Add a kill fee."),
            flagged(15, 300, ClauseType.CONFIDENTIALITY, "Expires after two years."),
        ]

    def test_summary(self, aggregator, clauses):
        analysis = aggregator.aggregate(clauses, ContractType.FREELANCE_AGREEMENT, 6)

        assert analysis.summary.startswith(
            f"Overall risk is high ({analysis.risk_score}/100) based on 4 flagged of 6 reviewed clauses."
        )
        assert "Main risk drivers: Termination (85), Payment (60)." in analysis.summary
        assert "2 clauses should be renegotiated before signing." in analysis.summary

    def test_summary_without_risky_clauses(self, aggregator):
        analysis = aggregator.aggregate([flagged(10, 0, ClauseType.PAYMENT)], ContractType.OTHER, 1)
        assert "No high or medium risk clauses were found." in analysis.summary

    def test_negotiation_priorities_by_severity(self, aggregator, clauses):
        analysis = aggregator.aggregate(clauses, ContractType.FREELANCE_AGREEMENT, 6)

        assert analysis.negotiation_priorities == [
            "Termination: Require 14 days notice.",
            "Termination: Add a kill fee.",
            "Payment: Ask for Net 30.",
        ]

    def test_priority_ties_by_position(self, aggregator):
        clauses = [
            flagged(70, 50, ClauseType.LIABILITY, suggestion="Cap liability."),
            flagged(70, 5, ClauseType.NON_COMPETE, suggestion="Drop the non-compete."),
        ]
        analysis = aggregator.aggregate(clauses, ContractType.OTHER, 2)
        assert analysis.negotiation_priorities == [
            "Non-compete: Drop the non-compete.",
            "Liability: Cap liability.",
        ]

    def test_default_suggestion(self, aggregator):
        analysis = aggregator.aggregate([flagged(50, 0, ClauseType.LIABILITY)], ContractType.OTHER, 1)
        assert analysis.negotiation_priorities == [f"Liability: {AnalysisAggregator.DEFAULT_SUGGESTION}"]

    def test_positive_points(self, aggregator, clauses):
        analysis = aggregator.aggregate(clauses, ContractType.FREELANCE_AGREEMENT, 6)

        assert analysis.positive_points == [
            "Confidentiality: Expires after two years.",
            "Confidentiality terms carry low risk.",
        ]


class TestUnassessedClauses:
    """Tests for degraded runs where some clauses failed classification."""

    def test_all_clauses_failed(self, aggregator):
        """Nothing assessed is not reported as risk-free."""
        analysis = aggregator.aggregate([], ContractType.OTHER, 2, failed_count=2)

        assert analysis.positive_points == []
        assert "2 clauses could not be assessed." in analysis.summary
        assert "No high or medium risk clauses were found." not in analysis.summary

    def test_partial_failure_keeps_low_risk_points(self, aggregator):
        analysis = aggregator.aggregate(
            [flagged(10, 0, ClauseType.PAYMENT, "Net 30.")], ContractType.OTHER, 3, failed_count=1
        )

        assert analysis.summary.endswith("1 clause could not be assessed.")
        assert analysis.positive_points == ["Payment: Net 30.", "Payment terms carry low risk."]

    def test_failures_alongside_risky_clauses(self, aggregator):
        analysis = aggregator.aggregate([flagged(85, 0, ClauseType.TERMINATION)], ContractType.OTHER, 2, failed_count=1)

        assert "1 clause could not be assessed." in analysis.summary
        assert "Main risk drivers: Termination (85)." in analysis.summary
