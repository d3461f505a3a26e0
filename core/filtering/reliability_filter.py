"""Reliability Filter for clause judge responses.

A judge reply is discarded and resampled when it shows signs that the
model lost the thread (see ``ReliabilityFilter`` for the checks). A
malformed reply is never used for a risk decision, even when a score can be
salvaged from it.
"""

import re
import json
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass
class ReliabilityCheck:
    """Result of a reliability check."""
    is_reliable: bool
    reason: str = ""
    pattern_matched: Optional[str] = None


RELIABLE = ReliabilityCheck(is_reliable=True)


class ReliabilityFilter:
    """Runs the reply through ordered checks; the first failure wins.

    Checks:
    1. Output token budget
    2. Self-correction and hedging markers
    3. Refusals to assess the clause, outside the explanation and suggestion text
    4. Judgement object shape
    """

    MAX_OUTPUT_TOKENS = 750

    CONFUSION_PATTERNS = [
        # Talking in circles
        r"wait,?\s*maybe",
        r"let'?s\s*(check|try)\s*again",
        r"on\s*second\s*thought",
        r"actually,?\s*no",
        r"I\s*need\s*to\s*reconsider",
        r"I\s*(made|think\s*I\s*made)\s*an?\s*error",
        # Hedging
        r"I'?m\s*not\s*(entirely\s*)?sure",
        r"it'?s\s*(hard|difficult)\s*to\s*(say|tell|determine)",
        r"I\s*cannot\s*determine",
        r"there\s*is\s*no\s*clear\s*answer",
    ]

    REFUSAL_PATTERNS = [
        r"I\s*(cannot|can'?t|am\s*unable\s*to)\s*provide\s*legal\s*advice",
        r"consult\s*(a|an|with\s*a)\s*(qualified\s*)?(lawyer|attorney|legal\s*professional)",
        r"as\s*an\s*AI(\s*language\s*model)?",
    ]

    REQUIRED_FIELDS = ["type", "risk_level", "risk_score", "explanation", "suggestion"]

    # Prose fields left out of the refusal scan
    FREE_TEXT_FIELDS = ("explanation", "suggestion")

    def __init__(self, max_tokens: int = MAX_OUTPUT_TOKENS):
        self.max_tokens = max_tokens
        self._confusion = [re.compile(p, re.IGNORECASE) for p in self.CONFUSION_PATTERNS]
        self._refusal = [re.compile(p, re.IGNORECASE) for p in self.REFUSAL_PATTERNS]

    def check(self, response_text: str, output_tokens: int) -> ReliabilityCheck:
        """Check if a judge reply can be used.

        Args:
            response_text: The raw completion content.
            output_tokens: Completion tokens reported by the backend.

        Returns:
            ReliabilityCheck with is_reliable=True if acceptable.
        """
        checks: list[Callable[[], ReliabilityCheck]] = [
            lambda: self._check_budget(output_tokens),
            lambda: self._check_markers(response_text, self._confusion, "Confusion marker detected"),
            lambda: self._check_markers(
                self._without_free_text(response_text), self._refusal, "Judge refused to assess the clause"
            ),
            lambda: self._check_judgement_shape(response_text),
        ]
        for run_check in checks:
            result = run_check()
            if not result.is_reliable:
                return result
        return RELIABLE

    def _check_budget(self, output_tokens: int) -> ReliabilityCheck:
        if output_tokens > self.max_tokens:
            return ReliabilityCheck(
                is_reliable=False,
                reason=f"Response exceeded token limit ({output_tokens} > {self.max_tokens})",
            )
        return RELIABLE

    @staticmethod
    def _check_markers(text: str, patterns: list[re.Pattern], label: str) -> ReliabilityCheck:
        for pattern in patterns:
            match = pattern.search(text)
            if match:
                return ReliabilityCheck(
                    is_reliable=False,
                    reason=f"{label}: '{match.group()}'",
                    pattern_matched=pattern.pattern,
                )
        return RELIABLE

    def _without_free_text(self, response_text: str) -> str:
        """The reply with explanation and suggestion values removed from its JSON payload."""
        payload = strip_code_fence(response_text)
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            return response_text
        if not isinstance(data, dict):
            return response_text
        scoped = {k: v for k, v in data.items() if k not in self.FREE_TEXT_FIELDS}
        return response_text.replace(payload, json.dumps(scoped))

    def _check_judgement_shape(self, response_text: str) -> ReliabilityCheck:
        text = strip_code_fence(response_text)
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            # Near-JSON is repaired by the judge; prose is not
            if text.startswith("{"):
                return RELIABLE
            return ReliabilityCheck(is_reliable=False, reason="Response is not JSON format")

        if not isinstance(data, dict):
            return ReliabilityCheck(is_reliable=False, reason="Response JSON is not an object")

        # Irrelevant clauses may omit the remaining fields
        if data.get("risk_relevant") is False:
            return RELIABLE

        missing = [f for f in self.REQUIRED_FIELDS if f not in data]
        if missing:
            return ReliabilityCheck(is_reliable=False, reason=f"Missing required fields: {missing}")
        return RELIABLE


def strip_code_fence(text: str) -> str:
    """Payload of a markdown code block, or the stripped text."""
    fence = re.search(r"```(?:json)?\s*(.*?)(?:```|$)", text, re.DOTALL | re.IGNORECASE)
    if fence:
        return fence.group(1).strip()
    return text.strip()


# Shared instance for judges that do not bring their own
reliability_filter = ReliabilityFilter()
