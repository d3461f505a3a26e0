"""Unit tests for the OpenAI clause judge.

Tests cover:
- Request shape (model, seed, JSON response format)
- Resampling of unreliable responses
- JSON repair strategies
- Cost logging per call
- Upstream errors propagating to the caller
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from app.models.analysis import ContractType
from app.models.clause import ClauseType, SimilarClause
from core.cost_tracker import CostTracker, ExecutionStatus
from core.errors import ClassificationError
from core.workers.base_worker import ClassificationContext
from core.workers.openai_judge import OpenAIClauseJudge


VALID_JUDGEMENT = {
    "type": "termination",
    "risk_level": "high",
    "risk_score": 85,
    "explanation": "Client may end the engagement without notice.",
    "suggestion": "Require 14 days written notice.",
    "risk_relevant": True,
}

CLAUSE_TEXT = "Client may terminate this Agreement at any time without notice."


def make_response(content: str, prompt_tokens: int = 120, completion_tokens: int = 60) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    response.usage.prompt_tokens = prompt_tokens
    response.usage.completion_tokens = completion_tokens
    return response


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.chat.completions.create.return_value = make_response(json.dumps(VALID_JUDGEMENT))
    return client


@pytest.fixture
def tracker() -> CostTracker:
    return CostTracker(logger_name="test.openai_judge")


@pytest.fixture
def judge(client, tracker) -> OpenAIClauseJudge:
    return OpenAIClauseJudge(model="gpt-4o-mini", client=client, cost_tracker=tracker)


@pytest.fixture
def context() -> ClassificationContext:
    return ClassificationContext(
        contract_type=ContractType.FREELANCE_AGREEMENT,
        clause_type_hint=ClauseType.TERMINATION,
        title="Termination",
        position=42,
    )


class TestClassify:
    """Tests for a single judgement call."""

    def test_returns_parsed_judgement(self, judge, context):
        assert judge.classify(CLAUSE_TEXT, context) == VALID_JUDGEMENT

    def test_request_shape(self, judge, client, context):
        """Deterministic sampling with JSON output."""
        judge.classify(CLAUSE_TEXT, context)

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0
        assert kwargs["seed"] == OpenAIClauseJudge.SEED
        assert kwargs["response_format"] == {"type": "json_object"}
        user_prompt = kwargs["messages"][1]["content"]
        assert CLAUSE_TEXT in user_prompt
        assert "Freelance Agreement" in user_prompt
        assert "termination" in user_prompt

    def test_precedents_included_in_prompt(self, judge, client):
        context = ClassificationContext(
            similar_clauses=[
                SimilarClause(
                    id="p1",
                    clause_text="Either party may terminate with 30 days notice.",
                    clause_type=ClauseType.TERMINATION,
                    is_favorable=True,
                    explanation="Mutual notice period.",
                    similarity=0.93,
                )
            ]
        )
        judge.classify(CLAUSE_TEXT, context)

        user_prompt = client.chat.completions.create.call_args.kwargs["messages"][1]["content"]
        assert "SIMILAR CLAUSES" in user_prompt
        assert "similarity 0.93" in user_prompt
        assert "favorable" in user_prompt

    def test_success_is_cost_logged(self, judge, tracker, context):
        judge.classify(CLAUSE_TEXT, context)

        logs = tracker.get_all_logs()
        assert len(logs) == 1
        assert logs[0].status == ExecutionStatus.SUCCESS
        assert logs[0].clause_id == "pos_42"
        assert logs[0].input_tokens == 120
        assert logs[0].output_tokens == 60
        assert logs[0].extra_data["risk_score"] == 85


class TestResampling:
    """Tests for discarding unreliable responses."""

    def test_confused_response_resampled(self, judge, client, tracker, context):
        """A confused answer is discarded and a new seed is tried."""
        client.chat.completions.create.side_effect = [
            make_response("I'm not sure, it's hard to say whether this is risky."),
            make_response(json.dumps(VALID_JUDGEMENT)),
        ]

        result = judge.classify(CLAUSE_TEXT, context)

        assert result["risk_score"] == 85
        seeds = [call.kwargs["seed"] for call in client.chat.completions.create.call_args_list]
        assert seeds == [OpenAIClauseJudge.SEED, OpenAIClauseJudge.SEED + 1]
        statuses = [log.status for log in tracker.get_all_logs()]
        assert statuses == [ExecutionStatus.RETRY, ExecutionStatus.SUCCESS]

    def test_missing_fields_resampled(self, judge, client, context):
        client.chat.completions.create.side_effect = [
            make_response(json.dumps({"type": "termination"})),
            make_response(json.dumps(VALID_JUDGEMENT)),
        ]
        assert judge.classify(CLAUSE_TEXT, context)["type"] == "termination"
        assert client.chat.completions.create.call_count == 2

    def test_gives_up_after_max_samples(self, judge, client, context):
        client.chat.completions.create.return_value = make_response("Let's try again later.")

        with pytest.raises(ClassificationError) as exc_info:
            judge.classify(CLAUSE_TEXT, context)

        assert "after 3 samples" in str(exc_info.value)
        assert client.chat.completions.create.call_count == 3

    def test_token_overflow_resampled(self, judge, client, context):
        client.chat.completions.create.side_effect = [
            make_response(json.dumps(VALID_JUDGEMENT), completion_tokens=5000),
            make_response(json.dumps(VALID_JUDGEMENT)),
        ]
        judge.classify(CLAUSE_TEXT, context)
        assert client.chat.completions.create.call_count == 2


class TestJsonParsing:
    """Tests for the JSON repair strategies."""

    def test_code_fence(self, judge, client, context):
        fenced = "```json\n" + json.dumps(VALID_JUDGEMENT) + "\n```"
        client.chat.completions.create.return_value = make_response(fenced)
        assert judge.classify(CLAUSE_TEXT, context) == VALID_JUDGEMENT

    def test_trailing_comma_repaired(self, judge):
        parsed = judge._parse_json_response('{"type": "payment", "risk_score": 60,}')
        assert parsed == {"type": "payment", "risk_score": 60}

    def test_object_extracted_from_prose(self, judge):
        parsed = judge._parse_json_response('Here it is: {"type": "payment"} Hope this helps.')
        assert parsed == {"type": "payment"}

    def test_unparseable_raises(self, judge):
        with pytest.raises(ClassificationError):
            judge._parse_json_response("{not json at all")


class TestUpstreamErrors:
    """Tests for failures outside the judge's control."""

    def test_api_error_propagates_unchanged(self, judge, client, context):
        """The retry layer decides what to do with upstream errors."""
        client.chat.completions.create.side_effect = RuntimeError("503 Service Unavailable")
        with pytest.raises(RuntimeError, match="503"):
            judge.classify(CLAUSE_TEXT, context)

    def test_missing_api_key(self):
        settings = MagicMock(llm_api_key="", llm_model="gpt-4o-mini", llm_base_url=None)
        with patch("core.workers.openai_judge.get_settings", return_value=settings):
            judge = OpenAIClauseJudge()
            with pytest.raises(ValueError, match="API key"):
                _ = judge.client
