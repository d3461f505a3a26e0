"""OpenAI-compatible clause judge.

Judges one clause per call through the chat completions API. Works against
OpenAI directly or any compatible endpoint (Groq) via ``llm_base_url``.

Unreliable responses (confusion markers, token overflow, missing fields) are
discarded and resampled with a different seed before giving up.
"""

import json
import re
import time
from typing import Any, Optional

from openai import OpenAI

from app.config import get_settings
from core.cost_tracker import CapabilityType, CostTracker, ExecutionStatus
from core.errors import ClassificationError
from core.filtering.reliability_filter import ReliabilityFilter, reliability_filter, strip_code_fence
from core.workers.base_worker import ClassificationContext, LanguageModelClassifier
from core.workers.prompts import CLAUSE_JUDGE_SYSTEM_PROMPT, format_clause_judge_prompt
from core.workers.worker_registry import ClassifierRegistry


@ClassifierRegistry.register
class OpenAIClauseJudge(LanguageModelClassifier):
    """Stateless clause judge backed by a chat completions model.

    Example:
        judge = OpenAIClauseJudge(model="gpt-4o-mini")
        judgement = judge.classify(
            "Client may terminate at any time without notice.",
            ClassificationContext(contract_type=ContractType.FREELANCE_AGREEMENT),
        )
    """

    BACKEND = "openai"
    DESCRIPTION = "Chat completions judge (OpenAI or Groq)"
    MAX_COMPLETION_TOKENS = 400
    SEED = 42

    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        client: Optional[OpenAI] = None,
        cost_tracker: CostTracker | None = None,
        reliability: ReliabilityFilter | None = None,
        max_samples: int = 3,
    ) -> None:
        super().__init__()
        settings = get_settings()
        self.model = model or settings.llm_model
        self._api_key = api_key
        self._base_url = base_url if base_url is not None else settings.llm_base_url
        self._client = client
        self.cost_tracker = cost_tracker or CostTracker(logger_name="clauseguard.openai_judge")
        self.reliability = reliability or reliability_filter
        self.max_samples = max_samples

    @property
    def client(self) -> OpenAI:
        """Get or create OpenAI client (lazy initialization)."""
        if self._client is None:
            api_key = self._api_key or get_settings().llm_api_key
            if not api_key or api_key == "your_openai_api_key_here":
                raise ValueError("LLM API key not configured. Set OPENAI_API_KEY or GROQ_API_KEY in .env")
            self._client = OpenAI(api_key=api_key, base_url=self._base_url)
        return self._client

    @property
    def model_name(self) -> str:
        return self.model

    def _format_prompt(self, clause_text: str, context: ClassificationContext) -> str:
        return format_clause_judge_prompt(
            clause_text=clause_text,
            contract_type=context.contract_type.value if context.contract_type else "",
            title=context.title,
            clause_type_hint=context.clause_type_hint.value if context.clause_type_hint else "",
            precedent_lines=context.precedent_lines(),
        )

    def _parse_json_response(self, text: str) -> dict[str, Any]:
        """Parse JSON from an LLM response with repair strategies.

        Handles markdown code blocks, surrounding prose and trailing commas.

        Raises:
            ClassificationError: If no JSON object can be recovered.
        """
        text = strip_code_fence(text)

        try:
            return json.loads(text)
        except json.JSONDecodeError:
            pass

        # Extract JSON object with regex (handles surrounding text)
        json_match = re.search(r'\{[^{}]*(?:\{[^{}]*\}[^{}]*)*\}', text, re.DOTALL)
        if json_match:
            try:
                return json.loads(json_match.group())
            except json.JSONDecodeError:
                text = json_match.group()

        repaired = re.sub(r',\s*([}\]])', r'\1', text)
        try:
            return json.loads(repaired)
        except json.JSONDecodeError as e:
            raise ClassificationError(f"Unparseable judgement: {text[:120]!r}") from e

    def classify(self, clause_text: str, context: ClassificationContext) -> dict[str, Any]:
        """Judge one clause, resampling unreliable responses.

        Upstream API errors propagate to the caller, which owns retries.

        Raises:
            ClassificationError: If every sample is unreliable or unparseable.
        """
        clause_id = f"pos_{context.position}"
        user_prompt = self._format_prompt(clause_text, context)
        last_discard_reason = ""

        for attempt in range(self.max_samples):
            start_time = time.time()
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": CLAUSE_JUDGE_SYSTEM_PROMPT},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=self.MAX_COMPLETION_TOKENS,
                temperature=0,
                seed=self.SEED + attempt,
                response_format={"type": "json_object"},
            )
            execution_time_ms = int((time.time() - start_time) * 1000)

            usage = response.usage
            input_tokens = usage.prompt_tokens if usage else 0
            output_tokens = usage.completion_tokens if usage else 0
            result_text = response.choices[0].message.content or ""

            check = self.reliability.check(result_text, output_tokens)
            if not check.is_reliable:
                last_discard_reason = check.reason
                self._logger.warning(
                    f"Attempt {attempt + 1}/{self.max_samples} DISCARDED for {clause_id}: {check.reason}"
                )
                self.cost_tracker.log_execution(self.cost_tracker.create_log(
                    capability=CapabilityType.CLASSIFICATION,
                    clause_id=clause_id,
                    model=self.model,
                    input_tokens=input_tokens,
                    output_tokens=output_tokens,
                    execution_time_ms=execution_time_ms,
                    status=ExecutionStatus.RETRY,
                    error_message=check.reason,
                    retry_count=attempt,
                ))
                continue

            judgement = self._parse_json_response(result_text)
            if not isinstance(judgement, dict):
                raise ClassificationError(f"Judgement is not a JSON object: {result_text[:120]!r}")

            self.cost_tracker.log_execution(self.cost_tracker.create_log(
                capability=CapabilityType.CLASSIFICATION,
                clause_id=clause_id,
                model=self.model,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                execution_time_ms=execution_time_ms,
                status=ExecutionStatus.SUCCESS,
                extra_data={
                    "type": judgement.get("type"),
                    "risk_score": judgement.get("risk_score"),
                },
                retry_count=attempt,
            ))
            return judgement

        raise ClassificationError(
            f"Unreliable judgement after {self.max_samples} samples: {last_discard_reason}"
        )
