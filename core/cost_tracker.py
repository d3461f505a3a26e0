"""Cost Tracking and Logging for capability calls.

Every classification or embedding call produces one execution log. Logs
accumulate per pipeline and roll up into a summary with a cost split by
capability. Prices are per 1M tokens; local backends (keyword judge,
hashing embeddings) are free.

Usage:
    from core.cost_tracker import CostTracker, CapabilityType

    tracker = CostTracker()
    tracker.log_execution(tracker.create_log(
        capability=CapabilityType.CLASSIFICATION,
        clause_id="pos_120",
        model="gpt-4o-mini",
        input_tokens=412,
        output_tokens=96,
        execution_time_ms=850,
        status="SUCCESS",
        extra_data={"risk_score": 85},
    ))
"""

import logging
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class CapabilityType(str, Enum):
    """External capability being called."""
    CLASSIFICATION = "CLAUSE_CLASSIFICATION"
    EMBEDDING = "EMBEDDING"


class ExecutionStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    RETRY = "RETRY"
    TIMEOUT = "TIMEOUT"
    VALIDATION_ERROR = "VALIDATION_ERROR"


class ModelPricing(Enum):
    """USD per 1M input/output tokens."""
    GPT_4O_MINI = {"input": 0.15, "output": 0.6}
    GPT_4O = {"input": 2.5, "output": 10.0}
    LLAMA_3_3_70B = {"input": 0.59, "output": 0.79}
    LLAMA_3_1_8B = {"input": 0.05, "output": 0.08}
    TEXT_EMBEDDING_3_SMALL = {"input": 0.02, "output": 0.0}
    TEXT_EMBEDDING_3_LARGE = {"input": 0.13, "output": 0.0}
    LOCAL = {"input": 0.0, "output": 0.0}

    @classmethod
    def get_pricing(cls, model_name: str) -> dict[str, float]:
        """Price a model by name.

        Dated snapshots ("gpt-4o-mini-2024-07-18") price as their base model;
        anything unrecognised is priced as gpt-4o-mini.
        """
        name = model_name.lower().strip()
        # Longest prefix first so "gpt-4o-mini" wins over "gpt-4o"
        for prefix in sorted(_PRICING_BY_PREFIX, key=len, reverse=True):
            if name.startswith(prefix):
                return _PRICING_BY_PREFIX[prefix].value
        return cls.GPT_4O_MINI.value


_PRICING_BY_PREFIX: dict[str, ModelPricing] = {
    "gpt-4o-mini": ModelPricing.GPT_4O_MINI,
    "gpt-4o": ModelPricing.GPT_4O,
    "llama-3.3-70b": ModelPricing.LLAMA_3_3_70B,
    "llama-3.1-8b": ModelPricing.LLAMA_3_1_8B,
    "text-embedding-3-small": ModelPricing.TEXT_EMBEDDING_3_SMALL,
    "text-embedding-3-large": ModelPricing.TEXT_EMBEDDING_3_LARGE,
    "keyword": ModelPricing.LOCAL,
    "hashing": ModelPricing.LOCAL,
}


@dataclass
class CapabilityExecutionLog:
    """One capability call."""
    timestamp: datetime
    capability: str
    clause_id: str
    model: str
    input_tokens: int
    output_tokens: int
    execution_time_ms: int
    cost_usd: float
    status: ExecutionStatus
    extra_data: dict[str, Any] = field(default_factory=dict)
    error_message: str | None = None
    retry_count: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def succeeded(self) -> bool:
        return self.status == ExecutionStatus.SUCCESS

    def to_log_string(self) -> str:
        """Single pipe-separated line for the application log."""
        fields = [
            f"[{self.timestamp:%Y-%m-%d %H:%M:%S}] {self.capability}",
            self.clause_id,
            f"model={self.model}",
            f"tokens={self.input_tokens}+{self.output_tokens}",
            f"execution_time_ms={self.execution_time_ms}",
            f"cost_usd={self.cost_usd:.5f}",
            f"status={self.status.value}",
        ]
        if self.retry_count:
            fields.append(f"retries={self.retry_count}")
        fields.extend(f"{key}={value}" for key, value in self.extra_data.items())
        if self.error_message:
            fields.append(f"error={self.error_message}")
        return " | ".join(fields)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        data["status"] = self.status.value
        data["total_tokens"] = self.total_tokens
        return data


@dataclass
class BatchCostSummary:
    """Roll-up of the capability calls made for one contract."""
    batch_id: str
    total_calls: int = 0
    successful_calls: int = 0
    total_cost_usd: float = 0.0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    avg_execution_time_ms: float = 0.0
    cost_by_capability: dict[str, float] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_logs(cls, batch_id: str, logs: list[CapabilityExecutionLog]) -> "BatchCostSummary":
        summary = cls(batch_id=batch_id)
        if not logs:
            return summary

        for log in logs:
            summary.total_calls += 1
            summary.successful_calls += int(log.succeeded)
            summary.total_cost_usd += log.cost_usd
            summary.total_input_tokens += log.input_tokens
            summary.total_output_tokens += log.output_tokens
            summary.cost_by_capability[log.capability] = (
                summary.cost_by_capability.get(log.capability, 0.0) + log.cost_usd
            )
        summary.avg_execution_time_ms = sum(log.execution_time_ms for log in logs) / len(logs)
        return summary

    @property
    def failed_calls(self) -> int:
        return self.total_calls - self.successful_calls

    @property
    def success_rate_percent(self) -> float:
        if not self.total_calls:
            return 0.0
        return self.successful_calls / self.total_calls * 100

    def to_log_string(self) -> str:
        split = " | ".join(f"{name}={cost:.5f}" for name, cost in sorted(self.cost_by_capability.items()))
        line = (
            f"[{self.timestamp:%Y-%m-%d %H:%M:%S}] COST_SUMMARY | {self.batch_id} | "
            f"total_calls={self.total_calls} | total_cost_usd={self.total_cost_usd:.5f} | "
            f"success_rate={self.success_rate_percent:.1f}% | errors={self.failed_calls}"
        )
        return f"{line} | {split}" if split else line

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        data["failed_calls"] = self.failed_calls
        data["success_rate_percent"] = self.success_rate_percent
        return data


class CostTracker:
    """Collects execution logs from worker threads and the event loop."""

    def __init__(self, logger_name: str = "clauseguard.cost_tracker") -> None:
        self.logger = logging.getLogger(logger_name)
        self._execution_logs: list[CapabilityExecutionLog] = []
        self._lock = threading.Lock()

    def calculate_cost(self, model: str, input_tokens: int, output_tokens: int) -> float:
        """Cost in USD of one call."""
        pricing = ModelPricing.get_pricing(model)
        return (input_tokens * pricing["input"] + output_tokens * pricing["output"]) / 1_000_000

    def create_log(
        self,
        capability: str | CapabilityType,
        clause_id: str,
        model: str,
        input_tokens: int,
        output_tokens: int,
        execution_time_ms: int,
        status: str | ExecutionStatus,
        extra_data: dict[str, Any] | None = None,
        error_message: str | None = None,
        retry_count: int = 0,
    ) -> CapabilityExecutionLog:
        """Build a priced log entry.

        Args:
            capability: Classification or embedding.
            clause_id: ``pos_<offset>`` of the clause, or a batch label.
            status: ``ExecutionStatus`` or its string value.
            extra_data: Extra ``key=value`` pairs for the log line.
        """
        return CapabilityExecutionLog(
            timestamp=datetime.now(timezone.utc),
            capability=CapabilityType(capability).value,
            clause_id=clause_id,
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            execution_time_ms=execution_time_ms,
            cost_usd=self.calculate_cost(model, input_tokens, output_tokens),
            status=ExecutionStatus(status),
            extra_data=extra_data or {},
            error_message=error_message,
            retry_count=retry_count,
        )

    def log_execution(self, log: CapabilityExecutionLog) -> None:
        """Store the entry and write it to the log; failures at WARNING."""
        with self._lock:
            self._execution_logs.append(log)
        self.logger.log(logging.INFO if log.succeeded else logging.WARNING, log.to_log_string())

    def get_batch_summary(self, batch_id: str) -> BatchCostSummary:
        return BatchCostSummary.from_logs(batch_id, self.get_all_logs())

    def log_batch_summary(self, batch_id: str) -> BatchCostSummary:
        summary = self.get_batch_summary(batch_id)
        self.logger.info(summary.to_log_string())
        return summary

    def reset(self) -> None:
        with self._lock:
            self._execution_logs = []

    def get_all_logs(self) -> list[CapabilityExecutionLog]:
        """Snapshot of the accumulated logs."""
        with self._lock:
            return list(self._execution_logs)
