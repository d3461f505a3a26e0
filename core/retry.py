"""Timeout and retry wrapper for blocking capability calls.

Capability backends are synchronous (the OpenAI client is used in blocking
mode), so each call runs in the default executor under ``asyncio.wait_for``.
A timed-out call keeps running in its worker thread; its result is discarded.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

import openai

from core.errors import ContractAnalysisError, UpstreamTimeoutError

logger = logging.getLogger("clauseguard.retry")

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 2
    backoff_factor: float = 2.0
    initial_delay_seconds: float = 0.5

    def delay_for(self, retry_count: int) -> float:
        return self.initial_delay_seconds * (self.backoff_factor ** retry_count)


RETRYABLE_OPENAI_ERRORS = (
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


def is_retryable_error(error: BaseException) -> bool:
    """Check if an error should trigger a retry.

    Wrapped errors are retryable when their cause is.
    """
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return True
    if isinstance(error, RETRYABLE_OPENAI_ERRORS):
        return True
    if isinstance(error, ContractAnalysisError):
        cause = error.__cause__
        return cause is not None and is_retryable_error(cause)

    error_str = str(error).lower()
    if "rate" in error_str and "limit" in error_str:
        return True
    if "timeout" in error_str or "timed out" in error_str:
        return True
    if any(code in error_str for code in ("500", "502", "503", "504")):
        return True
    if "connection" in error_str:
        return True
    return False


async def call_with_retry(
    func: Callable[..., T],
    *args: Any,
    timeout: float,
    retry_config: RetryConfig,
    timeout_error: type[UpstreamTimeoutError],
    label: str = "",
) -> T:
    """Run ``func(*args)`` in the executor with a per-attempt timeout.

    Timeouts and retryable errors are retried up to ``retry_config.max_retries``
    times with exponential backoff. Non-retryable errors propagate at once.

    Raises:
        timeout_error: If the final attempt timed out.
    """
    loop = asyncio.get_running_loop()
    retry_count = 0

    while True:
        try:
            return await asyncio.wait_for(loop.run_in_executor(None, func, *args), timeout)
        except asyncio.TimeoutError as e:
            last_error: Exception = e
            reason = f"timed out after {timeout}s"
        except Exception as e:
            if not is_retryable_error(e):
                raise
            last_error = e
            reason = str(e)

        if retry_count >= retry_config.max_retries:
            break

        delay = retry_config.delay_for(retry_count)
        retry_count += 1
        logger.warning(f"{label} attempt {retry_count} failed ({reason}); retrying in {delay:.2f}s")
        await asyncio.sleep(delay)

    logger.error(f"{label} failed after {retry_count + 1} attempts: {reason}")
    if isinstance(last_error, asyncio.TimeoutError):
        raise timeout_error(f"{label} timed out after {retry_count + 1} attempts") from last_error
    raise last_error
