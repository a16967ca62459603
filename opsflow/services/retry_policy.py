"""
Per-step error policy for workflow execution.

A step's ``error_config`` decides whether a failure is retried (fixed delay,
no backoff) and whether the workflow halts or continues afterwards.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from opsflow.services.errors import is_retryable

DEFAULT_RETRY_COUNT = 3
DEFAULT_RETRY_DELAY_SECONDS = 60


@dataclass(frozen=True)
class ErrorPolicy:
    retry_enabled: bool = False
    retry_count: int = DEFAULT_RETRY_COUNT
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS
    continue_on_error: bool = False

    @classmethod
    def from_step(cls, step: dict) -> "ErrorPolicy":
        config = step.get("error_config") or {}
        retry_count = config.get("retry_count")
        retry_delay = config.get("retry_delay_seconds")
        return cls(
            retry_enabled=bool(config.get("retry_enabled", False)),
            retry_count=DEFAULT_RETRY_COUNT if retry_count is None else max(int(retry_count), 0),
            retry_delay_seconds=DEFAULT_RETRY_DELAY_SECONDS if retry_delay is None else max(float(retry_delay), 0),
            continue_on_error=bool(config.get("continue_on_error", False)),
        )

    def should_retry(self, error: Exception) -> bool:
        return self.retry_enabled and self.retry_count > 0 and is_retryable(error)


@dataclass
class RetryOutcome:
    succeeded: bool
    attempts: int
    result: Any = None
    error: Optional[Exception] = None


class RetryRunner:
    """Re-runs a failed operation according to an ErrorPolicy."""

    def __init__(self, sleep: Callable[[float], None] = time.sleep):
        self.sleep = sleep

    def retry(self, operation: Callable[[], Any], policy: ErrorPolicy,
              on_attempt_failed: Optional[Callable[[int, Exception], None]] = None) -> RetryOutcome:
        """
        Call ``operation`` up to ``policy.retry_count`` more times.

        Sleeps ``retry_delay_seconds`` before every attempt. Stops early on
        success or on an error that is not retryable.
        """
        last_error = None
        for attempt in range(1, policy.retry_count + 1):
            self.sleep(policy.retry_delay_seconds)
            try:
                result = operation()
            except Exception as e:
                last_error = e
                if on_attempt_failed:
                    on_attempt_failed(attempt, e)
                if not is_retryable(e):
                    return RetryOutcome(succeeded=False, attempts=attempt, error=e)
                continue
            return RetryOutcome(succeeded=True, attempts=attempt, result=result)

        return RetryOutcome(succeeded=False, attempts=policy.retry_count, error=last_error)
