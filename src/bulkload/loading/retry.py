"""Bounded retry policy for deduplicating loads."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from bulkload.core.config import Settings, get_settings
from bulkload.core.exceptions import BulkLoadError, StagingSetupError, TransferError

# Failures worth another attempt; configuration errors are not
RETRYABLE_ERRORS: tuple[type[BulkLoadError], ...] = (TransferError, StagingSetupError)


class RetryReport(str, Enum):
    """Which outcome a retried load reports to its caller."""

    FINAL_OUTCOME = "final_outcome"  # success of a retry, else the last failure
    FIRST_FAILURE = "first_failure"  # always the first failure, retries run for side effect


@dataclass(frozen=True)
class RetryPolicy:
    """How often a failed deduplicating load is attempted again.

    Attributes:
        max_attempts: Total attempts including the first one
        backoff_seconds: Sleep before the first retry
        backoff_multiplier: Growth of the sleep for each further retry
        report: Outcome surfaced once retries are exhausted or succeed
    """

    max_attempts: int = 2
    backoff_seconds: float = 0.0
    backoff_multiplier: float = 2.0
    report: RetryReport = RetryReport.FINAL_OUTCOME

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.backoff_seconds < 0:
            raise ValueError(f"backoff_seconds must be >= 0, got {self.backoff_seconds}")
        if self.backoff_multiplier < 1:
            raise ValueError(f"backoff_multiplier must be >= 1, got {self.backoff_multiplier}")

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> RetryPolicy:
        settings = settings or get_settings()
        return cls(
            max_attempts=settings.retry_max_attempts,
            backoff_seconds=settings.retry_backoff_seconds,
            backoff_multiplier=settings.retry_backoff_multiplier,
            report=RetryReport(settings.retry_report),
        )

    @classmethod
    def no_retry(cls) -> RetryPolicy:
        return cls(max_attempts=1)

    def delays(self) -> Iterator[float]:
        """Sleep before each retry, one value per retry."""
        delay = self.backoff_seconds
        for _ in range(self.max_attempts - 1):
            yield delay
            delay *= self.backoff_multiplier

    def is_retryable(self, error: BaseException) -> bool:
        return isinstance(error, RETRYABLE_ERRORS)

    def surfaced_error(self, errors: list[BulkLoadError]) -> BulkLoadError:
        """Pick the error to raise and attach the other attempts to it."""
        if self.report is RetryReport.FIRST_FAILURE:
            chosen, others = errors[0], errors[1:]
        else:
            chosen, others = errors[-1], errors[:-1]
        chosen.attempt_errors = list(others)
        return chosen


__all__ = ["RETRYABLE_ERRORS", "RetryPolicy", "RetryReport"]
