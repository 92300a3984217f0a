"""
Retry Manager for chain API queries.

Read-only chain queries are retried with exponential backoff when they fail
with a transient error code. The number of attempts is bounded so a query
made while the queue lock is held can never stall the registrar
indefinitely.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Iterator, Optional, TypeVar

from .audit_logger import AuditLogger
from .config import RetryConfig
from .exceptions import ChainError

T = TypeVar("T")

COMPONENT = "RetryManager"


@dataclass
class RetryResult(Generic[T]):
    """Outcome of a retried query."""

    success: bool
    result: Optional[T]
    attempts: int
    last_error: Optional[Exception]


class RetryManager:
    """Bounded exponential backoff for transient chain failures."""

    def __init__(self, config: RetryConfig, logger: Optional[AuditLogger] = None) -> None:
        self._config = config
        self._logger = logger

    @property
    def max_attempts(self) -> int:
        return self._config.max_retries + 1

    def _calculate_delay(self, attempt: int) -> float:
        """base_delay * 2^attempt, capped at max_delay."""
        return min(
            self._config.base_delay_seconds * (2 ** attempt),
            self._config.max_delay_seconds,
        )

    def delays(self) -> Iterator[float]:
        """The waits between consecutive attempts."""
        for attempt in range(self._config.max_retries):
            yield self._calculate_delay(attempt)

    def is_retryable_error(self, error: Exception) -> bool:
        """Only chain errors whose code is configured as retryable are retried."""
        return isinstance(error, ChainError) and error.code in self._config.retryable_errors

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        description: str = "chain query",
    ) -> RetryResult[T]:
        """
        Run ``operation`` until it succeeds, fails permanently, or the
        attempts run out.

        Args:
            operation: The async query
            description: Names the query in retry log entries
        """
        waits = self.delays()
        attempts = 0
        while True:
            attempts += 1
            try:
                return RetryResult(True, await operation(), attempts, None)
            except Exception as e:
                delay = next(waits, None) if self.is_retryable_error(e) else None
                if delay is None:
                    return RetryResult(False, None, attempts, e)
                if self._logger:
                    self._logger.debug(COMPONENT, f"Retrying {description}", {
                        "msg_type": "chain_retry",
                        "attempt": attempts,
                        "delay_seconds": delay,
                        "error_code": getattr(e, "code", None),
                    })
                await asyncio.sleep(delay)

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        description: str = "chain query",
    ) -> T:
        """Like ``execute_with_retry`` but returns the value or raises the last error."""
        outcome = await self.execute_with_retry(operation, description)
        if not outcome.success:
            raise outcome.last_error
        return outcome.result
