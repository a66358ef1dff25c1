"""Bounded retry with jittered exponential backoff.

Responsibilities:
- Re-run one async unit of work until it succeeds or attempts run out.
- Grow the delay as `ceil(delay * 2 * jitter)` with jitter in `[0.9, 1.1]`.
- Report exhaustion as a failed `RetryOutcome` instead of raising.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
import math
import random
from typing import TypeVar

from ..errors import ContentError
from ..telemetry.logger import RunLogger

_Value = TypeVar("_Value")

JITTER_RANGE = (0.9, 1.1)


def _is_retryable(exc: BaseException) -> bool:
    return not isinstance(exc, ContentError)


def next_delay_ms(delay_ms: int, jitter: float) -> int:
    """Return the backoff delay that follows `delay_ms` for a given jitter factor."""

    return math.ceil(delay_ms * 2 * jitter)


@dataclass(frozen=True, slots=True)
class RetryOutcome:
    """Final state of a retried operation.

    Attributes:
        succeeded: Whether some attempt completed without raising.
        attempts: Number of attempts actually made.
        value: Return value of the successful attempt.
        error: Last error when every attempt failed.
        delays_ms: Backoff delays slept between attempts.
    """

    succeeded: bool
    attempts: int
    value: object | None = None
    error: BaseException | None = None
    delays_ms: tuple[int, ...] = field(default_factory=tuple)


@dataclass(slots=True)
class RetryPolicy:
    """Retry policy applied around one chapter download attempt."""

    max_attempts: int = 5
    base_delay_ms: int = 10000
    sleeper: Callable[[float], Awaitable[object]] = asyncio.sleep
    jitter_source: Callable[[], float] = lambda: random.uniform(*JITTER_RANGE)
    is_retryable: Callable[[BaseException], bool] = _is_retryable
    run_logger: RunLogger | None = None
    on_retry: Callable[[], None] | None = None

    async def run(
        self,
        operation: Callable[[], Awaitable[_Value]],
        *,
        label: str,
    ) -> RetryOutcome:
        """Run `operation` until success, a non-retryable error or exhaustion."""

        if self.max_attempts < 1:
            raise ValueError("`max_attempts` must be a positive integer.")

        delay_ms = self.base_delay_ms
        delays: list[int] = []
        attempt = 0
        while True:
            attempt += 1
            try:
                value = await operation()
            except Exception as exc:
                retryable = self.is_retryable(exc)
                if not retryable or attempt >= self.max_attempts:
                    self._log(
                        "ERROR",
                        "gave_up",
                        label=label,
                        attempts=attempt,
                        error_type=type(exc).__name__,
                        detail=str(exc),
                    )
                    return RetryOutcome(
                        succeeded=False,
                        attempts=attempt,
                        error=exc,
                        delays_ms=tuple(delays),
                    )
                self._log(
                    "WARNING",
                    "retry",
                    label=label,
                    attempt=attempt,
                    delay_ms=delay_ms,
                    error_type=type(exc).__name__,
                    detail=str(exc),
                )
                if self.on_retry is not None:
                    self.on_retry()
                delays.append(delay_ms)
                await self.sleeper(delay_ms / 1000.0)
                delay_ms = next_delay_ms(delay_ms, self.jitter_source())
                continue
            return RetryOutcome(
                succeeded=True,
                attempts=attempt,
                value=value,
                delays_ms=tuple(delays),
            )

    def _log(self, level: str, event: str, **context: object) -> None:
        if self.run_logger is not None:
            self.run_logger.log_event(level, "retry", event, **context)
