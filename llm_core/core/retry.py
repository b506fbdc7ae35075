"""
Retry Executor
==============
Wraps a provider call with a bounded, fixed-delay retry policy.

Design
------
- The operation is passed as a zero-argument coroutine factory so every
  attempt awaits a fresh coroutine.
- `max_attempts` counts every invocation, including the first one.
- The delay between attempts is constant.
- Errors are filtered by a predicate over their kind. Validation,
  configuration and content-filter errors are raised on the first attempt.
- When attempts are exhausted the last exception propagates unchanged.
- An optional per-attempt timeout uses asyncio.wait_for; a timed-out attempt
  counts as a retryable failure.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

from llm_core.core.errors import is_retryable
from llm_core.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryContext:
    """Per-call retry state; lives only for the duration of one guarded call."""

    label: str
    max_attempts: int
    delay_seconds: float
    attempt: int = 0
    last_exception: Optional[BaseException] = field(default=None, repr=False)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    delay_seconds: float = 1.0
    is_retryable: Callable[[BaseException], bool] = is_retryable
    attempt_timeout_seconds: Optional[float] = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")


class RetryExecutor:
    def __init__(self, policy: Optional[RetryPolicy] = None) -> None:
        self._policy = policy or RetryPolicy()

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        max_attempts: Optional[int] = None,
        delay_seconds: Optional[float] = None,
        label: str = "",
    ) -> T:
        """
        Run `operation` until it succeeds, raises a non-retryable error, or
        `max_attempts` invocations have failed.

        Parameters
        ----------
        operation     : coroutine factory for one attempt
        max_attempts  : per-call override of the policy's attempt count
        delay_seconds : per-call override of the policy's fixed delay
        label         : operation name carried into retry log records
        """
        ctx = RetryContext(
            label=label,
            max_attempts=max_attempts if max_attempts is not None else self._policy.max_attempts,
            delay_seconds=delay_seconds if delay_seconds is not None else self._policy.delay_seconds,
        )
        if ctx.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        while True:
            ctx.attempt += 1
            try:
                return await self._attempt(operation)
            except Exception as exc:
                ctx.last_exception = exc

                if not self._policy.is_retryable(exc):
                    logger.debug(
                        "Non-retryable error, not retrying",
                        extra={"operation": label, "attempt": ctx.attempt, "error": str(exc)},
                    )
                    raise

                if ctx.attempt >= ctx.max_attempts:
                    logger.error(
                        "Retry attempts exhausted",
                        extra={
                            "operation": label,
                            "attempts": ctx.attempt,
                            "error": str(exc),
                        },
                    )
                    raise

                logger.warning(
                    f"Attempt {ctx.attempt}: retrying '{label}' due to {type(exc).__name__}",
                    extra={
                        "operation": label,
                        "attempt": ctx.attempt,
                        "max_attempts": ctx.max_attempts,
                        "delay_s": ctx.delay_seconds,
                        "cause": str(exc),
                    },
                    exc_info=exc,
                )
                await asyncio.sleep(ctx.delay_seconds)

    async def _attempt(self, operation: Callable[[], Awaitable[T]]) -> T:
        timeout = self._policy.attempt_timeout_seconds
        if timeout is None:
            return await operation()
        return await asyncio.wait_for(operation(), timeout=timeout)
