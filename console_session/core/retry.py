"""Bounded retry with exponential backoff for async calls.

One reusable policy object instead of ad hoc loops in every caller. Built on
tenacity so the stop/wait/retry strategies read the same way as the
decorator-based retries elsewhere in the stack.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Tuple, Type, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from console_session.core.logging import logger

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try and how long to wait between attempts.

    Attributes:
        max_attempts: Total attempts including the first one. 1 disables retry.
        initial_delay: Wait before the second attempt, in seconds.
        max_delay: Upper bound for any single wait, in seconds.
        multiplier: Exponential growth factor between waits.
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    multiplier: float = 2.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays cannot be negative")


def _log_retry(name: str) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "retrying_after_failure",
            operation=name,
            attempt=retry_state.attempt_number,
            next_wait=round(retry_state.next_action.sleep, 3) if retry_state.next_action else None,
            error=str(exc) if exc else None,
        )

    return before_sleep


async def call_with_retry(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    policy: RetryPolicy = RetryPolicy(),
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    name: str = "operation",
    **kwargs: Any,
) -> T:
    """Await ``func(*args, **kwargs)``, retrying on the given exception types.

    Exceptions outside ``retry_on`` propagate immediately. When the attempts
    are exhausted the last exception is re-raised unchanged.

    Args:
        func: Coroutine function to call.
        policy: Attempt count and backoff bounds.
        retry_on: Exception types that warrant another attempt.
        name: Operation name used in log events.

    Returns:
        Whatever ``func`` returns on its first successful attempt.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(
            multiplier=policy.initial_delay,
            exp_base=policy.multiplier,
            max=policy.max_delay,
        ),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_log_retry(name),
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            result = await func(*args, **kwargs)
    return result
