"""Bounded retry for async operations."""

from typing import Awaitable, Callable, Optional, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

logger = structlog.get_logger()

T = TypeVar("T")


def _log_retry(label: str) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        logger.warning(
            "Retry: Attempt failed, retrying",
            operation=label,
            attempt=state.attempt_number,
            error=str(error),
        )

    return before_sleep


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int,
    delay: float,
    is_retryable: Callable[[BaseException], bool],
    label: str = "operation",
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> T:
    """Run ``operation`` up to ``max_attempts`` times.

    Waits ``delay`` seconds between attempts. An exception rejected by
    ``is_retryable`` (or the last attempt's exception) is re-raised as is.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    kwargs = {}
    if sleep is not None:
        kwargs["sleep"] = sleep

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_fixed(delay),
        retry=retry_if_exception(is_retryable),
        before_sleep=_log_retry(label),
        reraise=True,
        **kwargs,
    )
    return await retrying(operation)
