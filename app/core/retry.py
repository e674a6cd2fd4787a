"""Transparent retry of transient upstream failures."""

from collections.abc import Awaitable, Callable
from typing import TypeVar

from app.core.errors import is_transient
from app.core.logging import get_logger

logger = get_logger(module="retry")

T = TypeVar("T")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    should_retry: Callable[[BaseException], bool] = is_transient,
    retries: int = 1,
) -> T:
    """Run ``operation``, retrying it when ``should_retry`` accepts the error.

    Args:
        operation: Zero-argument coroutine function to run
        should_retry: Predicate deciding whether an exception is retryable
        retries: Extra attempts after the first one

    Returns:
        The first successful result

    Raises:
        Exception: The last error once retries are exhausted or not permitted
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            if attempt >= retries or not should_retry(exc):
                raise
            attempt += 1
            logger.warning(
                "retrying_transient_failure",
                attempt=attempt,
                retries=retries,
                error=str(exc),
            )
