"""
Retryable invocation of external calls.

Overload and rate-limit failures are retried with exponential backoff
(base_delay, 2 * base_delay, ...). Anything else is raised on the spot, as
is the last failure once attempts run out.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = (429, 503, 529)
RETRYABLE_MARKERS = (
    "overloaded",
    "rate limit",
    "rate_limit",
    "resource_exhausted",
    "too many requests",
)


def is_retryable_error(error: BaseException) -> bool:
    """True for overload / rate-limit signatures."""
    status = getattr(error, "status_code", None) or getattr(error, "status", None)
    if status in RETRYABLE_STATUS_CODES:
        return True
    message = str(error).lower()
    return any(marker in message for marker in RETRYABLE_MARKERS)


async def invoke_with_retry(
    fn: Callable[[], Any],
    max_attempts: int = 3,
    base_delay: float = 2.0,
    is_retryable: Callable[[BaseException], bool] = is_retryable_error,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    label: Optional[str] = None,
) -> Any:
    """
    Call fn (sync or async, no arguments) with bounded retries.

    Args:
        fn: The external call
        max_attempts: Total attempts including the first
        base_delay: Seconds to wait before the second attempt
        is_retryable: Error classifier
        sleep: Backoff sleep, replaceable in tests
        label: Name used in log messages

    Returns:
        Whatever fn returns
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    label = label or getattr(fn, "__name__", "call")

    for attempt in range(1, max_attempts + 1):
        try:
            result = fn()
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as e:
            if not is_retryable(e) or attempt >= max_attempts:
                raise

            delay = base_delay * 2 ** (attempt - 1)
            logger.warning(
                f"[Retry] {label} failed (attempt {attempt}/{max_attempts}), "
                f"retrying in {delay:.1f}s: {e}"
            )
            await sleep(delay)
