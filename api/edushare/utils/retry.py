import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from ..config.settings import RETRY_BASE_DELAY, RETRY_MAX_ATTEMPTS

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Retrying cannot fix these
FAIL_FAST_CODES = {"permission-denied", "not-found", "already-exists"}


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = RETRY_MAX_ATTEMPTS,
    base_delay: float = RETRY_BASE_DELAY,
    description: Optional[str] = None,
) -> T:
    """
    Await ``operation`` with exponential backoff.

    A failure whose ``code`` is in FAIL_FAST_CODES is re-raised at once. Any
    other failure is retried after ``base_delay * 2 ** attempt`` seconds until
    ``max_attempts`` attempts have been made, then the last failure is re-raised.

    Args:
        operation: Zero-argument coroutine function performing one attempt
        max_attempts: Total number of attempts (1 means no retry)
        base_delay: Delay in seconds before the second attempt
        description: Name used in log messages

    Returns:
        Whatever the successful attempt returned
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    name = description or getattr(operation, "__name__", "operation")
    last_error: Optional[Exception] = None

    for attempt in range(max_attempts):
        try:
            return await operation()
        except Exception as e:
            last_error = e
            logger.warning(f"{name} failed (attempt {attempt + 1}/{max_attempts}): {e}")

            if getattr(e, "code", None) in FAIL_FAST_CODES:
                raise

            if attempt < max_attempts - 1:
                await asyncio.sleep(base_delay * 2 ** attempt)

    raise last_error

