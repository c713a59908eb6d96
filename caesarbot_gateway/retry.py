"""
Bounded retry helper with linear backoff.

Meant for low-volume interactive calls: no jitter and no circuit breaker.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from .config.models import RetryConfig


logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay_ms(attempt: int, base_delay_ms: float) -> float:
    """Delay to wait after the given (1-based) failed attempt."""
    return base_delay_ms * attempt


async def with_retry(
    call: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay_ms: float = 1000,
    operation: Optional[str] = None,
) -> T:
    """
    Execute ``call`` until it succeeds or attempts run out.

    Args:
        call: Zero-argument coroutine function
        max_attempts: Total number of attempts, at least 1
        base_delay_ms: Delay unit; attempt n waits ``base_delay_ms * n`` after failing
        operation: Optional name used in log messages

    Returns:
        Result of the first successful attempt

    Raises:
        ValueError: If max_attempts is below 1
        Exception: The last error once every attempt has failed
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    name = operation or getattr(call, "__name__", "call")
    last_exception: Optional[BaseException] = None

    for attempt in range(1, max_attempts + 1):
        try:
            return await call()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            last_exception = e

            if attempt == max_attempts:
                break

            delay_ms = backoff_delay_ms(attempt, base_delay_ms)
            logger.warning(
                f"Attempt {attempt}/{max_attempts} failed for {name}: {e}. "
                f"Retrying in {delay_ms / 1000:.2f} seconds..."
            )
            await asyncio.sleep(delay_ms / 1000)

    logger.error(f"All {max_attempts} attempts exhausted for {name}. Final error: {last_exception}")
    raise last_exception


async def with_retry_config(call: Callable[[], Awaitable[T]], config: RetryConfig,
                            operation: Optional[str] = None) -> T:
    """Run ``with_retry`` using values from a ``RetryConfig``."""
    return await with_retry(
        call,
        max_attempts=config.max_attempts,
        base_delay_ms=config.base_delay_ms,
        operation=operation,
    )
