"""
Retry policy for idempotent backend reads.
"""
import asyncio
from dataclasses import dataclass, field
from functools import wraps
from typing import Awaitable, Callable, FrozenSet, Optional, TypeVar

from rumori.exceptions import ErrorKind, RumoriError
from rumori.logger import get_logger

logger = get_logger("retry")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how fast to retry, and for which error kinds.

    Only reads go through a policy; earn, spend, submit and upload are
    left to a manual "Try Again" so they never apply twice.
    """
    max_attempts: int = 3
    base_delay: float = 0.5
    backoff_factor: float = 2.0
    max_delay: float = 8.0
    retryable_kinds: FrozenSet[ErrorKind] = field(
        default_factory=lambda: frozenset({ErrorKind.NETWORK})
    )

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def is_retryable(self, error: Exception) -> bool:
        return isinstance(error, RumoriError) and error.kind in self.retryable_kinds

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        return min(self.base_delay * (self.backoff_factor ** (attempt - 1)), self.max_delay)

    async def run(self, func: Callable[[], Awaitable[T]], name: str = "operation") -> T:
        """Await ``func()`` until it succeeds or the policy gives up."""
        attempt = 1
        while True:
            try:
                return await func()
            except Exception as e:
                if attempt >= self.max_attempts or not self.is_retryable(e):
                    if attempt > 1:
                        logger.error(f"All {attempt} attempts failed for {name}")
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    f"Attempt {attempt} failed for {name}: {e}. "
                    f"Retrying in {delay:.2f} seconds..."
                )
                await asyncio.sleep(delay)
                attempt += 1


NO_RETRY = RetryPolicy(max_attempts=1)


def async_retry(policy: Optional[RetryPolicy] = None):
    """Decorator form of ``RetryPolicy.run`` for async callables."""
    policy = policy or RetryPolicy()

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            return await policy.run(lambda: func(*args, **kwargs), name=func.__name__)
        return wrapper
    return decorator
