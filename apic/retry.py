"""
Retry orchestration for request operations.
"""

import asyncio
import random
from typing import Any, Awaitable, Callable, Optional, TYPE_CHECKING

from .errors import ApicError, MaxRetriesExceededError
from .logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from .config import RequestConfig
    from .metrics import MetricsCollector

Operation = Callable[[], Awaitable[Any]]
RefreshHook = Callable[[], Awaitable[None]]

DEFAULT_REFRESH_LIMIT = 3

logger = get_logger("apic.retry")


class BackoffPolicy:
    """How long to wait before the next attempt."""

    def __init__(self,
                 base_delay: float = 1.0,
                 max_delay: float = 60.0,
                 exponential_base: float = 2.0,
                 jitter: bool = False,
                 backoff_strategy: str = "fixed"):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.backoff_strategy = backoff_strategy

    @classmethod
    def from_config(cls, config: "RequestConfig") -> "BackoffPolicy":
        return cls(
            base_delay=config.retry_delay,
            max_delay=config.max_retry_delay,
            exponential_base=config.exponential_base,
            jitter=config.jitter,
            backoff_strategy=config.backoff_strategy
        )

    def delay_for(self, attempt: int) -> float:
        """Delay after the ``attempt``-th failure (1-based)."""
        if self.backoff_strategy == "exponential":
            delay = self.base_delay * (self.exponential_base ** (attempt - 1))
        elif self.backoff_strategy == "linear":
            delay = self.base_delay * attempt
        else:
            delay = self.base_delay

        # A fixed delay is used as given; grown delays are capped
        if self.backoff_strategy != "fixed":
            delay = min(delay, self.max_delay)

        if self.jitter:
            jitter_amount = delay * 0.1  # 10% jitter
            delay += random.uniform(-jitter_amount, jitter_amount)

        return max(0.0, delay)


async def refresh_noop() -> None:
    """Default refresh hook; replace with token renewal or similar."""
    logger.info("Refreshing data...")


async def with_retry(operation: Operation,
                     retries: int,
                     delay: float,
                     refresh_limit: int = DEFAULT_REFRESH_LIMIT,
                     *,
                     refresh: Optional[RefreshHook] = None,
                     policy: Optional[BackoffPolicy] = None,
                     metrics: Optional["MetricsCollector"] = None) -> Any:
    """Run ``operation`` until it succeeds or the retry budget is spent.

    The operation is attempted up to ``retries + 1`` times, waiting between
    attempts. Once the budget is exhausted the refresh hook runs (at most
    ``refresh_limit`` times per run) and the run ends with
    ``MaxRetriesExceededError``. Only ``ApicError`` failures are retried; any
    other exception, including one from the refresh hook, propagates as is.
    """
    if retries < 0:
        raise ValueError("retries must be >= 0")

    refresh = refresh or refresh_noop
    policy = policy or BackoffPolicy(base_delay=delay)

    attempt = 0
    refresh_count = 0
    last_error: Optional[ApicError] = None

    while attempt <= retries:
        try:
            logger.debug("Retry attempt", attempt=attempt + 1, max_attempts=retries + 1)
            result = await operation()

            if attempt > 0:
                logger.info("Retry succeeded", attempt=attempt + 1)

            return result

        except ApicError as e:
            last_error = e
            attempt += 1
            logger.warning(
                "Attempt failed",
                attempt=attempt,
                retries_left=max(0, retries - attempt + 1),
                error_code=e.code,
                error=str(e)
            )
            if metrics is not None:
                metrics.record_retry(e.code)

            if attempt <= retries:
                wait = policy.delay_for(attempt)
                logger.info("Retrying operation", delay=wait)
                await asyncio.sleep(wait)

            if attempt > retries and refresh_count < refresh_limit:
                logger.info(
                    "Maximum retry limit reached, refreshing",
                    refresh_count=refresh_count + 1,
                    refresh_limit=refresh_limit
                )
                refresh_count += 1
                await refresh()

    logger.error(
        "All retry attempts exhausted",
        attempts=attempt,
        refreshes=refresh_count,
        error=str(last_error)
    )
    raise MaxRetriesExceededError(attempts=attempt, last_error=last_error) from last_error
