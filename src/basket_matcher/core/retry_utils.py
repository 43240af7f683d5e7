"""
Retry logic and collaborator error handling with exponential backoff.
Transient collaborator failures are retried; permanent ones are raised at once.
"""

import logging
import random
import time
from functools import wraps
from typing import Callable, Optional, TypeVar

from basket_matcher.core.config import (
    LLM_INITIAL_BACKOFF,
    LLM_MAX_RETRIES,
    LOG_DATEFMT,
    LOG_FORMAT,
    LOG_LEVEL,
)

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
logger = logging.getLogger(__name__)

T = TypeVar('T')


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_retries: int = LLM_MAX_RETRIES,
        initial_backoff: float = LLM_INITIAL_BACKOFF,
        backoff_multiplier: float = 2.0,
        max_backoff: float = 8.0,
        jitter: bool = True
    ):
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.backoff_multiplier = backoff_multiplier
        self.max_backoff = max_backoff
        self.jitter = jitter

    def get_backoff_time(self, attempt: int) -> float:
        """Calculate backoff time for attempt number (0-based)."""
        backoff = min(
            self.initial_backoff * (self.backoff_multiplier ** attempt),
            self.max_backoff
        )

        if self.jitter:
            backoff = backoff * (0.5 + random.random())

        return backoff


class LLMUnavailableError(Exception):
    """Base exception for collaborator failures; callers degrade on it."""

    def __init__(self, message: str, stage: str = "llm", retry_possible: bool = True):
        self.message = message
        self.stage = stage
        self.retry_possible = retry_possible
        super().__init__(self.message)


class TransientError(LLMUnavailableError):
    """Timeouts, connection failures, server errors and unusable output."""
    pass


class PermanentError(LLMUnavailableError):
    """Error that won't be resolved by retrying (auth, rate limit, quota)."""

    def __init__(self, message: str, stage: str = "llm"):
        super().__init__(message, stage, retry_possible=False)


def retry_with_backoff(
    func: Callable[..., T],
    config: Optional[RetryConfig] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Callable[..., T]:
    """
    Wrap a function so transient failures are retried with exponential backoff.

    Args:
        func: Function to retry
        config: Retry configuration
        sleep: Sleep function used between attempts

    Returns:
        Wrapped function with retry logic. The last transient error is
        re-raised once the retries are exhausted.
    """
    if config is None:
        config = RetryConfig()

    @wraps(func)
    def wrapper(*args, **kwargs) -> T:
        last_exception = None

        for attempt in range(config.max_retries + 1):
            try:
                result = func(*args, **kwargs)
                if attempt > 0:
                    logger.info(f"[RETRY] {func.__name__} succeeded on attempt {attempt + 1}")
                return result

            except PermanentError as e:
                logger.error(f"[RETRY] Permanent error from {func.__name__}: {e.message}")
                raise

            except (TransientError, ConnectionError, TimeoutError) as e:
                last_exception = e

                if attempt < config.max_retries:
                    backoff = config.get_backoff_time(attempt)
                    logger.warning(
                        f"[RETRY] Attempt {attempt + 1} of {func.__name__} failed: {e}. "
                        f"Retrying in {backoff:.2f} seconds..."
                    )
                    sleep(backoff)
                else:
                    logger.error(f"[RETRY] All {config.max_retries + 1} attempts of {func.__name__} failed")

        if isinstance(last_exception, LLMUnavailableError):
            raise last_exception
        raise TransientError(str(last_exception)) from last_exception

    return wrapper
