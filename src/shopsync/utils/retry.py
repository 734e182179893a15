"""
Retry utilities with exponential backoff for Shopify Admin API calls.

Shopify answers 429 with a Retry-After header when the leaky bucket is
full, and occasionally 5xx during deploys. Both are retried; everything
else surfaces to the caller immediately.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

import httpx

from shopsync.utils.exceptions import ProviderApiError, RateLimitError
from shopsync.utils.logger import get_logger


logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True

    retry_on_status_codes: Tuple[int, ...] = (429, 500, 502, 503, 504)
    retry_on_exceptions: Tuple[Type[Exception], ...] = (
        RateLimitError,
        httpx.TransportError,
    )

    respect_retry_after: bool = True
    max_retry_after: float = 120.0


class ExponentialBackoff:
    """Exponential backoff calculator with jitter."""

    def __init__(self, config: RetryConfig):
        self.config = config
        self.attempt = 0

    def reset(self) -> None:
        """Reset attempt counter."""
        self.attempt = 0

    def calculate_delay(self, retry_after: Optional[float] = None) -> float:
        """
        Calculate delay for current attempt.

        Args:
            retry_after: Retry-After value from a 429 response, in seconds

        Returns:
            Delay in seconds
        """
        if retry_after is not None and self.config.respect_retry_after:
            if retry_after <= self.config.max_retry_after:
                self.attempt += 1
                return retry_after
            logger.warning(f"Retry-After too large ({retry_after}s), using exponential backoff")

        delay = self.config.base_delay * (self.config.exponential_base ** self.attempt)

        # ±25% jitter
        if self.config.jitter:
            jitter_range = delay * 0.25
            delay += random.uniform(-jitter_range, jitter_range)

        delay = min(delay, self.config.max_delay)
        self.attempt += 1

        logger.debug(f"Calculated retry delay: {delay:.2f}s (attempt {self.attempt})")
        return delay

    def should_retry(self, exception: Exception) -> bool:
        """
        Determine if we should retry based on the exception.

        Args:
            exception: Exception that occurred

        Returns:
            True if should retry, False otherwise
        """
        if self.attempt >= self.config.max_retries:
            logger.debug(f"Max retries ({self.config.max_retries}) exceeded")
            return False

        if isinstance(exception, self.config.retry_on_exceptions):
            return True

        if isinstance(exception, ProviderApiError):
            return exception.status_code in self.config.retry_on_status_codes

        return False


class RetryableOperation:
    """
    Runs an awaitable factory with retry logic.

    Example:
        retry = RetryableOperation(RetryConfig(max_retries=5))
        response = await retry.execute(client.get, url)
    """

    def __init__(self, config: Optional[RetryConfig] = None):
        self.config = config or RetryConfig()
        self.backoff = ExponentialBackoff(self.config)

    async def execute(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """
        Execute function with retry logic.

        Raises:
            Exception: The last error once retries are exhausted or the
                error is not retryable.
        """
        self.backoff.reset()

        while True:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                if not self.backoff.should_retry(e):
                    raise

                retry_after = getattr(e, "retry_after", None)
                delay = self.backoff.calculate_delay(retry_after)
                logger.info(
                    f"Retrying {getattr(func, '__name__', 'operation')} in {delay:.2f}s "
                    f"(attempt {self.backoff.attempt}): {e}"
                )
                await asyncio.sleep(delay)
