"""
Retry utilities with exponential backoff.

Used around LLM round trips, where connection drops and rate limits are
common and worth a second attempt.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """
    Configuration for retry behavior.
    
    Attributes:
        max_attempts: Maximum number of attempts
        initial_delay_ms: Initial delay before first retry
        max_delay_ms: Maximum delay between retries
        backoff_multiplier: Multiplier for exponential backoff
        retry_on: Exception types to retry on
        on_retry: Callback function called on each retry
    """
    max_attempts: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 30000
    backoff_multiplier: float = 2.0
    retry_on: Tuple[Type[Exception], ...] = (Exception,)
    on_retry: Optional[Callable[[int, Exception], None]] = None


async def retry_async(
    func: Callable[..., Awaitable[T]],
    config: RetryConfig,
    *args: Any,
    **kwargs: Any,
) -> T:
    """
    Await `func(*args, **kwargs)`, retrying on the configured exceptions.
    
    An exception carrying a `retry_after` attribute (seconds) overrides the
    backoff delay for that attempt, capped by max_delay_ms.
    
    Raises:
        The last exception if every attempt fails
    """
    last_exception: Optional[Exception] = None
    delay_ms = float(config.initial_delay_ms)
    
    for attempt in range(config.max_attempts):
        try:
            return await func(*args, **kwargs)
        except config.retry_on as e:
            last_exception = e
            
            if attempt == config.max_attempts - 1:
                break
            
            wait_ms = delay_ms
            retry_after = getattr(e, "retry_after", None)
            if retry_after:
                wait_ms = min(retry_after * 1000, config.max_delay_ms)
            
            logger.warning(
                f"Attempt {attempt + 1}/{config.max_attempts} failed: {e}. "
                f"Retrying in {int(wait_ms)}ms..."
            )
            
            if config.on_retry:
                config.on_retry(attempt + 1, e)
            
            await asyncio.sleep(wait_ms / 1000)
            delay_ms = min(delay_ms * config.backoff_multiplier, config.max_delay_ms)
    
    raise last_exception  # type: ignore
