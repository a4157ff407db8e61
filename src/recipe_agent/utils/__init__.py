"""
Utilities - logging setup and retry helpers.
"""

from recipe_agent.utils.logging import setup_logging, get_logger
from recipe_agent.utils.retry import RetryConfig, retry_async

__all__ = [
    "setup_logging",
    "get_logger",
    "RetryConfig",
    "retry_async",
]
