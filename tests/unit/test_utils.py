"""
Tests for retry and logging utilities.
"""

import logging

import pytest
from rich.logging import RichHandler

from recipe_agent.exceptions import LLMConnectionError, RateLimitError
from recipe_agent.utils import RetryConfig, retry_async, setup_logging


class Flaky:
    """Fails with the queued errors, then returns "ok"."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self, *args, **kwargs):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


class TestRetryAsync:
    """Test retry_async."""

    @pytest.mark.asyncio
    async def test_retries_configured_errors(self):
        func = Flaky(LLMConnectionError("reset"), LLMConnectionError("reset"))
        retries = []
        config = RetryConfig(
            max_attempts=3,
            initial_delay_ms=0,
            retry_on=(LLMConnectionError,),
            on_retry=lambda attempt, error: retries.append(attempt),
        )

        assert await retry_async(func, config) == "ok"
        assert func.calls == 3
        assert retries == [1, 2]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        func = Flaky(LLMConnectionError("a"), LLMConnectionError("b"))
        config = RetryConfig(max_attempts=2, initial_delay_ms=0, retry_on=(LLMConnectionError,))

        with pytest.raises(LLMConnectionError, match="b"):
            await retry_async(func, config)

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self):
        func = Flaky(ValueError("bug"))
        config = RetryConfig(max_attempts=3, initial_delay_ms=0, retry_on=(LLMConnectionError,))

        with pytest.raises(ValueError):
            await retry_async(func, config)
        assert func.calls == 1

    @pytest.mark.asyncio
    async def test_retry_after_is_capped(self):
        func = Flaky(RateLimitError("slow down", retry_after=60))
        config = RetryConfig(max_attempts=2, initial_delay_ms=0, max_delay_ms=1, retry_on=(RateLimitError,))

        assert await retry_async(func, config) == "ok"


class TestSetupLogging:
    """Test setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_console_handler(self):
        setup_logging("warning")

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert any(isinstance(h, RichHandler) for h in root.handlers)
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "run.log"
        setup_logging("INFO", log_file=str(log_file), json_format=True)

        logging.getLogger("recipe_agent.test").info("hello")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert '"message": "hello"' in log_file.read_text()
