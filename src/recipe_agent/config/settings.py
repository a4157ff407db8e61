"""
Settings - Pydantic models for type-safe configuration.

Every tunable of the engine lives here: the LLM endpoint, the browser,
the interpreter's timing constants and caps, and the bindings store.

Example:
    >>> from recipe_agent.config import load_config
    >>> settings = load_config()
    >>> settings.executor.wait_timeout_ms
    10000
"""

from typing import Literal, Optional
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseModel):
    """
    LLM provider settings.
    
    Attributes:
        model: Model name/identifier
        api_key: API key (falls back to OPENAI_API_KEY)
        base_url: OpenAI-compatible endpoint, without the /v1 suffix
        temperature: Sampling temperature; low keeps JSON output stable
        max_tokens: Maximum tokens in response
        timeout: Request timeout in seconds
        retry_attempts: Attempts for transient connection/rate-limit errors
        extractor_model: Optional cheaper model for job extraction
    """
    model: str = "gpt-4o-mini"
    api_key: Optional[SecretStr] = None
    base_url: str = "https://api.openai.com"
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    max_tokens: int = Field(default=4096, ge=1, le=128000)
    timeout: int = Field(default=120, ge=5, le=600)
    retry_attempts: int = Field(default=3, ge=1, le=10)
    extractor_model: Optional[str] = None


class BrowserSettings(BaseModel):
    """
    Browser automation settings.
    
    Attributes:
        headless: Run browser in headless mode
        browser_type: Playwright engine to launch
        timeout_ms: Default timeout for browser operations
        viewport_width: Browser viewport width in pixels
        viewport_height: Browser viewport height in pixels
        user_agent: Custom user agent string
    """
    headless: bool = True
    browser_type: Literal["chromium", "firefox", "webkit"] = "chromium"
    timeout_ms: int = Field(default=30000, ge=1000, le=300000)
    viewport_width: int = Field(default=1280, ge=320, le=3840)
    viewport_height: int = Field(default=720, ge=240, le=2160)
    user_agent: Optional[str] = None


class ExecutorSettings(BaseModel):
    """
    Interpreter timing and safety limits.
    
    Attributes:
        poll_interval_ms: How often WAIT_FOR re-checks its condition
        wait_timeout_ms: Budget for one WAIT_FOR
        loading_timeout_ms: Budget for the LOADING indicator to disappear
        inline_details_wait_ms: Pause used instead of waiting for inline details
        details_settle_ms: Extra pause once details are loaded
        extract_retries: Attempts at reading the details panel
        extract_retry_delay_ms: Pause between those attempts
        max_repeat_iterations: Hard cap on REPEAT iterations
        no_new_items_limit: Stale REPEAT iterations that count as "no more items"
        page_end_threshold_px: Slack when deciding the page is scrolled to the end
        progress_every: Log FOR_EACH progress every N items
    """
    poll_interval_ms: int = Field(default=300, ge=1)
    wait_timeout_ms: int = Field(default=10000, ge=1)
    loading_timeout_ms: int = Field(default=10000, ge=1)
    inline_details_wait_ms: int = Field(default=100, ge=0)
    details_settle_ms: int = Field(default=300, ge=0)
    extract_retries: int = Field(default=3, ge=1, le=10)
    extract_retry_delay_ms: int = Field(default=500, ge=0)
    max_repeat_iterations: int = Field(default=50, ge=1)
    no_new_items_limit: int = Field(default=3, ge=1)
    page_end_threshold_px: int = Field(default=50, ge=0)
    progress_every: int = Field(default=5, ge=1)


class BindingSettings(BaseModel):
    """
    Binding discovery, repair and storage settings.
    
    Attributes:
        store_path: JSON file holding persisted bindings
        max_age_hours: Stored bindings older than this are rediscovered
        min_snapshot_chars: Smaller DOM snapshots mean the page is not ready
        max_snapshot_chars: DOM text sent to the LLM for discovery
        max_repair_context_chars: DOM text sent to the LLM for a repair
    """
    store_path: str = "~/.recipe-agent/bindings.json"
    max_age_hours: float = Field(default=24.0, gt=0)
    min_snapshot_chars: int = Field(default=50, ge=0)
    max_snapshot_chars: int = Field(default=30000, ge=1000)
    max_repair_context_chars: int = Field(default=5000, ge=500)


class LoggingSettings(BaseModel):
    """
    Logging configuration.
    
    Attributes:
        level: Log level
        file: Log file path (None for console only)
        json_format: Use JSON format for the log file
    """
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    file: Optional[str] = None
    json_format: bool = False


class Settings(BaseSettings):
    """
    Root settings container.
    
    Loaded in this priority order (highest to lowest):
    1. Explicit values passed to constructor
    2. Environment variables (prefixed with RECIPE_AGENT__)
    3. Config file (YAML)
    4. Default values
    """
    
    model_config = SettingsConfigDict(
        env_prefix="RECIPE_AGENT__",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )
    
    llm: LLMSettings = Field(default_factory=LLMSettings)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    executor: ExecutorSettings = Field(default_factory=ExecutorSettings)
    bindings: BindingSettings = Field(default_factory=BindingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    
    debug: bool = False
    
    def merge_with(self, overrides: dict) -> "Settings":
        """
        Create a new Settings instance with overrides applied.
        
        Nested dictionaries are merged key by key, so `{"llm": {"model": x}}`
        keeps every other LLM setting.
        """
        current = self.model_dump()
        
        def deep_merge(base: dict, updates: dict) -> dict:
            for key, value in updates.items():
                if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                    deep_merge(base[key], value)
                else:
                    base[key] = value
            return base
        
        merged = deep_merge(current, overrides)
        return Settings(**merged)
