"""
Configuration Management for the CS Tutor API

This module provides centralized configuration using Pydantic Settings.
All configuration is loaded from environment variables with sensible defaults.

Usage:
    from cs_tutor.config import settings

    limit = settings.free_daily_limit
    timeout = settings.request_timeout_seconds
"""

from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


# Type aliases for clarity
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LLMProvider = Literal["openai", "anthropic"]
Environment = Literal["development", "production", "testing"]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Create a .env file in the project root with your configuration:
        OPENAI_API_KEY=sk-...
        DATABASE_URL=postgresql://...
        JWT_SECRET_KEY=...

    Attributes:
        openai_api_key: OpenAI API key (required when provider is openai)
        anthropic_api_key: Anthropic API key (required when provider is anthropic)
        app_llm_provider: Which provider serves tutor calls

        llm_model: Model identifier sent to the provider
        llm_max_output_tokens: Output token cap per model call
        llm_timeout_seconds: Per-call HTTP timeout
        llm_max_retries: Retry attempts for rate-limit/timeout errors

        request_timeout_ms: Wall-clock budget for single-shot generation
        stream_chunk_size: Characters per streamed delta
        stream_chunk_delay_ms: Pause between streamed deltas

        rate_limit_window_ms: Fixed window length per key
        rate_limit_max: Requests admitted per window per key
        rate_limit_sweep_seconds: Interval of the stale-key sweep

        free_daily_limit: Tutor turns per UTC day on the free plan
        agent_max_steps: Model calls allowed in one agent loop
        progress_window_days: Look-back for the progress snapshot tool

        database_url: SQLAlchemy URL; unset means no persistent store
        jwt_secret_key: Secret used to verify access tokens
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===========================================
    # API Keys
    # ===========================================
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None

    # ===========================================
    # LLM Provider
    # ===========================================
    app_llm_provider: LLMProvider = "openai"
    llm_model: str = "gpt-4o-mini"
    anthropic_model: str = "claude-sonnet-4-5"
    llm_max_output_tokens: int = 800
    llm_timeout_seconds: int = 60
    llm_max_retries: int = 3

    # ===========================================
    # Environment
    # ===========================================
    env: Environment = "development"
    debug: bool = True

    # ===========================================
    # Logging Configuration
    # ===========================================
    log_level: LogLevel = "INFO"
    log_to_file: bool = True
    log_file_path: str = "logs/cs_tutor.log"
    log_format: Literal["json", "text"] = "json"

    # Verbose logging options
    log_llm_prompts: bool = False

    # ===========================================
    # Delivery Configuration
    # ===========================================
    request_timeout_ms: int = 25_000
    stream_chunk_size: int = 28
    stream_chunk_delay_ms: int = 22

    # ===========================================
    # Rate Limiting
    # ===========================================
    rate_limit_window_ms: int = 60_000
    rate_limit_max: int = 30
    rate_limit_sweep_seconds: int = 60

    # ===========================================
    # Entitlements & Agent
    # ===========================================
    free_daily_limit: int = 5
    agent_max_steps: int = 4
    progress_window_days: int = 14

    # ===========================================
    # Database
    # ===========================================
    database_url: Optional[str] = None
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 30

    # ===========================================
    # Auth
    # ===========================================
    jwt_secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"

    # ===========================================
    # Server Configuration
    # ===========================================
    host: str = "0.0.0.0"
    port: int = 8000

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env == "production"

    @property
    def request_timeout_seconds(self) -> float:
        return self.request_timeout_ms / 1000

    @property
    def stream_chunk_delay_seconds(self) -> float:
        return self.stream_chunk_delay_ms / 1000

    @property
    def rate_limit_window_seconds(self) -> float:
        return self.rate_limit_window_ms / 1000

    @property
    def llm_configured(self) -> bool:
        """Whether the active provider has an API key."""
        if self.app_llm_provider == "anthropic":
            return bool(self.anthropic_api_key)
        return bool(self.openai_api_key)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.

    Returns:
        Settings instance loaded from environment
    """
    return Settings()


# Singleton instance for easy import
settings = get_settings()
