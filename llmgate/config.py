"""Configuration management using pydantic-settings.

This module provides configuration management for LLMGate using Pydantic
settings, with support for environment variables and .env files.

Configuration Sources (in order of precedence):
    1. Direct instantiation parameters
    2. Environment variables (prefixed with LLMGATE_)
    3. .env file in project root

Available Settings:
    - Provider Defaults: default_provider, default_model, request_timeout
    - Tool Execution: max_tool_iterations, tool_timeout
    - Retry Behavior: retry_max_attempts, retry_min_wait, retry_max_wait, retry_multiplier
    - Token Counting: token_encoding
    - Logging: log_level, log_file_level, log_dir, log_file_name, log_json_format, log_max_bytes, log_backup_count
    - Credentials: openai_api_key, openai_api_base, anthropic_api_key, anthropic_api_base
    - Tracing: enable_tracing, otel_exporter_endpoint

Example:
    >>> from llmgate.config import ProviderConfig, settings
    >>>
    >>> print(settings.default_model)
    'gpt-4o-mini'
    >>>
    >>> config = ProviderConfig.from_settings("anthropic")
"""

from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Find the project root (where .env file is located)
_project_root = Path(__file__).parent.parent
_env_file = _project_root / ".env"

ProviderName = Literal["openai", "anthropic", "noop"]


class LLMGateSettings(BaseSettings):
    """Global settings for LLMGate.

    Configuration values can be set via:
    1. Environment variables (e.g., LLMGATE_DEFAULT_MODEL)
    2. .env file in the project root
    3. Direct instantiation with parameters
    """

    model_config = SettingsConfigDict(
        env_prefix="LLMGATE_",
        env_file=_env_file,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Provider defaults
    default_provider: ProviderName = "openai"
    default_model: str = "gpt-4o-mini"
    request_timeout: Annotated[float, Field(gt=0)] = 60.0

    # Tool execution settings
    max_tool_iterations: Annotated[int, Field(gt=0)] = 10
    tool_timeout: float | None = None  # None disables the per-call limit

    # Retry settings
    retry_max_attempts: Annotated[int, Field(gt=0)] = 3
    retry_min_wait: Annotated[float, Field(ge=0)] = 2
    retry_max_wait: Annotated[float, Field(ge=0)] = 30
    retry_multiplier: Annotated[float, Field(ge=0)] = 1

    # Token counting
    token_encoding: str = "cl100k_base"

    # Logging settings
    log_level: str = "INFO"
    log_file_level: str = "DEBUG"
    log_dir: Path | None = None  # None means use default 'logs' directory
    log_file_name: str = "llmgate.log"
    log_json_format: bool = False
    log_max_bytes: int = 10485760  # 10MB
    log_backup_count: int = 5

    # Credentials (can also be set via provider-specific env vars)
    openai_api_key: str | None = None
    openai_api_base: str | None = None
    anthropic_api_key: str | None = None
    anthropic_api_base: str | None = None

    # OpenTelemetry tracing settings
    enable_tracing: bool = False
    otel_exporter_endpoint: str | None = None


class ProviderConfig(BaseModel):
    """Connection parameters for one model backend.

    Built once at start-up and shared read-only by every exchange.
    """

    model_config = ConfigDict(frozen=True)

    provider: Annotated[ProviderName, Field(description="Backend identifier")]
    model: Annotated[str, Field(description="Model name understood by the backend")]
    api_key: Annotated[str | None, Field(default=None, repr=False, description="Credential for the backend")]
    api_base: Annotated[str | None, Field(default=None, description="Override for the backend base URL")]
    timeout: Annotated[float, Field(default=60.0, gt=0, description="Per-request timeout in seconds")]

    @classmethod
    def from_settings(
        cls,
        provider: ProviderName | None = None,
        model: str | None = None,
        source: LLMGateSettings | None = None,
    ) -> "ProviderConfig":
        """Build a config from the global settings (or ``source``)."""
        source = source or settings
        provider = provider or source.default_provider
        return cls(
            provider=provider,
            model=model or source.default_model,
            api_key=getattr(source, f"{provider}_api_key", None),
            api_base=getattr(source, f"{provider}_api_base", None),
            timeout=source.request_timeout,
        )


# Global settings instance
settings = LLMGateSettings()


def get_settings() -> LLMGateSettings:
    """Get the global settings instance.

    Returns:
        LLMGateSettings: The global settings instance
    """
    return settings


def reload_settings() -> LLMGateSettings:
    """Reload settings from environment and .env file.

    Returns:
        LLMGateSettings: A new settings instance
    """
    global settings
    settings = LLMGateSettings()
    return settings
