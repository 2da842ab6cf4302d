"""Configuration management for llm-reviewer."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # AI Provider Configuration
    openai_api_key: str | None = Field(None, description="OpenAI API key")
    anthropic_api_key: str | None = Field(None, description="Anthropic API key")

    # Default AI model settings
    default_model: str = Field("gpt-4o", description="OpenAI model to use")
    anthropic_model: str = Field(
        "claude-3-5-sonnet-20241022", description="Anthropic model to use"
    )
    temperature: float = Field(0.1, description="AI model temperature")
    max_tokens: int = Field(4000, description="Maximum tokens for AI responses")

    # Application Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        "INFO", description="Logging level"
    )
    debug: bool = Field(False, description="Enable debug mode")

    # Personas
    persona_dir: str = Field(
        "configs/personas", description="Directory holding persona YAML files"
    )
    default_persona: str = Field("architect", description="Persona used when none is given")

    # Language server
    lsp_command: list[str] = Field(
        default_factory=lambda: ["pylsp"],
        description="Command line that starts the language server",
    )
    lsp_request_timeout: float = Field(
        60.0, description="Seconds to wait for one language server response (0 disables)"
    )

    # Review session
    review_timeout: float = Field(300, description="Review session deadline in seconds")
    max_rounds: int = Field(10, description="Maximum agent rounds per review")
    rate_limit_retries: int = Field(
        2, description="Extra attempts after the model back-end rate limits us"
    )
    rate_limit_backoff: float = Field(
        30.0, description="Backoff step in seconds between rate limited attempts"
    )


# Global settings instance
settings = Settings()
