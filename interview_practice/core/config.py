"""
Application settings management.

Settings are loaded from environment variables with .env file support.
All configuration is validated using Pydantic.
"""

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


LLMProvider = Literal["huggingface", "anthropic"]


class Settings(BaseSettings):
    """
    Application settings loaded from environment.

    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # ==========================================================================
    # Paths
    # ==========================================================================

    personas_dir: Path = Field(
        default=Path("config/personas"),
        description="Directory containing persona YAML files",
    )
    database_path: Path = Field(
        default=Path("data/practice.db"), description="Path to SQLite database file"
    )

    # ==========================================================================
    # Generation backend
    # ==========================================================================

    llm_provider: LLMProvider = Field(
        default="huggingface", description="Text-generation provider"
    )
    generation_model: Optional[str] = Field(
        default=None,
        description="Override the provider's default model id",
    )
    huggingface_api_key: Optional[str] = Field(
        default=None, description="Hugging Face inference API token"
    )
    anthropic_api_key: Optional[str] = Field(
        default=None, description="Anthropic API key"
    )
    generation_max_tokens: int = Field(
        default=200, ge=1, le=4096, description="Output token cap per reply"
    )
    generation_temperature: float = Field(
        default=0.8, ge=0.0, le=2.0, description="Sampling temperature"
    )
    generation_timeout: float = Field(
        default=30.0, gt=0.0, description="Generation request timeout in seconds"
    )

    # ==========================================================================
    # Conversation defaults
    # ==========================================================================

    response_word_limit: int = Field(
        default=100, ge=10, le=1000, description="Word ceiling requested from persona"
    )
    caller_label: str = Field(
        default="MSL", description="Transcript label for the practising caller"
    )
    mutation_retry_limit: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for a read-modify-write after a version conflict",
    )
    conceal_session_ownership: bool = Field(
        default=True,
        description="Report foreign sessions as not found (404) instead of 403",
    )
    recent_sessions_limit: int = Field(
        default=10, ge=1, le=100, description="Sessions listed in practice history"
    )

    # ==========================================================================
    # Server Configuration
    # ==========================================================================

    host: str = Field(default="127.0.0.1", description="Server host address")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")

    # ==========================================================================
    # Logging
    # ==========================================================================

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Minimum level for structlog and stdlib output"
    )
    log_dir: Path = Field(
        default=Path("logs"), description="Directory for per-process log files"
    )
    log_files_to_keep: int = Field(
        default=5, ge=1, le=100, description="Process log files retained, newest first"
    )


# Global settings instance
settings = Settings()
