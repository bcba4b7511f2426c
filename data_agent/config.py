"""
Application Configuration

Pydantic-based settings management using environment variables.
Supports nested configuration, validation, and caching.

Usage:
    from data_agent.config import get_settings

    settings = get_settings()
    print(settings.llm.model)
    print(settings.database.connection_params())
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal
from urllib.parse import unquote, urlparse

from dotenv import load_dotenv
from pydantic import AnyUrl, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
LOCAL_BASE_URL = "http://localhost:11434"


class LLMSettings(BaseSettings):
    """LLM provider configuration."""

    provider: Literal["openai", "openrouter", "local"] = Field(
        default="openrouter", description="Completion backend"
    )
    api_key: str | None = Field(
        None,
        description="API key for the selected provider",
        min_length=20,
    )
    model: str = Field(
        default="tngtech/deepseek-r1t-chimera:free",
        description="Model identifier sent with every completion request",
    )
    base_url: str | None = Field(
        None,
        description=(
            "Override for the provider endpoint. Defaults to the OpenRouter API "
            "for openrouter and to a local Ollama server for local."
        ),
    )

    temperature: float = Field(
        default=0.0,
        ge=0.0,
        le=2.0,
        description="Temperature for LLM responses (0.0 = deterministic)",
    )
    max_tokens: int = Field(
        default=1000,
        gt=0,
        le=16000,
        description="Maximum tokens per LLM response",
    )
    timeout: int = Field(
        default=30,
        gt=0,
        description="Request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("api_key", mode="before")
    @classmethod
    def normalize_api_key(cls, v: str | None) -> str | None:
        """Treat empty strings as missing."""
        if v == "":
            return None
        return v

    @model_validator(mode="after")
    def validate_provider_key(self) -> "LLMSettings":
        """Ensure an API key is set for hosted providers."""
        if self.provider in {"openai", "openrouter"} and not self.api_key:
            raise ValueError(
                f"API key required for {self.provider} provider. Set LLM_API_KEY"
            )
        if self.provider == "openai" and not self.api_key.startswith("sk-"):
            raise ValueError("OpenAI API key must start with 'sk-'")
        return self

    @property
    def resolved_base_url(self) -> str | None:
        """Endpoint the selected provider talks to."""
        if self.base_url:
            return self.base_url.rstrip("/")
        if self.provider == "openrouter":
            return OPENROUTER_BASE_URL
        if self.provider == "local":
            return LOCAL_BASE_URL
        return None


class DatabaseSettings(BaseSettings):
    """Target database configuration."""

    url: AnyUrl | None = Field(
        None,
        description="Connection URL; takes precedence over the individual fields",
    )
    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, gt=0, le=65535, description="Database port")
    name: str = Field(default="chinook", description="Database name")
    user: str = Field(default="postgres", description="Database user")
    password: str = Field(default="", description="Database password")
    ssl: bool = Field(default=False, description="Require SSL for connections")
    pool_size: int = Field(
        default=5,
        gt=0,
        le=20,
        description="Database connection pool size",
    )
    statement_timeout: int = Field(
        default=30,
        gt=0,
        le=300,
        description="Per-statement timeout in seconds",
    )
    excluded_schemas: list[str] = Field(
        default_factory=list,
        description="Schemas hidden from the catalog in addition to system schemas",
    )

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("url", mode="before")
    @classmethod
    def normalize_url(cls, v: str | AnyUrl | None) -> str | AnyUrl | None:
        """Treat empty strings as missing."""
        if v == "":
            return None
        return v

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: AnyUrl | None) -> AnyUrl | None:
        """Only PostgreSQL URLs are supported."""
        if v is None:
            return v
        parsed = urlparse(str(v))
        scheme = parsed.scheme.split("+")[0].lower() if parsed.scheme else ""
        if scheme not in {"postgres", "postgresql"}:
            raise ValueError("DATABASE_URL must use the postgresql scheme.")
        if not parsed.hostname:
            raise ValueError("DATABASE_URL must include a host.")
        return v

    def connection_params(self) -> dict[str, Any]:
        """Resolve host/port/database/user/password from the URL or fields."""
        if self.url is None:
            return {
                "host": self.host,
                "port": self.port,
                "database": self.name,
                "user": self.user,
                "password": self.password,
            }
        parsed = urlparse(str(self.url))
        return {
            "host": parsed.hostname,
            "port": parsed.port or 5432,
            "database": parsed.path.lstrip("/") or self.name,
            "user": unquote(parsed.username) if parsed.username else self.user,
            "password": unquote(parsed.password) if parsed.password else self.password,
        }


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Application log level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )
    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Log timestamp format",
    )
    file: Path | None = Field(
        default=None,
        description="Optional log file path (None = stdout only)",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore",
    )

    def configure(self, level: str | None = None) -> None:
        """Configure Python logging with these settings; ``level`` overrides ``self.level``."""
        handlers: list[logging.Handler] = [logging.StreamHandler()]

        if self.file:
            self.file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.file))

        logging.basicConfig(
            level=getattr(logging, level or self.level),
            format=self.format,
            datefmt=self.date_format,
            handlers=handlers,
            force=True,
        )


class PipelineSettings(BaseSettings):
    """Question pipeline limits and behavior."""

    max_conversation_turns: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Turns kept per conversation id (oldest evicted first).",
    )
    max_conversations: int = Field(
        default=1000,
        ge=1,
        le=1_000_000,
        description="Conversation ids kept in memory (least recently used evicted first).",
    )
    max_returned_rows: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Rows returned to the caller; rowCount keeps the true total.",
    )
    max_question_length: int = Field(
        default=1000,
        ge=1,
        le=10000,
        description="Maximum accepted question length in characters.",
    )
    answer_sample_rows: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Rows shown to the model when composing the answer.",
    )
    prompt_full_schema_max_tables: int = Field(
        default=30,
        ge=1,
        le=500,
        description="Schemas up to this many tables are embedded in full.",
    )
    prompt_focus_tables: int = Field(
        default=8,
        ge=1,
        le=50,
        description="Ranked tables embedded when the schema is larger.",
    )
    empty_result_note_enabled: bool = Field(
        default=True,
        description="Look up the range of the filtered column when a year question returns no rows.",
    )
    read_only: bool = Field(
        default=True,
        description="Refuse statements other than queries.",
    )
    fallback_sql: str | None = Field(
        default=None,
        description=(
            "Query run when no usable SQL is generated. When unset, the most "
            "relevant table is sampled with LIMIT 10."
        ),
    )
    aliases_path: Path | None = Field(
        default=None,
        description="YAML file replacing the built-in alias table.",
    )

    model_config = SettingsConfigDict(
        env_prefix="PIPELINE_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("fallback_sql", mode="before")
    @classmethod
    def normalize_fallback_sql(cls, v: str | None) -> str | None:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class Settings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    Settings are nested by domain (llm, database, pipeline, logging).

    Environment Variables:
        ENVIRONMENT: Deployment environment (development, staging, production)
        APP_NAME: Application name for logging
        DEBUG: Log at DEBUG level whatever LOG_LEVEL says
        API_HOST: API server host
        API_PORT: API server port
        LLM_*: LLM provider configuration (see LLMSettings)
        DATABASE_*: Target database configuration (see DatabaseSettings)
        PIPELINE_*: Pipeline limits (see PipelineSettings)
        LOG_*: Logging configuration (see LoggingSettings)

    Example:
        >>> settings = get_settings()
        >>> settings.llm.provider
        'openrouter'
        >>> settings.pipeline.max_returned_rows
        100
    """

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    app_name: str = Field(
        default="Data Agent",
        description="Application name",
    )
    debug: bool = Field(
        default=False,
        description="Log at DEBUG level whatever LOG_LEVEL says",
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=8000,
        gt=0,
        le=65535,
        description="API server port",
    )

    llm: LLMSettings = Field(default_factory=LLMSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def configure_logging(self) -> "Settings":
        """Configure logging when settings are loaded."""
        self.logging.configure(level="DEBUG" if self.debug else None)
        return self

    def model_post_init(self, __context) -> None:
        """Log configuration on initialization."""
        logger = logging.getLogger(__name__)
        logger.info(
            f"Settings loaded for {self.app_name} ({self.environment})",
            extra={
                "environment": self.environment,
                "debug": self.debug,
                "llm_provider": self.llm.provider,
                "llm_model": self.llm.model,
                "database_pool_size": self.database.pool_size,
            },
        )


_DOTENV_PATH = Path(__file__).resolve().parents[1] / ".env"


def _apply_dotenv_precedence() -> None:
    env_source = os.getenv("DATA_AGENT_ENV_SOURCE", "dotenv").lower()
    if env_source not in {"dotenv", "envfile", "file"}:
        return
    if _DOTENV_PATH.exists():
        load_dotenv(_DOTENV_PATH, override=True)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are loaded once per process; call clear_settings_cache() to
    reload after changing environment variables.
    """
    _apply_dotenv_precedence()
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (used by tests)."""
    get_settings.cache_clear()
