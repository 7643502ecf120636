"""Configuration management for parley."""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from parley.errors import ConfigurationError
from parley.logging_utils import configure_logging


class Settings(BaseSettings):
    """SDK settings loaded from ``PARLEY_*`` environment variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="PARLEY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    base_url: str = Field(default="https://api.openai.com", description="Provider base URL")
    api_key: str | None = Field(default=None, description="Static bearer token; unset means per-turn authorization")
    responses_path: str = Field(default="/v1/responses", description="Path of the generation endpoint")
    timeout_seconds: float = Field(default=60.0, gt=0, description="Request timeout in seconds")
    default_headers: dict[str, str] = Field(default_factory=dict, description="Headers sent with every request")
    log_level: str = Field(default="INFO", description="Log level")

    @field_validator("base_url")
    @classmethod
    def _require_scheme(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        return value.upper()


def get_settings(**overrides: object) -> Settings:
    """Load settings and configure logging.

    Args:
        overrides: Explicit values that take precedence over the environment.

    Returns:
        Settings instance
    """
    try:
        settings = Settings(**overrides)  # type: ignore[arg-type]
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc

    configure_logging(level=settings.log_level)
    return settings
