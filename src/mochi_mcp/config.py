"""Server configuration."""

import logging
import sys
from collections.abc import Callable
from functools import lru_cache
from typing import Any, Literal

import structlog
from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mochi_mcp.exceptions import ConfigurationError

DEFAULT_API_BASE_URL = "https://app.mochi.cards/api"


class Settings(BaseSettings):
    """Mochi MCP server settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Mochi API
    MOCHI_API_KEY: str
    MOCHI_API_BASE_URL: str = DEFAULT_API_BASE_URL
    MOCHI_REQUEST_TIMEOUT: float = 30.0

    # Paginated scans (list/search)
    MOCHI_SCAN_TIMEOUT: float = 45.0
    MOCHI_PAGE_DELAY: float = 1.5

    # Mutations
    MOCHI_ALLOW_DECK_DELETE: bool = False
    MOCHI_TOKEN_EXPIRY_MINS: int = 10

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["console", "json"] = "console"

    @field_validator("MOCHI_API_KEY", mode="after")
    @classmethod
    def require_api_key(cls, value: str) -> str:
        """Reject a blank API key."""
        value = value.strip()
        if not value:
            msg = (
                "MOCHI_API_KEY environment variable is required. "
                "Get your API key from Mochi app settings."
            )
            raise ValueError(msg)
        return value

    @field_validator("MOCHI_API_BASE_URL", mode="after")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        """Normalize the base URL so paths can be appended."""
        return value.rstrip("/")


def configure_logging(level: str = "INFO", fmt: str = "console") -> None:
    """Configure structured logging with structlog.

    Output goes to stderr: stdout is reserved for the MCP stdio transport.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    processors: list[Callable[..., Any]] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]


def load_settings() -> Settings:
    """Load settings, turning validation failures into a ``ConfigurationError``."""
    try:
        return get_settings()
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e
