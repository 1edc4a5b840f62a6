# config.py
"""SME Portal configuration module.

Settings come from the process environment; a ``.env`` file in the working
directory is loaded first without overriding variables already set.

Usage:
    >>> from sme_portal.config import config
    >>> print(config.LLM_PROVIDER)
    openai
"""

import logging
import os
from urllib.parse import quote_plus

from dotenv import load_dotenv

load_dotenv()


class ConfigError(Exception):
    """A setting required by the selected backends is missing or invalid."""

    pass


class Config:
    """Snapshot of the environment taken at construction time.

    Attributes:
        LLM_PROVIDER: Which model provider adapter to use ("openai" or "anthropic").
        OPENAI_API_KEY: OpenAI API key.
        ANTHROPIC_API_KEY: Anthropic API key.
        SEARCH_BACKEND: Search capability used during discovery
            ("acknowledge" or "firecrawl").
        DATABASE_URL: Database connection string (built from DB_* parts when unset).
        DEPLOY_DOMAIN: Domain used to name simulated deployments.
    """

    def __init__(self) -> None:
        # Application environment
        self.APP_ENV = self._get_optional("APP_ENV", "dev")
        self.DEBUG = self._get_bool("DEBUG")
        self.LOG_LEVEL = self._get_optional("LOG_LEVEL", "INFO")
        self.LOG_FORMAT = self._get_optional(
            "LOG_FORMAT", "text" if self.is_development() else "json"
        )

        # Model provider configuration
        self.LLM_PROVIDER = self._get_optional("LLM_PROVIDER", "openai").lower()
        self.OPENAI_API_KEY = self._get_optional("OPENAI_API_KEY")
        self.OPENAI_MODEL = self._get_optional("OPENAI_MODEL", "gpt-4o")
        self.ANTHROPIC_API_KEY = self._get_optional("ANTHROPIC_API_KEY")
        self.ANTHROPIC_MODEL = self._get_optional(
            "ANTHROPIC_MODEL", "claude-sonnet-4-20250514"
        )
        self.LLM_TIMEOUT_SECONDS = float(
            self._get_optional("LLM_TIMEOUT_SECONDS", "120")
        )
        self.DISCOVERY_MAX_TOKENS = int(
            self._get_optional("DISCOVERY_MAX_TOKENS", "8000")
        )
        self.WEBSITE_MAX_TOKENS = int(self._get_optional("WEBSITE_MAX_TOKENS", "8000"))
        self.EMAIL_MAX_TOKENS = int(self._get_optional("EMAIL_MAX_TOKENS", "2000"))

        # Search capability configuration
        self.SEARCH_BACKEND = self._get_optional("SEARCH_BACKEND", "acknowledge").lower()
        self.FIRECRAWL_API_KEY = self._get_optional("FIRECRAWL_API_KEY")
        self.SEARCH_RESULT_LIMIT = int(self._get_optional("SEARCH_RESULT_LIMIT", "5"))

        # Database configuration
        self.DB_HOST = self._get_optional("DB_HOST", "localhost")
        self.DB_PORT = int(self._get_optional("DB_PORT", "5432"))
        self.DB_NAME = self._get_optional("DB_NAME", "sme_portal")
        self.DB_USER = self._get_optional("DB_USER", "postgres")
        self.DB_PASSWORD = self._get_optional("DB_PASSWORD", "postgres")
        self.DATABASE_URL = self._get_optional("DATABASE_URL") or self._build_database_url()
        self.DATABASE_POOL_SIZE = int(self._get_optional("DATABASE_POOL_SIZE", "5"))
        self.DATABASE_MAX_OVERFLOW = int(
            self._get_optional("DATABASE_MAX_OVERFLOW", "10")
        )
        self.DATABASE_ECHO = self._get_bool("DATABASE_ECHO")

        # Deployment configuration
        self.DEPLOY_DOMAIN = self._get_optional("DEPLOY_DOMAIN", "netlify.app")

        # API server configuration
        self.API_HOST = self._get_optional("API_HOST", "0.0.0.0")
        self.API_PORT = int(self._get_optional("API_PORT", "3001"))
        self.CORS_ORIGINS = [
            origin.strip()
            for origin in self._get_optional("CORS_ORIGINS", "*").split(",")
            if origin.strip()
        ]

    def _build_database_url(self) -> str:
        """Assemble a PostgreSQL URL from the individual DB_* settings."""
        return (
            f"postgresql://{quote_plus(self.DB_USER)}:{quote_plus(self.DB_PASSWORD)}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    @staticmethod
    def _get_optional(name: str, default: str = "") -> str:
        """Return ``os.environ[name]``, or ``default`` when the variable is unset."""
        return os.environ.get(name, default)

    @staticmethod
    def _get_bool(name: str) -> bool:
        """True only for ``true``/``1`` (any case); unset or anything else is False."""
        return os.environ.get(name, "").strip().lower() in ("true", "1")

    def validate_for_llm(self) -> None:
        """Validate configuration required for model calls.

        Raises:
            ConfigError: If the selected provider is unknown or has no API key.
        """
        if self.LLM_PROVIDER == "openai":
            if not self.OPENAI_API_KEY:
                raise ConfigError("OPENAI_API_KEY is required when LLM_PROVIDER=openai")
        elif self.LLM_PROVIDER == "anthropic":
            if not self.ANTHROPIC_API_KEY:
                raise ConfigError(
                    "ANTHROPIC_API_KEY is required when LLM_PROVIDER=anthropic"
                )
        else:
            raise ConfigError(f"Unknown LLM_PROVIDER: {self.LLM_PROVIDER}")

    def validate_for_search(self) -> None:
        """Validate configuration required for the discovery search capability.

        Raises:
            ConfigError: If the search backend is unknown or lacks credentials.
        """
        if self.SEARCH_BACKEND == "firecrawl":
            if not self.FIRECRAWL_API_KEY:
                raise ConfigError(
                    "FIRECRAWL_API_KEY is required when SEARCH_BACKEND=firecrawl"
                )
        elif self.SEARCH_BACKEND != "acknowledge":
            raise ConfigError(f"Unknown SEARCH_BACKEND: {self.SEARCH_BACKEND}")

    def get_database_connection_args(self) -> dict:
        """Pool keyword arguments for ``create_async_engine`` (PostgreSQL only)."""
        return dict(
            pool_size=self.DATABASE_POOL_SIZE,
            max_overflow=self.DATABASE_MAX_OVERFLOW,
            pool_pre_ping=True,
        )

    def is_production(self) -> bool:
        return self.APP_ENV.lower() in ("prod", "production")

    def is_development(self) -> bool:
        return self.APP_ENV.lower() in ("dev", "development")

    def get_log_level(self) -> int:
        """Numeric level for ``LOG_LEVEL``; unknown names fall back to INFO."""
        level = logging.getLevelName(self.LOG_LEVEL.upper())
        return level if isinstance(level, int) else logging.INFO


config = Config()
