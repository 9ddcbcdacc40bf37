"""Configuration management with pydantic-settings for the issue bridge.

Loads from (in order of precedence):
1. Environment variables (highest priority)
2. .env file in the working directory
3. Default values (lowest priority)

Secrets (Linear API key, GitHub token, webhook secret) are SecretStr so they
never appear in reprs or logs. The config is frozen after load.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


__all__ = [
    "DEFAULT_GITHUB_API_URL",
    "DEFAULT_LINEAR_API_URL",
    "BridgeConfig",
    "ConfigurationError",
    "get_config",
    "reset_config",
]

DEFAULT_LINEAR_API_URL = "https://api.linear.app/graphql"
DEFAULT_GITHUB_API_URL = "https://api.github.com"

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ConfigurationError(Exception):
    """Raised when required settings are missing or the remote side is misconfigured."""


def validate_repo(value: str) -> str:
    """Strip a repository reference; non-empty values must be owner/repo."""
    value = value.strip()
    if value:
        owner, sep, repo = value.partition("/")
        if not sep or not owner or not repo or "/" in repo:
            raise ValueError(f"expected owner/repo, got {value!r}")
    return value


class BridgeConfig(BaseSettings):
    """Configuration for the Linear issue bridge.

    Attributes:
        linear_api_key: Linear personal API key, sent as the Authorization header
        linear_team_key: Team key (issue prefix), e.g. MIR; stored upper-cased
        linear_api_url: Linear GraphQL endpoint
        github_webhook_secret: Shared secret for X-Hub-Signature-256 verification
        github_token: Token for GitHub REST listings (optional, backfill only)
        github_repo: Repository to backfill in owner/repo format
        github_api_url: GitHub REST API base URL
        backfill_git_dir: Local clone scanned for commit messages during backfill
        cache_ttl_seconds: Freshness window of the issue cache
        request_timeout_seconds: Upper bound for one issue lookup in the serving path
        host: Bind address for the HTTP server
        port: Port for the HTTP server
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format (json for production, text for development)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        validate_default=True,
        frozen=True,
        extra="ignore",
    )

    # Linear
    linear_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Linear API key for GraphQL requests",
    )
    linear_team_key: str = Field(
        default="",
        description="Linear team key used as the identifier prefix (e.g. MIR)",
    )
    linear_api_url: str = Field(
        default=DEFAULT_LINEAR_API_URL,
        description="Linear GraphQL endpoint",
    )

    # GitHub
    github_webhook_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Shared secret configured on the GitHub webhook",
    )
    github_token: SecretStr = Field(
        default=SecretStr(""),
        description="GitHub token for bulk listings; requests are unauthenticated when empty",
    )
    github_repo: str = Field(
        default="",
        description="Repository to backfill (owner/repo)",
    )
    github_api_url: str = Field(
        default=DEFAULT_GITHUB_API_URL,
        description="GitHub REST API base URL",
    )
    backfill_git_dir: Optional[Path] = Field(
        default=None,
        description="Local git clone scanned for commit messages; skipped when unset",
    )

    # Serving
    cache_ttl_seconds: float = Field(
        default=300.0,
        gt=0,
        le=86400,
        description="Issue cache freshness window in seconds",
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Timeout wrapping a single issue lookup",
    )
    host: str = Field(default="0.0.0.0", description="HTTP bind address")
    port: int = Field(default=8080, ge=1, le=65535, description="HTTP port")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="json or text")

    @field_validator("linear_team_key")
    @classmethod
    def normalize_team_key(cls, v: str) -> str:
        """Team keys compare upper-case everywhere."""
        return v.strip().upper()

    @field_validator("github_repo")
    @classmethod
    def validate_github_repo(cls, v: str) -> str:
        """Require owner/repo format when a repository is set."""
        return validate_repo(v)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Accept standard level names only."""
        upper = v.upper()
        if upper not in _VALID_LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(_VALID_LOG_LEVELS)}")
        return upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Accept json or text."""
        lower = v.lower()
        if lower not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be 'json' or 'text'")
        return lower

    def require(self, *names: str) -> None:
        """Raise ConfigurationError listing every named setting that is empty.

        Args:
            *names: Field names that the calling entry point cannot run without

        Raises:
            ConfigurationError: If any of the named settings is unset
        """
        missing = []
        for name in names:
            value = getattr(self, name)
            if isinstance(value, SecretStr):
                value = value.get_secret_value()
            if not value:
                missing.append(name.upper())
        if missing:
            raise ConfigurationError(f"{', '.join(missing)} required")


@lru_cache(maxsize=1)
def get_config() -> BridgeConfig:
    """Get global configuration singleton.

    First call loads from environment + .env file, subsequent calls return
    the cached instance.

    Raises:
        ValidationError: If configuration values are invalid.
    """
    return BridgeConfig()


def reset_config() -> None:
    """Reset configuration singleton (tests only)."""
    get_config.cache_clear()
