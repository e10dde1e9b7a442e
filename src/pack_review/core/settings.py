"""Application settings and configuration.

This module defines all configuration options for the Pack Review service.
Settings are loaded from environment variables with sensible defaults.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or a ``.env`` file.
    """

    # Application metadata
    app_name: str = Field(default="Pack Review", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Database configuration
    database_url: str = Field(default="sqlite:///./pack_review.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Binary storage for uploaded and extracted files
    storage_root: Path = Field(default=Path("./files"), alias="STORAGE_ROOT")

    # Git hosting (GitHub) integration
    github_api_url: str = Field(default="https://api.github.com", alias="GITHUB_API_URL")
    github_raw_url: str = Field(
        default="https://raw.githubusercontent.com",
        alias="GITHUB_RAW_URL",
    )
    github_org_name: str = Field(default="Faithful-Mods", alias="GITHUB_ORG_NAME")
    github_repo_name: str = Field(default="Resources-Default", alias="GITHUB_REPO_NAME")
    github_http_timeout_seconds: float = Field(
        default=10.0,
        alias="GITHUB_HTTP_TIMEOUT_SECONDS",
    )
    github_max_retries: int = Field(default=3, alias="GITHUB_MAX_RETRIES")
    github_backoff_seconds: float = Field(default=0.5, alias="GITHUB_BACKOFF_SECONDS")

    # Fork creation polls the host until the fork is ready
    fork_poll_interval_seconds: float = Field(default=5.0, alias="FORK_POLL_INTERVAL_SECONDS")
    fork_poll_max_attempts: int = Field(default=24, alias="FORK_POLL_MAX_ATTEMPTS")

    # Background reconciliation of contributor forks
    fork_sync_enabled: bool = Field(default=False, alias="FORK_SYNC_ENABLED")
    fork_sync_interval_seconds: float = Field(
        default=300.0,
        alias="FORK_SYNC_INTERVAL_SECONDS",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url


settings = Settings()  # type: ignore[call-arg]
