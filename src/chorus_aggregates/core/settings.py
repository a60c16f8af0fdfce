"""Application settings and configuration.

This module defines all configuration options for the aggregate engine.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Database configuration
    database_url: str = Field(
        default="sqlite:///./chorus_aggregates.db",
        alias="DATABASE_URL",
    )
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Vote classification: a like whose score equals this value is an upvote,
    # anything else counts as a downvote.
    upvote_score: int = Field(default=1, alias="UPVOTE_SCORE")

    # Comments only bump newest_comment_time_necro while the post is younger
    # than this window.
    necro_bump_window_hours: int = Field(default=48, alias="NECRO_BUMP_WINDOW_HOURS")

    # Attach the flush listener to the module-level SessionLocal.
    install_triggers: bool = Field(default=True, alias="INSTALL_TRIGGERS")

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

        Returns:
            Database URL compatible with synchronous database drivers
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides.

        Returns:
            The active database URL (test database if in testing mode, otherwise production)
        """
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url


settings = Settings()
