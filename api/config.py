"""Settings management for RepoWatch.

This module provides centralized configuration management using pydantic-settings.
All configuration is loaded from environment variables with sensible defaults.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.indexing.models import MonitorConfig
from integrations.github.client import GitHubClientConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Attributes:
        app_name: Name of the application.
        app_version: Application version.
        debug: Enable debug mode.
        log_level: Logging level.
        log_json: Render logs as JSON lines.

        database_url: SQLAlchemy async database URL.
        redis_url: Redis URL for the work queues and the cursor cache.

        github_token: Personal access token.
        github_app_id: GitHub App ID.
        github_private_key: GitHub App private key.
        github_installation_id: GitHub App installation ID.

        fetch_queue_name: Queue of fetch-phase jobs.
        persist_queue_name: Queue of persist-phase jobs.
        results_key: Redis list carrying worker results.

        sweep_interval_seconds: Delay between sweeps.
        seed_org: Organization registered on startup, empty to disable.
        seed_repo: Repository registered on startup.
        embedded_worker: Run the persist consumer inside the API process.

        cors_origins: Allowed CORS origins.
        api_prefix: API route prefix.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = Field(default="RepoWatch API", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool = Field(default=False, description="Render logs as JSON")

    # Storage settings
    database_url: str = Field(
        default="sqlite+aiosqlite:///./repowatch.db",
        description="SQLAlchemy async database URL",
    )
    database_echo: bool = Field(default=False, description="Log emitted SQL")
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL")

    # GitHub integration
    github_token: str | None = Field(default=None, description="GitHub personal access token")
    github_app_id: int | None = Field(default=None, description="GitHub App ID")
    github_private_key: str | None = Field(default=None, description="GitHub App private key")
    github_installation_id: int | None = Field(default=None, description="GitHub App installation ID")
    github_base_url: str = Field(default="https://api.github.com", description="GitHub API base URL")
    github_timeout: float = Field(default=30.0, description="GitHub request timeout in seconds")
    github_max_retries: int = Field(default=3, description="GitHub request attempts")
    github_per_page: int = Field(default=100, ge=1, le=100, description="Commits per GitHub page")

    # Queue and cache settings
    fetch_queue_name: str = Field(default="repowatch:fetch", description="Fetch job queue")
    persist_queue_name: str = Field(default="repowatch:persist", description="Persist job queue")
    results_key: str = Field(default="repowatch:results", description="Worker result list")
    cache_ttl_seconds: int | None = Field(default=None, description="Cursor cache expiry")
    queue_poll_timeout: float = Field(default=5.0, gt=0, description="Queue poll timeout")

    # Monitor settings
    sweep_interval_seconds: float = Field(default=3600.0, gt=0, description="Seconds between sweeps")
    sweep_batch_size: int = Field(default=50, gt=0, description="Repositories per sweep batch")
    max_cycles_per_repository: int = Field(default=2, ge=1, description="Fetch cycles per repository")
    repository_timeout: float | None = Field(default=1800.0, description="Per-repository timeout")
    worker_job_timeout: float | None = Field(default=600.0, description="Per-job worker timeout")
    seed_org: str = Field(default="chromium", description="Seed organization")
    seed_repo: str = Field(default="chromium", description="Seed repository")
    start_monitor: bool = Field(default=True, description="Start the monitor with the API")
    embedded_worker: bool = Field(default=False, description="Run the worker in the API process")

    # CORS settings
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins",
    )

    # API settings
    api_prefix: str = Field(default="/api/v1", description="API route prefix")

    def github_config(self) -> GitHubClientConfig:
        """Build the GitHub client configuration."""
        return GitHubClientConfig(
            app_id=self.github_app_id,
            private_key=self.github_private_key,
            installation_id=self.github_installation_id,
            access_token=self.github_token,
            base_url=self.github_base_url,
            timeout=self.github_timeout,
            max_retries=self.github_max_retries,
            per_page=self.github_per_page,
        )

    def monitor_config(self) -> MonitorConfig:
        """Build the repository monitor configuration."""
        return MonitorConfig(
            sweep_interval_seconds=self.sweep_interval_seconds,
            sweep_batch_size=self.sweep_batch_size,
            max_cycles_per_repository=self.max_cycles_per_repository,
            repository_timeout=self.repository_timeout,
            per_page=self.github_per_page,
            seed_org=self.seed_org or None,
            seed_repo=self.seed_repo or None,
            poll_timeout=self.queue_poll_timeout,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Uses lru_cache to ensure settings are loaded once and reused.

    Returns:
        The application settings instance.
    """
    return Settings()
