"""Pydantic models for the indexing monitor.

This module defines the monitor's configuration and the reports it produces
for a single repository cycle and for a whole sweep.
"""

from pydantic import BaseModel, ConfigDict, Field


class MonitorConfig(BaseModel):
    """Configuration for the repository monitor.

    Attributes:
        sweep_interval_seconds: Delay between two sweeps.
        sweep_batch_size: Repositories loaded and processed together.
        max_cycles_per_repository: Fetch cycles per repository per sweep.
        repository_timeout: Upper bound for one repository within a sweep.
        per_page: Commits requested per GitHub page.
        seed_org: Organization registered on start, None to disable seeding.
        seed_repo: Repository registered on start.
        poll_timeout: Seconds a queue consumer blocks before re-checking for
            shutdown.
    """

    model_config = ConfigDict(frozen=True)

    sweep_interval_seconds: float = Field(default=3600.0, gt=0, description="Seconds between sweeps")
    sweep_batch_size: int = Field(default=50, gt=0, description="Repositories per sweep batch")
    max_cycles_per_repository: int = Field(default=2, ge=1, description="Fetch cycles per repository")
    repository_timeout: float | None = Field(default=1800.0, description="Per-repository timeout")
    per_page: int = Field(default=100, gt=0, le=100, description="Commits per GitHub page")
    seed_org: str | None = Field(default="chromium", description="Seed organization")
    seed_repo: str | None = Field(default="chromium", description="Seed repository")
    poll_timeout: float = Field(default=5.0, gt=0, description="Queue poll timeout")


class IndexOutcome(BaseModel):
    """Result of indexing one repository.

    Attributes:
        org_name: Organization name.
        repo_name: Repository name.
        cycles: Fetch cycles run.
        fetched: Commits returned by GitHub across all cycles.
        dispatched: Commits handed to the worker.
        cursor: Cursor after the last cycle.
        complete: Whether the last cycle found nothing new.
    """

    org_name: str = Field(..., description="Organization name")
    repo_name: str = Field(..., description="Repository name")
    cycles: int = Field(default=0, ge=0, description="Fetch cycles run")
    fetched: int = Field(default=0, ge=0, description="Commits fetched")
    dispatched: int = Field(default=0, ge=0, description="Commits dispatched")
    cursor: str = Field(default="", description="Cursor after indexing")
    complete: bool = Field(default=False, description="Caught up with GitHub")


class RepositoryFailure(BaseModel):
    """A repository whose indexing failed during a sweep."""

    org_name: str = Field(..., description="Organization name")
    repo_name: str = Field(..., description="Repository name")
    error_type: str = Field(..., description="Error type/class name")
    message: str = Field(..., description="Error message")


class SweepReport(BaseModel):
    """Summary of one sweep over all tracked repositories."""

    repositories: int = Field(default=0, ge=0, description="Repositories visited")
    succeeded: int = Field(default=0, ge=0, description="Repositories indexed without error")
    failures: list[RepositoryFailure] = Field(default_factory=list, description="Per-repository failures")
    duration_ms: int = Field(default=0, ge=0, description="Sweep duration in milliseconds")

    @property
    def failed(self) -> int:
        """Number of repositories that failed."""
        return len(self.failures)


class PipelineStatus(BaseModel):
    """Point-in-time view of the indexing pipeline."""

    running: bool = Field(..., description="Timer and consumers are active")
    sweeps_in_flight: int = Field(default=0, ge=0, description="Sweeps currently running")
    pending_fetch_jobs: int = Field(default=0, ge=0, description="Fetch jobs waiting")
    pending_persist_jobs: int = Field(default=0, ge=0, description="Persist jobs waiting")
