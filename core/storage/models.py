"""Pydantic views of stored entities.

The indexing pipeline only ever sees these snapshots, never ORM rows.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Repository(BaseModel):
    """Snapshot of a tracked repository.

    Attributes:
        id: Store identifier.
        org_name: Organization (owner) name.
        repo_name: Repository name.
        secret: Webhook secret for this repository.
        last_commit_url: Cursor; URL of the most recently indexed commit.
        last_commit_date: Origin timestamp sent as ``since`` on the next fetch.
        indexing_complete: Whether the last cycle found nothing new.
    """

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: int = Field(..., description="Store identifier")
    org_name: str = Field(..., description="Organization name")
    repo_name: str = Field(..., description="Repository name")
    secret: str | None = Field(None, description="Webhook secret", exclude=True)
    description: str | None = Field(None, description="Repository description")
    url: str | None = Field(None, description="Repository URL")
    language: str | None = Field(None, description="Primary language")
    forks_count: int = Field(default=0, description="Number of forks")
    stars_count: int = Field(default=0, description="Number of stargazers")
    open_issues_count: int = Field(default=0, description="Number of open issues")
    watchers_count: int = Field(default=0, description="Number of watchers")
    last_commit_url: str = Field(default="", description="Indexing cursor")
    last_commit_date: str | None = Field(None, description="Timestamp paired with the cursor")
    indexing_complete: bool = Field(default=False, description="Last cycle observed no new commits")
    created_at: datetime | None = Field(None, description="Row creation time")
    updated_at: datetime | None = Field(None, description="Row update time")

    @property
    def full_name(self) -> str:
        """Return ``org/repo``."""
        return f"{self.org_name}/{self.repo_name}"


class StoredCommit(BaseModel):
    """An indexed commit."""

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    commit_message: str = Field(default="", description="Commit message")
    author: str | None = Field(None, description="Author display name")
    commit_date: str | None = Field(None, description="Commit timestamp")
    commit_url: str = Field(..., description="Commit URL")


class AuthorCount(BaseModel):
    """Number of indexed commits for one author."""

    author: str = Field(..., description="Author display name")
    count: int = Field(..., ge=0, description="Commit count")
