"""Pydantic models for GitHub integration.

This module defines data models for the GitHub entities RepoWatch consumes:
repository metadata, commit records, commit pages, and webhook payloads.
Commit records serialize with camelCase keys so they can travel through the
work queue and the HTTP API unchanged.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WebhookEvent(str, Enum):
    """GitHub webhook event types."""

    PUSH = "push"
    PING = "ping"


class GitHubUser(BaseModel):
    """GitHub user model."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(default=0, description="User ID")
    login: str = Field(..., description="Username")
    name: str | None = Field(None, description="Display name")
    email: str | None = Field(None, description="Email address")


class GitHubRepository(BaseModel):
    """Repository metadata as reported by GitHub.

    Timestamps are kept as the opaque strings GitHub returns.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Repository name")
    description: str | None = Field(None, description="Repository description")
    url: str = Field(..., description="Repository URL (html_url)")
    language: str | None = Field(None, description="Primary language")
    forks_count: int = Field(default=0, description="Number of forks")
    stars_count: int = Field(default=0, description="Number of stargazers")
    open_issues_count: int = Field(default=0, description="Number of open issues")
    watchers_count: int = Field(default=0, description="Number of watchers")
    created_at: str | None = Field(None, description="Creation time")
    updated_at: str | None = Field(None, description="Last update time")


class GitHubCommit(BaseModel):
    """A commit record as fetched from GitHub.

    The commit URL is the natural key of a commit within its repository.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    commit_message: str = Field(default="", description="Commit message")
    author: str | None = Field(None, description="Author display name")
    commit_date: str | None = Field(None, description="Commit timestamp as supplied by GitHub")
    commit_url: str = Field(..., description="Commit URL")


class CommitPage(BaseModel):
    """Result of an exhaustive commit fetch."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_records: int = Field(..., description="Number of commits fetched")
    commits: list[GitHubCommit] = Field(default_factory=list, description="Commits in fetch order")


class PushCommit(BaseModel):
    """A commit as it appears inside a push webhook payload."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., description="Commit SHA")
    message: str = Field(default="", description="Commit message")
    timestamp: str | None = Field(None, description="Commit timestamp")
    url: str = Field(..., description="Commit URL")
    author: dict[str, Any] | None = Field(None, description="Author name/email/username")


class WebhookRepository(BaseModel):
    """Repository block of a webhook payload."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int = Field(default=0, description="Repository ID")
    name: str = Field(..., description="Repository name")
    full_name: str = Field(..., description="Full name (owner/repo)")
    owner: GitHubUser = Field(..., description="Repository owner")


class WebhookPayload(BaseModel):
    """GitHub webhook payload."""

    model_config = ConfigDict(frozen=False, extra="allow")

    action: str | None = Field(None, description="Webhook action")
    repository: WebhookRepository | None = Field(None, description="Repository")
    commits: list[PushCommit] | None = Field(None, description="Commits for push events")
    ref: str | None = Field(None, description="Git ref for push events")
    before: str | None = Field(None, description="Before SHA for push events")
    after: str | None = Field(None, description="After SHA for push events")
    zen: str | None = Field(None, description="Ping message")
