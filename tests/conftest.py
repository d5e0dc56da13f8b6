"""Pytest configuration and shared fixtures.

This module provides a throwaway SQLite store, an in-memory stand-in for
the Redis cursor cache, and sample GitHub data used across the test modules.
"""

from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from core.storage.database import Database
from core.storage.models import Repository
from core.storage.store import SQLIndexStore
from integrations.github.models import GitHubCommit, GitHubRepository

# ---------------------------------------------------------------------------
# Storage Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncGenerator[Database, None]:
    """Connected SQLite database file with the schema created.

    A file rather than :memory: so that concurrent sessions get their own
    connections.
    """
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'repowatch.db'}")
    await db.connect()
    await db.create_schema()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def store(database: Database) -> SQLIndexStore:
    """SQLIndexStore on the test database."""
    return SQLIndexStore(database)


@pytest_asyncio.fixture
async def registered_repository(store: SQLIndexStore, repo_metadata: GitHubRepository) -> Repository:
    """A repository registered as ``acme/widgets``."""
    return await store.save_registration("acme", "widgets", repo_metadata, secret="s3cret")


# ---------------------------------------------------------------------------
# Cache Fixtures
# ---------------------------------------------------------------------------


class InMemoryCache:
    """Dictionary-backed object with the CursorCache interface."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.values.get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        self.values[key] = value

    async def delete(self, key: str) -> None:
        self.values.pop(key, None)


@pytest.fixture
def cache() -> InMemoryCache:
    """Empty in-memory cursor cache."""
    return InMemoryCache()


# ---------------------------------------------------------------------------
# GitHub Data Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def repo_metadata() -> GitHubRepository:
    """Metadata for ``acme/widgets``."""
    return GitHubRepository(
        name="widgets",
        description="Widgets for everyone",
        url="https://github.com/acme/widgets",
        language="Python",
        forks_count=3,
        stars_count=42,
        open_issues_count=1,
        watchers_count=42,
        created_at="2020-01-01T00:00:00Z",
        updated_at="2024-05-01T00:00:00Z",
    )


@pytest.fixture
def sample_commits() -> list[GitHubCommit]:
    """Three commits, newest first as GitHub returns them."""
    return [
        GitHubCommit(
            commit_message="Add gears",
            author="Ada",
            commit_date="2024-05-03T10:00:00Z",
            commit_url="https://github.com/acme/widgets/commit/c3",
        ),
        GitHubCommit(
            commit_message="Fix springs",
            author="Grace",
            commit_date="2024-05-02T10:00:00Z",
            commit_url="https://github.com/acme/widgets/commit/c2",
        ),
        GitHubCommit(
            commit_message="Initial commit",
            author="Ada",
            commit_date="2024-05-01T10:00:00Z",
            commit_url="https://github.com/acme/widgets/commit/c1",
        ),
    ]


def _rest_commit(sha: str, message: str, author: str, date: str, repo: str = "acme/widgets") -> dict[str, Any]:
    """Build a commit in the shape of GitHub's list-commits response."""
    return {
        "sha": sha,
        "html_url": f"https://github.com/{repo}/commit/{sha}",
        "url": f"https://api.github.com/repos/{repo}/commits/{sha}",
        "commit": {
            "message": message,
            "author": {"name": author, "email": f"{author.lower()}@example.com", "date": date},
        },
    }


def _rest_repository(name: str = "widgets", owner: str = "acme") -> dict[str, Any]:
    """Build a repository in the shape of GitHub's get-repository response."""
    return {
        "id": 1,
        "name": name,
        "full_name": f"{owner}/{name}",
        "description": "Widgets for everyone",
        "html_url": f"https://github.com/{owner}/{name}",
        "language": "Python",
        "forks_count": 3,
        "stargazers_count": 42,
        "open_issues_count": 1,
        "watchers_count": 42,
        "created_at": "2020-01-01T00:00:00Z",
        "updated_at": "2024-05-01T00:00:00Z",
    }


@pytest.fixture
def make_rest_commit() -> Any:
    """Factory for GitHub list-commits entries."""
    return _rest_commit


@pytest.fixture
def make_rest_repository() -> Any:
    """Factory for GitHub repository payloads."""
    return _rest_repository
