"""Durable store for tracked repositories and indexed commits.

``IndexStore`` is the narrow interface the indexing pipeline depends on.
``SQLIndexStore`` implements it with SQLAlchemy against whichever engine the
``Database`` was configured with.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from integrations.github.models import GitHubCommit, GitHubRepository

from .database import Database
from .models import AuthorCount, Repository, StoredCommit
from .tables import CommitRow, RepositoryRow

logger = structlog.get_logger(__name__)


class IndexStore(ABC):
    """Storage operations used by the indexing pipeline."""

    @abstractmethod
    async def get_repository(self, org_name: str, repo_name: str) -> Repository | None:
        """Find a repository by its natural key."""

    @abstractmethod
    async def list_repositories(self, offset: int = 0, limit: int = 50) -> list[Repository]:
        """List repositories in stable (insertion) order."""

    @abstractmethod
    async def save_registration(
        self,
        org_name: str,
        repo_name: str,
        metadata: GitHubRepository,
        secret: str,
    ) -> Repository:
        """Create or merge a repository and reset its indexing state.

        ``secret`` is only applied when the row is created.
        """

    @abstractmethod
    async def advance_cursor(
        self,
        org_name: str,
        repo_name: str,
        expected_url: str,
        new_url: str,
        new_date: str | None,
    ) -> bool:
        """Move the cursor forward if it still equals ``expected_url``.

        Returns:
            True if the cursor was updated.
        """

    @abstractmethod
    async def set_indexing_complete(self, org_name: str, repo_name: str, complete: bool) -> None:
        """Set the indexing completion flag."""

    @abstractmethod
    async def commit_exists(self, repository_id: int, commit_url: str) -> bool:
        """Check whether a commit URL is already stored for a repository."""

    @abstractmethod
    async def existing_commit_urls(self, repository_id: int, commit_urls: list[str]) -> set[str]:
        """Return the subset of ``commit_urls`` already stored for a repository."""

    @abstractmethod
    async def add_commit(self, repository_id: int, commit: GitHubCommit) -> bool:
        """Insert a commit.

        Returns:
            False if the commit already existed.
        """

    @abstractmethod
    async def list_commits(self, org_name: str, repo_name: str) -> list[StoredCommit]:
        """List stored commits of a repository."""

    @abstractmethod
    async def top_authors(self, limit: int = 10) -> list[AuthorCount]:
        """Authors with the most indexed commits."""

    async def get_repository_secret(self, org_name: str, repo_name: str) -> str | None:
        """Get the webhook secret of a repository."""
        repository = await self.get_repository(org_name, repo_name)
        return repository.secret if repository else None


class SQLIndexStore(IndexStore):
    """SQLAlchemy implementation of ``IndexStore``.

    Attributes:
        database: The connected Database.
    """

    def __init__(self, database: Database) -> None:
        """Initialize the store.

        Args:
            database: A connected Database instance.
        """
        self.database = database

    # ==========================================================================
    # Repository Operations
    # ==========================================================================

    async def get_repository(self, org_name: str, repo_name: str) -> Repository | None:
        async with self.database.session() as session:
            row = await session.scalar(
                select(RepositoryRow).where(
                    RepositoryRow.org_name == org_name,
                    RepositoryRow.repo_name == repo_name,
                )
            )
            return Repository.model_validate(row) if row else None

    async def list_repositories(self, offset: int = 0, limit: int = 50) -> list[Repository]:
        async with self.database.session() as session:
            rows = await session.scalars(
                select(RepositoryRow).order_by(RepositoryRow.id).offset(offset).limit(limit)
            )
            return [Repository.model_validate(row) for row in rows]

    async def save_registration(
        self,
        org_name: str,
        repo_name: str,
        metadata: GitHubRepository,
        secret: str,
    ) -> Repository:
        try:
            return await self._upsert_registration(org_name, repo_name, metadata, secret)
        except IntegrityError:
            # lost a creation race with a concurrent registration; merge instead
            logger.debug("registration_race", org=org_name, repo=repo_name)
            return await self._upsert_registration(org_name, repo_name, metadata, secret)

    async def _upsert_registration(
        self,
        org_name: str,
        repo_name: str,
        metadata: GitHubRepository,
        secret: str,
    ) -> Repository:
        async with self.database.session() as session:
            row = await session.scalar(
                select(RepositoryRow)
                .where(
                    RepositoryRow.org_name == org_name,
                    RepositoryRow.repo_name == repo_name,
                )
                .with_for_update()
            )
            if row is None:
                row = RepositoryRow(org_name=org_name, repo_name=repo_name, secret=secret)
                session.add(row)

            row.description = metadata.description
            row.url = metadata.url
            row.language = metadata.language
            row.forks_count = metadata.forks_count
            row.stars_count = metadata.stars_count
            row.open_issues_count = metadata.open_issues_count
            row.watchers_count = metadata.watchers_count
            row.github_created_at = metadata.created_at
            row.github_updated_at = metadata.updated_at
            row.last_commit_url = ""
            row.last_commit_date = None
            row.indexing_complete = False
            row.updated_at = datetime.now(UTC)

            await session.flush()
            await session.refresh(row)
            return Repository.model_validate(row)

    async def advance_cursor(
        self,
        org_name: str,
        repo_name: str,
        expected_url: str,
        new_url: str,
        new_date: str | None,
    ) -> bool:
        values: dict[str, object] = {
            "last_commit_url": new_url,
            "indexing_complete": False,
            "updated_at": datetime.now(UTC),
        }
        if new_date is not None:
            values["last_commit_date"] = new_date

        async with self.database.session() as session:
            result = await session.execute(
                update(RepositoryRow)
                .where(
                    RepositoryRow.org_name == org_name,
                    RepositoryRow.repo_name == repo_name,
                    RepositoryRow.last_commit_url == expected_url,
                )
                .values(**values)
            )
            return bool(result.rowcount)

    async def set_indexing_complete(self, org_name: str, repo_name: str, complete: bool) -> None:
        async with self.database.session() as session:
            await session.execute(
                update(RepositoryRow)
                .where(
                    RepositoryRow.org_name == org_name,
                    RepositoryRow.repo_name == repo_name,
                )
                .values(indexing_complete=complete, updated_at=datetime.now(UTC))
            )

    # ==========================================================================
    # Commit Operations
    # ==========================================================================

    async def commit_exists(self, repository_id: int, commit_url: str) -> bool:
        async with self.database.session() as session:
            found = await session.scalar(
                select(CommitRow.id).where(
                    CommitRow.repository_id == repository_id,
                    CommitRow.commit_url == commit_url,
                )
            )
            return found is not None

    async def existing_commit_urls(self, repository_id: int, commit_urls: list[str]) -> set[str]:
        if not commit_urls:
            return set()
        async with self.database.session() as session:
            found = await session.scalars(
                select(CommitRow.commit_url).where(
                    CommitRow.repository_id == repository_id,
                    CommitRow.commit_url.in_(sorted(set(commit_urls))),
                )
            )
            return set(found)

    async def add_commit(self, repository_id: int, commit: GitHubCommit) -> bool:
        try:
            async with self.database.session() as session:
                session.add(
                    CommitRow(
                        repository_id=repository_id,
                        commit_message=commit.commit_message,
                        author=commit.author,
                        commit_date=commit.commit_date,
                        commit_url=commit.commit_url,
                    )
                )
        except IntegrityError:
            return False
        return True

    async def list_commits(self, org_name: str, repo_name: str) -> list[StoredCommit]:
        async with self.database.session() as session:
            rows = await session.scalars(
                select(CommitRow)
                .join(RepositoryRow)
                .where(
                    RepositoryRow.org_name == org_name,
                    RepositoryRow.repo_name == repo_name,
                )
                .order_by(CommitRow.id)
            )
            return [StoredCommit.model_validate(row) for row in rows]

    async def count_commits(self, repository_id: int) -> int:
        """Count stored commits of a repository."""
        async with self.database.session() as session:
            total = await session.scalar(
                select(func.count(CommitRow.id)).where(CommitRow.repository_id == repository_id)
            )
            return int(total or 0)

    async def top_authors(self, limit: int = 10) -> list[AuthorCount]:
        count = func.count(CommitRow.id).label("count")
        async with self.database.session() as session:
            result = await session.execute(
                select(CommitRow.author, count)
                .where(CommitRow.author.is_not(None))
                .group_by(CommitRow.author)
                .order_by(count.desc(), CommitRow.author)
                .limit(limit)
            )
            return [AuthorCount(author=author, count=int(n)) for author, n in result.all()]
