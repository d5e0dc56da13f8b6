"""Tests for the durable store.

These run against a throwaway SQLite database so that uniqueness and
conditional updates are exercised for real.
"""

import pytest

from core.storage.database import Database, DatabaseError
from core.storage.models import Repository
from core.storage.store import SQLIndexStore
from integrations.github.models import GitHubCommit, GitHubRepository

# =============================================================================
# Database Tests
# =============================================================================


class TestDatabase:
    """Tests for the Database wrapper."""

    @pytest.mark.asyncio
    async def test_health_check_connected(self, database: Database):
        """Test a connected database reports healthy."""
        health = await database.health_check()

        assert health["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_health_check_disconnected(self):
        """Test an unconnected database reports disconnected."""
        health = await Database("sqlite+aiosqlite:///:memory:").health_check()

        assert health["status"] == "disconnected"

    @pytest.mark.asyncio
    async def test_session_requires_connect(self):
        """Test sessions cannot be opened before connect()."""
        db = Database("sqlite+aiosqlite:///:memory:")

        with pytest.raises(DatabaseError):
            async with db.session():
                pass

    @pytest.mark.asyncio
    async def test_context_manager_closes(self):
        """Test the async context manager connects and disposes."""
        async with Database("sqlite+aiosqlite:///:memory:") as db:
            assert (await db.health_check())["status"] == "healthy"

        with pytest.raises(DatabaseError):
            _ = db.engine


# =============================================================================
# Repository Tests
# =============================================================================


class TestRepositoryStorage:
    """Tests for repository registration and cursor handling."""

    @pytest.mark.asyncio
    async def test_save_registration_creates_repository(
        self,
        store: SQLIndexStore,
        registered_repository: Repository,
    ):
        """Test a new registration is stored with an empty cursor."""
        assert registered_repository.org_name == "acme"
        assert registered_repository.repo_name == "widgets"
        assert registered_repository.stars_count == 42
        assert registered_repository.last_commit_url == ""
        assert registered_repository.last_commit_date is None
        assert registered_repository.indexing_complete is False

        stored = await store.get_repository("acme", "widgets")
        assert stored is not None
        assert stored.id == registered_repository.id
        assert stored.url == "https://github.com/acme/widgets"

    @pytest.mark.asyncio
    async def test_reregistration_merges_and_resets_cursor(
        self,
        store: SQLIndexStore,
        registered_repository: Repository,
        repo_metadata: GitHubRepository,
    ):
        """Test registering again keeps one row, refreshes metadata and resets indexing."""
        await store.advance_cursor("acme", "widgets", "", "https://x/c1", "2024-05-01T10:00:00Z")
        await store.set_indexing_complete("acme", "widgets", True)

        refreshed = repo_metadata.model_copy(update={"stars_count": 100})
        again = await store.save_registration("acme", "widgets", refreshed, secret="other")

        assert again.id == registered_repository.id
        assert again.stars_count == 100
        assert again.last_commit_url == ""
        assert again.last_commit_date is None
        assert again.indexing_complete is False
        assert again.secret == "s3cret"
        assert len(await store.list_repositories()) == 1

    @pytest.mark.asyncio
    async def test_get_repository_missing(self, store: SQLIndexStore):
        """Test an unknown repository is None."""
        assert await store.get_repository("acme", "ghost") is None
        assert await store.get_repository_secret("acme", "ghost") is None

    @pytest.mark.asyncio
    async def test_secret_is_not_serialized(self, registered_repository: Repository):
        """Test the webhook secret never appears in dumps."""
        assert "secret" not in registered_repository.model_dump(by_alias=True)
        assert registered_repository.model_dump(by_alias=True)["orgName"] == "acme"

    @pytest.mark.asyncio
    async def test_list_repositories_pages_in_order(
        self,
        store: SQLIndexStore,
        repo_metadata: GitHubRepository,
    ):
        """Test listing is stable and honors offset and limit."""
        for name in ("a", "b", "c"):
            await store.save_registration("acme", name, repo_metadata, secret=name)

        first = await store.list_repositories(offset=0, limit=2)
        second = await store.list_repositories(offset=2, limit=2)

        assert [r.repo_name for r in first] == ["a", "b"]
        assert [r.repo_name for r in second] == ["c"]

    @pytest.mark.asyncio
    async def test_advance_cursor_compare_and_set(
        self,
        store: SQLIndexStore,
        registered_repository: Repository,
    ):
        """Test the cursor only moves from the expected value."""
        assert await store.advance_cursor("acme", "widgets", "", "https://x/c1", "2024-05-01T10:00:00Z")
        assert not await store.advance_cursor("acme", "widgets", "", "https://x/c9", "2024-06-01T10:00:00Z")

        repository = await store.get_repository("acme", "widgets")
        assert repository is not None
        assert repository.last_commit_url == "https://x/c1"
        assert repository.last_commit_date == "2024-05-01T10:00:00Z"

    @pytest.mark.asyncio
    async def test_advance_cursor_clears_complete_flag(
        self,
        store: SQLIndexStore,
        registered_repository: Repository,
    ):
        """Test moving the cursor marks the repository in progress."""
        await store.set_indexing_complete("acme", "widgets", True)
        await store.advance_cursor("acme", "widgets", "", "https://x/c1", None)

        repository = await store.get_repository("acme", "widgets")
        assert repository is not None
        assert repository.indexing_complete is False
        assert repository.last_commit_date is None


# =============================================================================
# Commit Tests
# =============================================================================


class TestCommitStorage:
    """Tests for commit persistence and queries."""

    @pytest.mark.asyncio
    async def test_add_commit_is_unique_per_repository(
        self,
        store: SQLIndexStore,
        registered_repository: Repository,
        sample_commits: list[GitHubCommit],
    ):
        """Test a commit URL is stored once per repository."""
        commit = sample_commits[0]

        assert await store.add_commit(registered_repository.id, commit) is True
        assert await store.add_commit(registered_repository.id, commit) is False
        assert await store.commit_exists(registered_repository.id, commit.commit_url)
        assert await store.count_commits(registered_repository.id) == 1

    @pytest.mark.asyncio
    async def test_same_url_in_two_repositories(
        self,
        store: SQLIndexStore,
        registered_repository: Repository,
        repo_metadata: GitHubRepository,
        sample_commits: list[GitHubCommit],
    ):
        """Test uniqueness is scoped to the repository."""
        other = await store.save_registration("acme", "gadgets", repo_metadata, secret="x")

        assert await store.add_commit(registered_repository.id, sample_commits[0])
        assert await store.add_commit(other.id, sample_commits[0])

    @pytest.mark.asyncio
    async def test_existing_commit_urls(
        self,
        store: SQLIndexStore,
        registered_repository: Repository,
        repo_metadata: GitHubRepository,
        sample_commits: list[GitHubCommit],
    ):
        """Test the bulk lookup returns only URLs stored for that repository."""
        other = await store.save_registration("acme", "gadgets", repo_metadata, secret="x")
        await store.add_commit(registered_repository.id, sample_commits[0])
        await store.add_commit(other.id, sample_commits[1])
        urls = [c.commit_url for c in sample_commits]

        assert await store.existing_commit_urls(registered_repository.id, urls) == {sample_commits[0].commit_url}
        assert await store.existing_commit_urls(registered_repository.id, []) == set()

    @pytest.mark.asyncio
    async def test_list_commits(
        self,
        store: SQLIndexStore,
        registered_repository: Repository,
        sample_commits: list[GitHubCommit],
    ):
        """Test stored commits come back in insertion order."""
        for commit in sample_commits:
            await store.add_commit(registered_repository.id, commit)

        commits = await store.list_commits("acme", "widgets")

        assert [c.commit_url for c in commits] == [c.commit_url for c in sample_commits]
        assert commits[0].author == "Ada"
        assert await store.list_commits("acme", "ghost") == []

    @pytest.mark.asyncio
    async def test_top_authors(
        self,
        store: SQLIndexStore,
        registered_repository: Repository,
        sample_commits: list[GitHubCommit],
    ):
        """Test authors are ranked by commit count."""
        for commit in sample_commits:
            await store.add_commit(registered_repository.id, commit)

        authors = await store.top_authors(limit=10)

        assert [(a.author, a.count) for a in authors] == [("Ada", 2), ("Grace", 1)]
        assert len(await store.top_authors(limit=1)) == 1
