"""Durable storage for tracked repositories and indexed commits.

Example:
    >>> from core.storage import Database, SQLIndexStore
    >>> async with Database("sqlite+aiosqlite:///./repowatch.db") as db:
    ...     await db.create_schema()
    ...     store = SQLIndexStore(db)
    ...     repos = await store.list_repositories()
"""

from .database import Database, DatabaseError
from .models import AuthorCount, Repository, StoredCommit
from .store import IndexStore, SQLIndexStore
from .tables import Base, CommitRow, RepositoryRow

__all__ = [
    "Database",
    "DatabaseError",
    "IndexStore",
    "SQLIndexStore",
    "Repository",
    "StoredCommit",
    "AuthorCount",
    "Base",
    "RepositoryRow",
    "CommitRow",
]
