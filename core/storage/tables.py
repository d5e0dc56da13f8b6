"""SQLAlchemy table mappings for the durable store."""

from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Declarative base for RepoWatch tables."""


class RepositoryRow(Base):
    """A tracked GitHub repository."""

    __tablename__ = "repositories"
    __table_args__ = (UniqueConstraint("org_name", "repo_name", name="uq_repositories_org_repo"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    org_name: Mapped[str] = mapped_column(String(255), nullable=False)
    repo_name: Mapped[str] = mapped_column(String(255), nullable=False)
    secret: Mapped[str | None] = mapped_column(String(255), nullable=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    language: Mapped[str | None] = mapped_column(String(128), nullable=True)
    forks_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    stars_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    open_issues_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    watchers_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    github_created_at: Mapped[str | None] = mapped_column(String(64), nullable=True)
    github_updated_at: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Indexing cursor
    last_commit_url: Mapped[str] = mapped_column(String(1024), default="", nullable=False)
    last_commit_date: Mapped[str | None] = mapped_column(String(64), nullable=True)
    indexing_complete: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    commits: Mapped[list["CommitRow"]] = relationship(
        back_populates="repository",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class CommitRow(Base):
    """An indexed commit, unique by URL within its repository."""

    __tablename__ = "commits"
    __table_args__ = (UniqueConstraint("repository_id", "commit_url", name="uq_commits_repository_url"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    commit_message: Mapped[str] = mapped_column(Text, default="", nullable=False)
    author: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    commit_date: Mapped[str | None] = mapped_column(String(64), nullable=True)
    commit_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    repository_id: Mapped[int] = mapped_column(
        ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False, index=True
    )

    repository: Mapped[RepositoryRow] = relationship(back_populates="commits")
