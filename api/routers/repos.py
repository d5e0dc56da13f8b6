"""Repository management endpoints for the RepoWatch API.

This module provides endpoints for registering repositories, listing the
tracked ones, reading their indexed commits, and requesting a sync.
"""

import httpx
import structlog
from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from api.dependencies import GitHubClientDep, MonitorDep, StoreDep
from core.indexing.monitor import RepositoryNotFoundError, RepositoryNotTrackedError
from core.storage.models import Repository, StoredCommit
from integrations.github.models import GitHubRepository

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/repos", tags=["Repositories"])


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRepositoryRequest(_CamelModel):
    """Request model for registering a repository.

    Attributes:
        org_name: Organization (owner) name.
        repo_name: Repository name.
    """

    org_name: str = Field(..., min_length=1, description="Organization name")
    repo_name: str = Field(..., min_length=1, description="Repository name")


class RepositoryListResponse(_CamelModel):
    """Response model for listing repositories."""

    repositories: list[Repository] = Field(..., description="Tracked repositories")
    offset: int = Field(..., description="Offset of the first repository")
    limit: int = Field(..., description="Page size")


class CommitListResponse(_CamelModel):
    """Response model for the indexed commits of a repository."""

    total_records: int = Field(..., description="Number of indexed commits")
    commits: list[StoredCommit] = Field(..., description="Indexed commits")


class SyncResponse(_CamelModel):
    """Response model for a sync request."""

    org_name: str = Field(..., description="Organization name")
    repo_name: str = Field(..., description="Repository name")
    status: str = Field(..., description="Sync status")
    message: str = Field(..., description="Status message")


def _origin_unavailable(e: httpx.HTTPError) -> HTTPException:
    logger.warning("github_request_failed", error=str(e))
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"GitHub request failed: {e}",
    )


@router.post(
    "",
    response_model=Repository,
    status_code=status.HTTP_201_CREATED,
    summary="Register repository",
    description="Start tracking a GitHub repository and queue its first fetch.",
)
async def register_repository(
    request: RegisterRepositoryRequest,
    monitor: MonitorDep,
) -> Repository:
    """Register a repository.

    Registering an already tracked repository refreshes its metadata and
    restarts indexing from the beginning.

    Args:
        request: Organization and repository name.
        monitor: Repository monitor.

    Returns:
        The stored repository.

    Raises:
        HTTPException: 404 if GitHub does not know the repository, 502 if
            GitHub could not be reached.
    """
    try:
        return await monitor.register_repository(request.org_name, request.repo_name)
    except RepositoryNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except httpx.HTTPError as e:
        raise _origin_unavailable(e) from e


@router.get(
    "",
    response_model=RepositoryListResponse,
    summary="List repositories",
    description="List tracked repositories in registration order.",
)
async def list_repositories(
    store: StoreDep,
    offset: int = Query(default=0, ge=0, description="Repositories to skip"),
    limit: int = Query(default=50, ge=1, le=500, description="Maximum repositories to return"),
) -> RepositoryListResponse:
    """List tracked repositories."""
    repositories = await store.list_repositories(offset=offset, limit=limit)
    return RepositoryListResponse(repositories=repositories, offset=offset, limit=limit)


@router.get(
    "/{org_name}/{repo_name}",
    response_model=Repository,
    summary="Get repository",
    description="Get a tracked repository and its indexing state.",
)
async def get_repository(org_name: str, repo_name: str, store: StoreDep) -> Repository:
    """Get a tracked repository.

    Raises:
        HTTPException: If the repository is not tracked.
    """
    repository = await store.get_repository(org_name, repo_name)
    if repository is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Repository {org_name}/{repo_name} is not tracked",
        )
    return repository


@router.get(
    "/{org_name}/{repo_name}/commits",
    response_model=CommitListResponse,
    summary="List indexed commits",
    description="List the commits indexed for a tracked repository.",
)
async def list_commits(org_name: str, repo_name: str, store: StoreDep) -> CommitListResponse:
    """List indexed commits of a repository.

    Raises:
        HTTPException: If the repository is not tracked.
    """
    repository = await store.get_repository(org_name, repo_name)
    if repository is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Repository {org_name}/{repo_name} is not tracked",
        )
    commits = await store.list_commits(org_name, repo_name)
    return CommitListResponse(total_records=len(commits), commits=commits)


@router.get(
    "/{org_name}/{repo_name}/metadata",
    response_model=GitHubRepository,
    summary="Get GitHub metadata",
    description="Fetch current repository metadata from GitHub.",
)
async def get_metadata(org_name: str, repo_name: str, client: GitHubClientDep) -> GitHubRepository:
    """Fetch live repository metadata.

    Raises:
        HTTPException: 404 if GitHub does not know the repository, 502 if
            GitHub could not be reached.
    """
    try:
        metadata = await client.get_repository(org_name, repo_name)
    except httpx.HTTPError as e:
        raise _origin_unavailable(e) from e
    if metadata is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Repository {org_name}/{repo_name} does not exist",
        )
    return metadata


@router.post(
    "/{org_name}/{repo_name}/sync",
    response_model=SyncResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Sync repository",
    description="Queue a fetch of new commits for a tracked repository.",
)
async def sync_repository(org_name: str, repo_name: str, monitor: MonitorDep) -> SyncResponse:
    """Queue a fetch for a tracked repository.

    Raises:
        HTTPException: If the repository is not tracked.
    """
    try:
        await monitor.request_sync(org_name, repo_name)
    except RepositoryNotTrackedError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    logger.info("sync_requested", org=org_name, repo=repo_name)
    return SyncResponse(
        org_name=org_name,
        repo_name=repo_name,
        status="queued",
        message="Fetch queued",
    )
