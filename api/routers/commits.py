"""Commit query endpoints for the RepoWatch API.

``/commits`` fetches live from GitHub without touching the index;
``/authors/top`` aggregates over the indexed commits.
"""

import httpx
import structlog
from fastapi import APIRouter, HTTPException, Query, status

from api.dependencies import GitHubClientDep, StoreDep
from core.storage.models import AuthorCount
from integrations.github.models import CommitPage

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Commits"])


@router.get(
    "/commits",
    response_model=CommitPage,
    summary="Fetch commits from GitHub",
    description="Fetch commits of a repository from GitHub, starting at the given page.",
)
async def fetch_commits(
    client: GitHubClientDep,
    org_name: str = Query(..., alias="orgName", min_length=1, description="Organization name"),
    repo_name: str = Query(..., alias="repoName", min_length=1, description="Repository name"),
    since: str | None = Query(default=None, description="Only commits after this ISO 8601 timestamp"),
    page: int = Query(default=1, ge=1, description="First page to fetch"),
    per_page: int = Query(default=100, alias="perPage", ge=1, le=100, description="Commits per page"),
) -> CommitPage:
    """Fetch commits from GitHub.

    Raises:
        HTTPException: 404 if GitHub does not know the repository, 502 for
            any other GitHub failure.
    """
    try:
        return await client.get_commits(org_name, repo_name, since=since, page=page, per_page=per_page)
    except httpx.HTTPStatusError as e:
        if e.response.status_code == status.HTTP_404_NOT_FOUND:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Repository {org_name}/{repo_name} does not exist",
            ) from e
        logger.warning("github_request_failed", error=str(e))
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e
    except httpx.HTTPError as e:
        logger.warning("github_request_failed", error=str(e))
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e


@router.get(
    "/authors/top",
    response_model=list[AuthorCount],
    summary="Top commit authors",
    description="Authors with the most indexed commits across all repositories.",
)
async def top_authors(
    store: StoreDep,
    limit: int = Query(default=10, ge=1, le=100, description="Number of authors"),
) -> list[AuthorCount]:
    """Get the authors with the most indexed commits."""
    return await store.top_authors(limit=limit)
