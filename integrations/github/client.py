"""GitHub API client for RepoWatch.

This module provides an async client for the parts of the GitHub REST API
the indexing pipeline needs: repository metadata and paginated commit lists.
Authentication is via personal access token or GitHub App installation token;
unauthenticated access works but is heavily rate limited.
"""

import time
from typing import Any

import httpx
import jwt
import structlog
from pydantic import BaseModel, ConfigDict, Field

from .models import CommitPage, GitHubCommit, GitHubRepository

logger = structlog.get_logger(__name__)


class GitHubClientConfig(BaseModel):
    """Configuration for GitHub client."""

    model_config = ConfigDict(frozen=True)

    # GitHub App authentication
    app_id: int | None = Field(None, description="GitHub App ID")
    private_key: str | None = Field(None, description="GitHub App private key (PEM)")
    installation_id: int | None = Field(None, description="Installation ID")

    # Personal access token authentication
    access_token: str | None = Field(None, description="Personal access token")

    # API settings
    base_url: str = Field(default="https://api.github.com", description="API base URL")
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    max_retries: int = Field(default=3, description="Maximum retry attempts")
    per_page: int = Field(default=100, description="Default commits per page")


class GitHubClient:
    """Async GitHub API client.

    Commit fetches are exhaustive: pages are requested until GitHub returns
    an empty one, so a single call on a large repository can issue many
    requests. Callers should treat it as a long-running operation.
    """

    def __init__(
        self,
        config: GitHubClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the GitHub client.

        Args:
            config: Client configuration.
            transport: Optional custom transport (used by tests).
        """
        self.config = config
        self._transport = transport
        self._logger = logger.bind(component="github_client")
        self._http_client: httpx.AsyncClient | None = None
        self._installation_token: str | None = None
        self._token_expires_at: float = 0

    async def __aenter__(self) -> "GitHubClient":
        """Enter async context."""
        await self._ensure_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Exit async context."""
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure HTTP client is initialized."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                headers={"Accept": "application/vnd.github+json"},
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def _generate_jwt(self) -> str:
        """Generate a JWT for GitHub App authentication.

        Returns:
            JWT token string.
        """
        if not self.config.app_id or not self.config.private_key:
            raise ValueError("GitHub App credentials not configured")

        now = int(time.time())
        payload = {
            "iat": now - 60,  # clock drift allowance
            "exp": now + 600,
            "iss": str(self.config.app_id),
        }

        token: str = jwt.encode(payload, self.config.private_key, algorithm="RS256")
        return token

    async def _get_installation_token(self) -> str:
        """Get or refresh installation access token.

        Returns:
            Installation access token.
        """
        if self._installation_token and time.time() < self._token_expires_at - 60:
            return self._installation_token

        if not self.config.installation_id:
            raise ValueError("Installation ID not configured")

        client = await self._ensure_client()
        jwt_token = self._generate_jwt()

        response = await client.post(
            f"/app/installations/{self.config.installation_id}/access_tokens",
            headers={"Authorization": f"Bearer {jwt_token}"},
        )
        response.raise_for_status()

        data = response.json()
        token: str = data["token"]
        self._installation_token = token
        # Installation tokens live for one hour
        self._token_expires_at = time.time() + 3600

        self._logger.debug("obtained_installation_token")
        return token

    async def _get_auth_header(self) -> dict[str, str]:
        """Get authorization header for API requests."""
        if self.config.access_token:
            return {"Authorization": f"Bearer {self.config.access_token}"}
        elif self.config.app_id:
            token = await self._get_installation_token()
            return {"Authorization": f"Bearer {token}"}
        else:
            return {}

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any] | list[Any]:
        """Make an authenticated API request.

        Server errors are retried up to ``max_retries`` times; anything else
        raises ``httpx.HTTPStatusError`` immediately.

        Args:
            method: HTTP method.
            path: API path.
            params: Query parameters.

        Returns:
            Response JSON data.
        """
        client = await self._ensure_client()
        headers = await self._get_auth_header()

        for attempt in range(self.config.max_retries):
            try:
                response = await client.request(
                    method=method,
                    url=path,
                    params=params,
                    headers=headers,
                )

                if response.status_code == 401 and self.config.app_id and not self.config.access_token:
                    self._installation_token = None
                    headers = await self._get_auth_header()
                    continue

                response.raise_for_status()
                result: dict[str, Any] | list[Any] = response.json()
                return result

            except httpx.HTTPStatusError as e:
                if attempt < self.config.max_retries - 1 and e.response.status_code >= 500:
                    self._logger.warning(
                        "request_failed_retrying",
                        path=path,
                        attempt=attempt + 1,
                        status=e.response.status_code,
                    )
                    continue
                raise

        raise httpx.HTTPError(f"GitHub request {method} {path} failed after {self.config.max_retries} attempts")

    # Repository operations

    async def get_repository(self, owner: str, repo: str) -> GitHubRepository | None:
        """Get repository metadata.

        Args:
            owner: Repository owner (organization or user).
            repo: Repository name.

        Returns:
            GitHubRepository, or None if GitHub reports the repository does
            not exist.
        """
        try:
            data = await self._request("GET", f"/repos/{owner}/{repo}")
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                self._logger.info("repository_not_found", owner=owner, repo=repo)
                return None
            raise
        return self._parse_repository(data)  # type: ignore[arg-type]

    # Commit operations

    async def get_commit_page(
        self,
        owner: str,
        repo: str,
        since: str | None = None,
        page: int = 1,
        per_page: int | None = None,
    ) -> list[GitHubCommit]:
        """Fetch a single page of commits.

        Args:
            owner: Repository owner.
            repo: Repository name.
            since: Passed through to GitHub as the ``since`` filter.
            page: 1-based page number.
            per_page: Page size; defaults to the configured page size.

        Returns:
            Commits on that page, in GitHub's order.
        """
        params: dict[str, Any] = {"page": page, "per_page": per_page or self.config.per_page}
        if since:
            params["since"] = since

        data = await self._request("GET", f"/repos/{owner}/{repo}/commits", params=params)
        if not isinstance(data, list):
            return []
        return [self._parse_commit(c) for c in data]

    async def get_commits(
        self,
        owner: str,
        repo: str,
        since: str | None = None,
        page: int = 1,
        per_page: int | None = None,
    ) -> CommitPage:
        """Fetch every commit page until GitHub returns an empty one.

        Pages are requested in increasing order and concatenated in that
        order. The ``since`` value is not re-applied locally; boundary
        duplicates are left to the indexing worker.

        Args:
            owner: Repository owner.
            repo: Repository name.
            since: Passed through to GitHub as the ``since`` filter.
            page: First page to request.
            per_page: Page size; defaults to the configured page size.

        Returns:
            CommitPage with all fetched commits.
        """
        commits: list[GitHubCommit] = []
        current = page

        while True:
            batch = await self.get_commit_page(owner, repo, since=since, page=current, per_page=per_page)
            if not batch:
                break
            commits.extend(batch)
            current += 1

        self._logger.debug(
            "commits_fetched",
            owner=owner,
            repo=repo,
            pages=current - page,
            total=len(commits),
        )
        return CommitPage(total_records=len(commits), commits=commits)

    # Parsing helpers

    def _parse_repository(self, data: dict[str, Any]) -> GitHubRepository:
        """Parse repository data."""
        return GitHubRepository(
            name=data["name"],
            description=data.get("description"),
            url=data.get("html_url", ""),
            language=data.get("language"),
            forks_count=data.get("forks_count") or 0,
            stars_count=data.get("stargazers_count") or 0,
            open_issues_count=data.get("open_issues_count") or 0,
            watchers_count=data.get("watchers_count") or 0,
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )

    def _parse_commit(self, data: dict[str, Any]) -> GitHubCommit:
        """Parse commit data.

        Accepts the REST shape (``commit.message``, ``commit.author``,
        ``html_url``) as well as a flattened one (``message``, ``author``,
        ``url``).
        """
        commit_data = data.get("commit") or data
        author_data = commit_data.get("author") or {}

        return GitHubCommit(
            commit_message=commit_data.get("message", data.get("message", "")),
            author=author_data.get("name") if isinstance(author_data, dict) else None,
            commit_date=author_data.get("date") if isinstance(author_data, dict) else None,
            commit_url=data.get("html_url") or data.get("url", ""),
        )
