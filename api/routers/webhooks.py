"""GitHub webhook receiver for the RepoWatch API.

Each tracked repository has its own webhook secret, so the payload is read
once to find the repository before its signature can be checked.
"""

import json
from typing import Any

import structlog
from fastapi import APIRouter, Header, HTTPException, Request, status

from api.dependencies import StoreDep, WebhookProcessorDep
from integrations.github.webhooks import WebhookResult, verify_signature

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


def _repository_key(payload: dict[str, Any]) -> tuple[str, str] | None:
    repository = payload.get("repository")
    if not isinstance(repository, dict):
        return None
    owner = repository.get("owner") or {}
    org_name = owner.get("login") or owner.get("name")
    repo_name = repository.get("name")
    if not org_name or not repo_name:
        return None
    return org_name, repo_name


@router.post(
    "/github",
    response_model=WebhookResult,
    summary="GitHub webhook",
    description="Receive push events for tracked repositories.",
)
async def github_webhook(
    request: Request,
    store: StoreDep,
    processor: WebhookProcessorDep,
    x_github_event: str = Header(..., alias="X-GitHub-Event"),
    x_hub_signature_256: str | None = Header(default=None, alias="X-Hub-Signature-256"),
) -> WebhookResult:
    """Verify and process a GitHub webhook delivery.

    Raises:
        HTTPException: 400 for a malformed payload, 404 if the repository
            is not tracked, 401 if the signature does not match.
    """
    body = await request.body()
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payload is not valid JSON") from e
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payload must be a JSON object")

    key = _repository_key(payload)
    if key is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No repository in payload")
    org_name, repo_name = key

    secret = await store.get_repository_secret(org_name, repo_name)
    if secret is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Repository {org_name}/{repo_name} is not tracked",
        )
    if not verify_signature(secret, body, x_hub_signature_256):
        logger.warning("webhook_signature_mismatch", org=org_name, repo=repo_name, event=x_github_event)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        return await processor.process(x_github_event, payload)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
