"""GitHub webhook handling for RepoWatch.

This module verifies webhook signatures and routes events to handlers.
Push events carry the pushed commits, which are handed straight to the
indexing pipeline without another round trip to the GitHub API.
"""

import hashlib
import hmac
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .models import GitHubCommit, PushCommit, WebhookEvent, WebhookPayload

logger = structlog.get_logger(__name__)

SIGNATURE_PREFIX = "sha256="

CommitCallback = Callable[[str, str, list[GitHubCommit]], Awaitable[None]]


def compute_signature(secret: str, body: bytes) -> str:
    """Compute the ``X-Hub-Signature-256`` value for a payload."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Check a webhook body against its ``X-Hub-Signature-256`` header.

    Args:
        secret: Webhook secret shared with GitHub.
        body: Raw request body.
        signature: Header value, ``sha256=<hexdigest>``.

    Returns:
        True if the signature matches.
    """
    if not signature or not signature.startswith(SIGNATURE_PREFIX):
        return False
    return hmac.compare_digest(compute_signature(secret, body), signature)


def push_commit_to_commit(commit: PushCommit) -> GitHubCommit:
    """Convert a push payload commit into a commit record."""
    author = commit.author or {}
    return GitHubCommit(
        commit_message=commit.message,
        author=author.get("name"),
        commit_date=commit.timestamp,
        commit_url=commit.url,
    )


class WebhookResult(BaseModel):
    """Result of processing a webhook."""

    model_config = ConfigDict(frozen=True)

    success: bool = Field(..., description="Whether processing succeeded")
    event_type: str = Field(..., description="Event type processed")
    message: str = Field(default="", description="Result message")
    data: dict[str, Any] = Field(default_factory=dict, description="Result data")


class WebhookHandler(ABC):
    """Abstract base class for webhook handlers."""

    @abstractmethod
    def can_handle(self, event_type: WebhookEvent) -> bool:
        """Check if this handler can process the event."""

    @abstractmethod
    async def handle(self, payload: WebhookPayload) -> WebhookResult:
        """Handle the webhook event.

        Args:
            payload: Parsed webhook payload.

        Returns:
            WebhookResult with processing outcome.
        """


class PushEventHandler(WebhookHandler):
    """Handler for push events.

    Forwards the pushed commits of the repository to a callback.
    """

    def __init__(self, commit_callback: CommitCallback | None = None) -> None:
        """Initialize handler.

        Args:
            commit_callback: Async callable receiving
                ``(org_name, repo_name, commits)``.
        """
        self._commit_callback = commit_callback
        self._logger = logger.bind(handler="push")

    def can_handle(self, event_type: WebhookEvent) -> bool:
        return event_type == WebhookEvent.PUSH

    async def handle(self, payload: WebhookPayload) -> WebhookResult:
        repo = payload.repository
        if not repo:
            return WebhookResult(
                success=False,
                event_type=WebhookEvent.PUSH.value,
                message="No repository in payload",
            )

        org_name = repo.owner.login
        commits = [push_commit_to_commit(c) for c in payload.commits or []]

        self._logger.info(
            "push_received",
            org=org_name,
            repo=repo.name,
            ref=payload.ref,
            commits=len(commits),
        )

        if commits and self._commit_callback:
            await self._commit_callback(org_name, repo.name, commits)

        return WebhookResult(
            success=True,
            event_type=WebhookEvent.PUSH.value,
            message=f"Queued {len(commits)} commits from push to {payload.ref or 'unknown ref'}",
            data={
                "orgName": org_name,
                "repoName": repo.name,
                "ref": payload.ref,
                "commits": len(commits),
            },
        )


class PingEventHandler(WebhookHandler):
    """Acknowledges the ping GitHub sends when a webhook is created."""

    def can_handle(self, event_type: WebhookEvent) -> bool:
        return event_type == WebhookEvent.PING

    async def handle(self, payload: WebhookPayload) -> WebhookResult:
        return WebhookResult(
            success=True,
            event_type=WebhookEvent.PING.value,
            message=payload.zen or "pong",
        )


class WebhookProcessor:
    """Processes GitHub webhooks by routing to appropriate handlers."""

    def __init__(self) -> None:
        """Initialize the processor."""
        self._handlers: list[WebhookHandler] = []
        self._logger = logger.bind(component="webhook_processor")

    def register_handler(self, handler: WebhookHandler) -> None:
        """Register a webhook handler.

        Args:
            handler: Handler to register.
        """
        self._handlers.append(handler)

    def register_defaults(self, commit_callback: CommitCallback | None = None) -> None:
        """Register the push and ping handlers.

        Args:
            commit_callback: Callback for pushed commits.
        """
        self.register_handler(PushEventHandler(commit_callback))
        self.register_handler(PingEventHandler())

    @staticmethod
    def parse_payload(raw_payload: dict[str, Any]) -> WebhookPayload:
        """Parse raw webhook JSON.

        Raises:
            ValueError: If the payload does not have the expected shape.
        """
        try:
            return WebhookPayload.model_validate(raw_payload)
        except ValidationError as e:
            raise ValueError(f"Invalid webhook payload: {e}") from e

    async def process(self, event_type: str, raw_payload: dict[str, Any]) -> WebhookResult:
        """Process a webhook event.

        Events without a registered handler are acknowledged and ignored.

        Args:
            event_type: X-GitHub-Event header value.
            raw_payload: Raw JSON payload.

        Returns:
            WebhookResult from the handler.

        Raises:
            ValueError: If the payload cannot be parsed.
        """
        try:
            event = WebhookEvent(event_type)
        except ValueError:
            self._logger.debug("unsupported_event", event_type=event_type)
            return WebhookResult(success=True, event_type=event_type, message="Event ignored")

        payload = self.parse_payload(raw_payload)
        self._logger.info("processing_webhook", event_type=event.value, action=payload.action)

        for handler in self._handlers:
            if handler.can_handle(event):
                return await handler.handle(payload)

        self._logger.debug("no_handler_for_event", event_type=event.value)
        return WebhookResult(
            success=True,
            event_type=event.value,
            message="No handler registered for this event",
        )
