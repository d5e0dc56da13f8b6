"""GitHub integration for RepoWatch.

This module provides:
- GitHub API client for repository metadata and commit history
- Webhook signature verification and push event handling
"""

from .client import GitHubClient, GitHubClientConfig
from .models import (
    CommitPage,
    GitHubCommit,
    GitHubRepository,
    WebhookEvent,
    WebhookPayload,
)
from .webhooks import WebhookHandler, WebhookProcessor, WebhookResult, verify_signature

__all__ = [
    # Client
    "GitHubClient",
    "GitHubClientConfig",
    # Models
    "CommitPage",
    "GitHubCommit",
    "GitHubRepository",
    "WebhookEvent",
    "WebhookPayload",
    # Webhooks
    "WebhookHandler",
    "WebhookProcessor",
    "WebhookResult",
    "verify_signature",
]
