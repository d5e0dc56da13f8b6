"""API routers for RepoWatch.

This module exports all API routers for inclusion in the main FastAPI app.
"""

from .commits import router as commits_router
from .health import router as health_router
from .repos import router as repos_router
from .webhooks import router as webhooks_router

__all__ = [
    "commits_router",
    "health_router",
    "repos_router",
    "webhooks_router",
]
