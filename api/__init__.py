"""RepoWatch - API module for REST endpoints.

This module provides the FastAPI application and all related components
for the RepoWatch commit indexing API.
"""

from .config import Settings, get_settings
from .dependencies import (
    get_github_client,
    get_monitor,
    get_store,
)
from .main import app, create_app

__all__ = [
    "app",
    "create_app",
    "get_github_client",
    "get_monitor",
    "get_settings",
    "get_store",
    "Settings",
]
