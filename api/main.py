"""FastAPI application for RepoWatch.

``create_app`` wires the routers and middleware; ``lifespan`` connects the
database and Redis, and starts the repository monitor (and, when enabled,
the embedded persist worker) for the lifetime of the process.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.indexing.monitor import RepositoryNotFoundError, RepositoryNotTrackedError, RepoWatchError
from core.logging import configure_logging

from .config import Settings, get_settings
from .dependencies import init_dependencies, shutdown_dependencies
from .middleware import RequestLoggingMiddleware, TimingMiddleware
from .routers import commits_router, health_router, repos_router, webhooks_router

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Bring the pipeline up before serving and tear it down afterwards."""
    settings = get_settings()
    logger.info(
        "app_starting",
        app=settings.app_name,
        version=settings.app_version,
        monitor=settings.start_monitor,
        embedded_worker=settings.embedded_worker,
    )

    try:
        await init_dependencies(settings)
    except Exception as e:
        logger.error("dependencies_init_failed", error=str(e))
        await shutdown_dependencies()
        raise

    yield

    logger.info("app_shutting_down")
    await shutdown_dependencies()
    logger.info("app_shutdown_complete")


async def _domain_error(request: Request, exc: RepoWatchError) -> JSONResponse:
    code = status.HTTP_400_BAD_REQUEST
    if isinstance(exc, (RepositoryNotFoundError, RepositoryNotTrackedError)):
        code = status.HTTP_404_NOT_FOUND
    return JSONResponse(status_code=code, content={"detail": str(exc)})


async def _origin_error(request: Request, exc: httpx.HTTPError) -> JSONResponse:
    logger.warning("github_request_failed", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": f"GitHub request failed: {exc}"},
    )


def _include_routers(app: FastAPI, settings: Settings) -> None:
    # Health and webhook routes live at the root
    app.include_router(health_router)
    app.include_router(webhooks_router)

    app.include_router(repos_router, prefix=settings.api_prefix)
    app.include_router(commits_router, prefix=settings.api_prefix)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.log_json)

    app = FastAPI(
        title=settings.app_name,
        description=(
            "Keeps a local index of the commit history of tracked GitHub "
            "repositories. Register repositories, query indexed commits, and "
            "receive push webhooks."
        ),
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(TimingMiddleware)

    app.add_exception_handler(RepoWatchError, _domain_error)
    app.add_exception_handler(httpx.HTTPError, _origin_error)

    _include_routers(app, settings)

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Service name, version and entry points."""
        return JSONResponse(
            content={
                "name": settings.app_name,
                "version": settings.app_version,
                "docs": "/docs",
                "health": "/health",
                "webhook": "/webhooks/github",
            }
        )

    return app


app = create_app()
