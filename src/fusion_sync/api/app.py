"""FastAPI application factory for the sync trigger endpoint."""

from __future__ import annotations

from fastapi import FastAPI

from fusion_sync.config.schema import AppConfig
from fusion_sync.db.repository import Repository
from fusion_sync.sync.batch import BatchRunner


def create_app(
    config: AppConfig,
    repo: Repository,
    runner: BatchRunner,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    from fusion_sync import __version__

    app = FastAPI(
        title="Fusion Sync",
        description="FusionSolar telemetry synchronisation",
        version=__version__,
    )

    # Store collaborators in app state for access in routes
    app.state.config = config
    app.state.repo = repo
    app.state.runner = runner

    from fusion_sync.api.routes.sync import router as sync_router

    app.include_router(sync_router)

    return app
