"""
app.py — FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the repository and services, registers routers, and runs startup
initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from openspace.controllers.auth_controller import router as auth_router
from openspace.controllers.session_controller import router as session_router
from openspace.repository.session_repository import SessionRepository
from openspace.services.auth_service import AuthService
from openspace.services.event_service import TopicEventBroadcaster
from openspace.services.session_service import SessionSchedulingService
from openspace.utils.config import Settings, get_settings
from openspace.utils.logger import get_logger


logger = get_logger("openspace.app")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every dependency is created here and exposed through app.state, so
    controllers resolve services without module-level singletons.
    """
    settings = settings or get_settings()

    repository = SessionRepository(settings)
    broadcaster = TopicEventBroadcaster(settings)
    session_service = SessionSchedulingService(
        repository=repository,
        broadcaster=broadcaster,
        settings=settings,
    )
    auth_service = AuthService(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.include_router(auth_router)
    app.include_router(session_router)

    app.state.settings = settings
    app.state.repository = repository
    app.state.broadcaster = broadcaster
    app.state.session_service = session_service
    app.state.auth_service = auth_service

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    The schema must exist before the demo session is seeded.
    """
    repository: SessionRepository = app.state.repository
    settings: Settings = app.state.settings

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_demo_session:
        logger.info("Startup: seeding demo session (skipped if sessions exist)")
        repository.seed_demo_session_if_empty()

    logger.info("Startup complete — system ready")


# Module-level app object for uvicorn
app = create_app()
