"""FastAPI application — main entry point.

Run one process per actor over the same database file, e.g.
`ACTOR_ROLE=admin uvicorn learnchat.main:app --port 8000` and
`ACTOR_ROLE=user uvicorn learnchat.main:app --port 8001`.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from learnchat.config import get_settings
from learnchat.core.exceptions import AppError, StorageFailureException, global_exception_handler
from learnchat.core.logging import configure_logging
from learnchat.core.middleware import setup_middleware
from learnchat.interfaces.deps import Services, build_services

from learnchat.interfaces.api.analytics import router as analytics_router
from learnchat.interfaces.api.auth import router as auth_router
from learnchat.interfaces.api.groups import router as groups_router
from learnchat.interfaces.api.messages import router as messages_router
from learnchat.interfaces.api.sync import router as sync_router
from learnchat.interfaces.api.users import router as users_router

settings = get_settings()
logger = structlog.get_logger(__name__)


def create_app(services: Optional[Services] = None, start_reconciler: bool = True) -> FastAPI:
    """Build the app; tests pass their own services wired to a temporary store."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting LearnChat...", env=settings.ENVIRONMENT, actor=settings.ACTOR_ROLE)
        app.state.services = services or build_services()

        try:
            app.state.services.sessions.bootstrap()
        except StorageFailureException as e:
            logger.error("Bootstrap failed, store unavailable", reason=e.message)

        if start_reconciler:
            app.state.services.reconciler.start()

        yield

        app.state.services.reconciler.stop()
        logger.info("LearnChat stopped")

    app = FastAPI(
        title="LearnChat",
        description="Group chat, MCQ broadcast and response analytics for training teams",
        version="1.0.0",
        lifespan=lifespan,
    )

    setup_middleware(app)

    app.add_exception_handler(AppError, global_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(groups_router)
    app.include_router(messages_router)
    app.include_router(analytics_router)
    app.include_router(sync_router)

    @app.get("/")
    def root():
        return {"name": "LearnChat", "actor": settings.ACTOR_ROLE}

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


configure_logging()
app = create_app()
