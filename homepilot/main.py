"""
Main application entry point - FastAPI app instance and configuration.
Run with: uvicorn homepilot.main:app --reload

Startup (lifespan):
1. Create tables when running on SQLite (use alembic elsewhere)
2. Build every service once from settings (see deps.build_services)
3. Start every sync stream when SYNC_AUTOSTART is set

Shutdown cancels the sync loops and the learning worker.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from homepilot.core.config import settings
from homepilot.core.errors import PersistenceError
from homepilot.db.base import Base, import_models
from homepilot.db.session import SessionLocal, engine, get_db
from homepilot.deps import ServiceContainer, build_services
from homepilot.routers import commands, energy, entities, patterns, sync

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("homepilot")


def create_app(services: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the ASGI application.

    Args:
        services: prebuilt service container (tests); built from settings
            at startup when omitted
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if services is not None:
            app.state.services = services
        else:
            if settings.DATABASE_URL.startswith("sqlite"):
                import_models()
                Base.metadata.create_all(bind=engine)
            app.state.services = build_services(settings, SessionLocal)

            if settings.SYNC_AUTOSTART:
                synchronizer = app.state.services.synchronizer
                await synchronizer.start_entity_sync(settings.ENTITY_SYNC_INTERVAL_MINUTES)
                await synchronizer.start_history_tracking(settings.HISTORY_SYNC_INTERVAL_MINUTES)
                await synchronizer.start_energy_analysis(settings.ENERGY_ANALYSIS_INTERVAL_MINUTES)

        logger.info(f"{settings.APP_NAME} started")
        yield

        await app.state.services.shutdown()
        logger.info(f"{settings.APP_NAME} stopped")

    # ---------------------------------------------------------------------------
    # CREATE FASTAPI APPLICATION
    # ---------------------------------------------------------------------------
    app = FastAPI(
        title=settings.APP_NAME,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # ---------------------------------------------------------------------------
    # CORS MIDDLEWARE
    # ---------------------------------------------------------------------------
    # Permissive for a single-home deployment on the local network
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------------------------------------------------------------------------
    # ERROR HANDLING
    # ---------------------------------------------------------------------------
    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError):
        logger.error(f"Storage failure on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Storage is unavailable, try again shortly"},
        )

    # ---------------------------------------------------------------------------
    # REGISTER ROUTERS
    # ---------------------------------------------------------------------------
    # commands.router: /commands natural-language commands + backend stats
    # entities.router: /entities mirror, search and history
    # sync.router:     /sync stream control, monitoring, cleanup
    # patterns.router: /patterns learned patterns, insights, feedback, corrections
    # energy.router:   /energy insights, suggestions, stored analysis
    app.include_router(commands.router)
    app.include_router(entities.router)
    app.include_router(sync.router)
    app.include_router(patterns.router)
    app.include_router(energy.router)

    # ---------------------------------------------------------------------------
    # HEALTH CHECK ENDPOINT
    # ---------------------------------------------------------------------------
    @app.get("/health", tags=["health"])
    def health_check(request: Request, db: Session = Depends(get_db)):
        """
        Liveness plus a quick database check.

        Returns:
            {"status": "ok" | "degraded", "database": bool, "assistant": bool}
        """
        try:
            db.execute(text("SELECT 1"))
            database_ok = True
        except SQLAlchemyError as e:
            logger.warning(f"Health check database query failed: {e}")
            database_ok = False

        assistant_ok = request.app.state.services.interpreter is not None
        return {
            "status": "ok" if database_ok and assistant_ok else "degraded",
            "database": database_ok,
            "assistant": assistant_ok,
        }

    return app


app = create_app()
