"""
CampusDash — Application entry point.

This is the **only** file that assembles the app.  All business logic
lives in the `api/`, `services/`, `models/`, and `core/` packages.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from campusdash.api.v1.api import api_router
from campusdash.core.config import settings
from campusdash.core.exceptions import (
    ConflictError,
    ValidationError,
    register_exception_handlers,
)
from campusdash.core.limiter import limiter
from campusdash.core.security import CredentialStore, TokenService
from campusdash.db.base import Base
from campusdash.db.session import async_session_factory, engine
from campusdash.graphql.schema import create_graphql_router

# Ensure all models are imported so metadata.create_all can see them
from campusdash.models.dashboard import Dashboard  # noqa: F401
from campusdash.models.user import User  # noqa: F401
from campusdash.services.charts import RandomChartSource
from campusdash.services.users import UserDirectory

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.is_production and settings.uses_insecure_secret:
        raise RuntimeError("Refusing to start in production with the default SECRET_KEY")

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    # Seed default admin user on first run
    async with async_session_factory() as session:
        users = UserDirectory(session, app.state.credentials)
        if await users.find_by_email(settings.FIRST_ADMIN_EMAIL) is None:
            try:
                await users.create(
                    name="System Administrator",
                    email=settings.FIRST_ADMIN_EMAIL,
                    password=settings.FIRST_ADMIN_PASSWORD,
                    role="admin",
                )
                logger.info(
                    "Default admin created: %s (password: <redacted>)",
                    settings.FIRST_ADMIN_EMAIL,
                )
            except ConflictError:
                # another worker seeded it first
                pass
            except ValidationError as exc:
                logger.error("Default admin not created, check FIRST_ADMIN_* settings: %s", exc)

    logger.info("🚀 CampusDash v%s started", settings.VERSION)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Student / teacher / admin dashboard API",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Long-lived services shared by every request
    application.state.credentials = CredentialStore()
    application.state.tokens = TokenService()
    application.state.chart_source = RandomChartSource()
    application.state.limiter = limiter
    application.state.started_at = time.monotonic()

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    # Mount API v1
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    # GraphQL
    application.include_router(create_graphql_router(), prefix=settings.GRAPHQL_PATH)

    return application


app = create_app()
