"""Main FastAPI application for the PartnerHub API."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from partnerhub import __version__
from partnerhub.api.error_handlers import register_error_handlers
from partnerhub.api.rate_limit import limiter
from partnerhub.api.v1.teams import router as teams_router
from partnerhub.api.v1.users import router as users_router
from partnerhub.auth.local import UserService
from partnerhub.logging_config import configure_logging, get_logger
from partnerhub.settings import settings
from partnerhub.storage.db import Database, db
from partnerhub.teams.service import TeamService

logger = get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


def create_app(database: Database | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        database: Database to serve from (defaults to the global instance)

    Returns:
        Configured FastAPI app
    """
    database = database or db
    is_production = settings.env == "production"

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("app_starting", env=settings.env)
        database.create_tables()
        yield
        logger.info("app_shutting_down")

    app = FastAPI(
        title="PartnerHub API",
        description="User and team management",
        version=__version__,
        docs_url=None if is_production else "/api/docs",
        redoc_url=None if is_production else "/api/redoc",
        openapi_url=None if is_production else "/api/openapi.json",
        lifespan=lifespan,
    )

    # Services share the app's database; routes reach them through app.state
    app.state.user_service = UserService(database)
    app.state.team_service = TeamService(database)

    app.add_middleware(SecurityHeadersMiddleware)

    allowed_origins = [
        origin.strip()
        for origin in settings.allowed_origins.split(",")
        if origin.strip()
    ]
    if is_production and "*" in allowed_origins:
        logger.error("cors_wildcard_blocked", message="Wildcard CORS not allowed in production")
        allowed_origins = []

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
        max_age=3600,
    )

    app.state.limiter = limiter
    register_error_handlers(app)

    app.include_router(users_router)
    app.include_router(teams_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": __version__,
            "env": settings.env,
        }

    return app


def get_app() -> FastAPI:
    """Application factory for ``uvicorn --factory``."""
    configure_logging()
    return create_app()
