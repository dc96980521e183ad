"""Tracklink API — FastAPI application entry point.

Run locally:
    uvicorn src.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from src.config import Settings, get_settings
from src.errors import AuthenticationError, TracklinkError
from src.middleware.cors import CORS_HEADERS, FixedCorsMiddleware
from src.middleware.supabase_auth import SupabaseAuthMiddleware
from src.providers import ProviderRegistry, build_providers
from src.routers import connections, health, oauth
from src.services.connections import ConnectionStore
from src.services.health_data import HealthDataStore
from src.services.identity import SupabaseIdentity
from src.services.supabase import close_pool, init_pool

# ---------- Logging ----------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("tracklink")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings: Settings = app.state.settings
    logger.info(
        "Starting Tracklink API v%s [%s]",
        settings.app_version,
        settings.environment,
    )
    await init_pool(settings)
    yield
    await close_pool()
    logger.info("Tracklink API shut down")


# ---------- Error handlers ----------

async def _tracklink_error(request: Request, exc: TracklinkError) -> Response:
    if isinstance(exc, AuthenticationError):
        return PlainTextResponse(exc.message, status_code=exc.status_code)
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


async def _validation_error(request: Request, exc: RequestValidationError) -> Response:
    logger.info("Invalid request body on %s: %s", request.url.path, exc.errors())
    return JSONResponse({"error": "Invalid request body"}, status_code=400)


async def _unhandled_error(request: Request, exc: Exception) -> Response:
    # Runs outside the middleware stack, so CORS headers are added here.
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        {"error": "Internal server error"}, status_code=500, headers=CORS_HEADERS
    )


# ---------- App factory ----------

def create_app(
    settings: Settings | None = None,
    *,
    identity: SupabaseIdentity | None = None,
    providers: ProviderRegistry | None = None,
    connection_store: ConnectionStore | None = None,
    health_data_store: HealthDataStore | None = None,
) -> FastAPI:
    """Build the application.

    Collaborators default to the real Supabase / provider clients built from
    ``settings``; pass them explicitly to run without a live environment.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Tracklink API",
        description="Links Fitbit and Oura accounts to users via OAuth and syncs their daily metrics.",
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.identity = identity or SupabaseIdentity(settings)
    app.state.providers = providers or build_providers(settings)
    app.state.connections = connection_store or ConnectionStore()
    app.state.health_data = health_data_store or HealthDataStore()

    app.add_exception_handler(TracklinkError, _tracklink_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(Exception, _unhandled_error)

    # ---------- Middleware (order matters — last added is outermost) ----------

    # Supabase session verification
    app.add_middleware(SupabaseAuthMiddleware)

    # Fixed CORS headers — outermost so 401s and preflights carry them too
    app.add_middleware(FixedCorsMiddleware)

    # ---------- Health check (outside v1 prefix — always at /health) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    v1_prefix = "/api/v1"

    app.include_router(oauth.router, prefix=v1_prefix)
    app.include_router(connections.router, prefix=v1_prefix)

    return app


app = create_app()
