"""Supabase session verification middleware for FastAPI.

Resolves the Bearer token on every request (except public routes) against
Supabase Auth and sets ``request.state.auth`` with the authenticated user
context that route handlers consume via ``get_current_user``.

A missing or rejected token ends the request here with a plain-text 401,
before any provider or database call.
"""

from __future__ import annotations

import logging

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = logging.getLogger("tracklink.auth")

# Paths that do not require authentication
PUBLIC_PATHS: set[str] = {
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
}


def _is_public(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith("/docs") or path.startswith("/redoc")


def _unauthorized() -> Response:
    return Response(content="Unauthorized", status_code=401, media_type="text/plain")


class SupabaseAuthMiddleware(BaseHTTPMiddleware):
    """Resolve Supabase sessions and populate request.state.auth.

    The identity client is read from ``app.state.identity`` so tests can
    swap it without touching the middleware stack.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if _is_public(request.url.path):
            return await call_next(request)

        # OPTIONS requests pass through (CORS preflight)
        if request.method == "OPTIONS":
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            logger.info("Rejected %s %s: missing bearer token", request.method, request.url.path)
            return _unauthorized()

        token = auth_header.removeprefix("Bearer ").strip()
        if not token:
            return _unauthorized()

        auth = await request.app.state.identity.get_user(token)
        if auth is None:
            return _unauthorized()

        request.state.auth = auth
        return await call_next(request)
