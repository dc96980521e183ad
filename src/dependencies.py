"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request

from src.config import Settings, get_settings
from src.errors import AuthenticationError
from src.providers import ProviderRegistry
from src.services.connections import ConnectionStore
from src.services.health_data import HealthDataStore


@dataclass(frozen=True)
class AuthContext:
    """Authenticated user context resolved from the Supabase session token."""

    user_id: uuid.UUID
    email: str | None = None
    role: str | None = None


async def get_current_user(request: Request) -> AuthContext:
    """Extract the authenticated user from the request state.

    The Supabase auth middleware sets ``request.state.auth`` before routes run.
    """
    auth: AuthContext | None = getattr(request.state, "auth", None)
    if auth is None:
        raise AuthenticationError()
    return auth


def get_app_settings(request: Request) -> Settings:
    """Settings the app was built with (see ``create_app``)."""
    return getattr(request.app.state, "settings", None) or get_settings()


def get_providers(request: Request) -> ProviderRegistry:
    return request.app.state.providers


def get_connection_store(request: Request) -> ConnectionStore:
    return request.app.state.connections


def get_health_data_store(request: Request) -> HealthDataStore:
    return request.app.state.health_data


# Annotated shortcuts for route signatures
CurrentUser = Annotated[AuthContext, Depends(get_current_user)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Providers = Annotated[ProviderRegistry, Depends(get_providers)]
Connections = Annotated[ConnectionStore, Depends(get_connection_store)]
HealthData = Annotated[HealthDataStore, Depends(get_health_data_store)]
