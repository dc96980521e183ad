"""Endpoints for the caller's linked wearable connections."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Response

from src.dependencies import Connections, CurrentUser, HealthData, Providers
from src.errors import ConnectionNotFoundError
from src.models.connections import (
    ConnectionRead,
    RefreshResponse,
    SyncRequest,
    SyncResponse,
)
from src.services.linking import refresh_connection, sync_connection

router = APIRouter(prefix="/connections", tags=["connections"])


@router.get("", response_model=list[ConnectionRead])
async def list_connections(user: CurrentUser, store: Connections) -> Any:
    connections = await store.list_for_user(user.user_id)
    return [ConnectionRead.model_validate(c) for c in connections]


@router.delete("/{provider}", status_code=204)
async def disconnect(
    provider: str, user: CurrentUser, providers: Providers, store: Connections
) -> Response:
    providers.get(provider)
    if not await store.delete(user.user_id, provider):
        raise ConnectionNotFoundError()
    return Response(status_code=204)


@router.post("/{provider}/refresh", response_model=RefreshResponse)
async def refresh(
    provider: str, user: CurrentUser, providers: Providers, store: Connections
) -> RefreshResponse:
    """Trade the stored refresh token for a new access token."""
    connection = await refresh_connection(store, providers.get(provider), user.user_id)
    return RefreshResponse(success=True, token_expires_at=connection.token_expires_at)


@router.post("/{provider}/sync", response_model=SyncResponse)
async def sync(
    provider: str,
    user: CurrentUser,
    providers: Providers,
    store: Connections,
    health_data: HealthData,
    body: SyncRequest | None = None,
) -> SyncResponse:
    """Pull recent daily metrics from the provider.

    A failed pull still answers 200; ``error`` says why and the connection
    is marked 'error'.
    """
    result = await sync_connection(
        store,
        health_data,
        providers.get(provider),
        user.user_id,
        days=(body or SyncRequest()).days,
    )
    return SyncResponse(
        provider=result.provider,
        records_synced=result.records_synced,
        error=result.error,
    )
