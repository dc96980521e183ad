"""Persistence for external wearable connections.

One row per (user_id, provider) in ``health_tracker_connections``.  Writes
go through ``INSERT ... ON CONFLICT (user_id, provider) DO UPDATE`` so
re-linking overwrites instead of duplicating; atomicity of that upsert is
left to Postgres.
"""

from __future__ import annotations

import json
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator

import asyncpg

from src.errors import PersistenceError
from src.services.supabase import execute, fetch, fetchrow

logger = logging.getLogger("tracklink.connections")

_TABLE = "health_tracker_connections"

_UPSERT_SQL = f"""
    INSERT INTO {_TABLE} (
        user_id, provider, access_token, refresh_token, token_expires_at,
        device_id, device_name, settings, sync_status, connected_at, updated_at
    )
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8::jsonb, $9, NOW(), NOW())
    ON CONFLICT (user_id, provider) DO UPDATE SET
        access_token = EXCLUDED.access_token,
        refresh_token = EXCLUDED.refresh_token,
        token_expires_at = EXCLUDED.token_expires_at,
        device_id = EXCLUDED.device_id,
        device_name = EXCLUDED.device_name,
        settings = EXCLUDED.settings,
        sync_status = EXCLUDED.sync_status,
        sync_error_message = NULL,
        updated_at = NOW()
    RETURNING *
"""


@dataclass
class ExternalConnection:
    """A user's linked account at one wearable provider.

    Attributes:
        user_id:          Owning user (Supabase auth user id).
        provider:         Provider slug ('fitbit', 'oura').
        access_token:     Bearer credential.  Secret.
        refresh_token:    Credential for obtaining a new access token.  Secret.
        token_expires_at: UTC instant at which access_token stops working.
        device_id:        Provider account/device id, or the provider sentinel.
        device_name:      Display name, or the provider sentinel.
        settings:         Provider-specific bag (granted scope, account id).
        sync_status:      'active' after a successful link, refresh or sync;
                          'error' after a failed sync.
        sync_error_message: Why the last sync failed, cleared on success.
        last_sync_at:     When data was last pulled successfully.
    """

    user_id: uuid.UUID
    provider: str
    access_token: str
    refresh_token: str | None = None
    token_expires_at: datetime | None = None
    device_id: str | None = None
    device_name: str | None = None
    settings: dict[str, Any] = field(default_factory=dict)
    sync_status: str = "active"
    sync_error_message: str | None = None
    last_sync_at: datetime | None = None
    id: uuid.UUID | None = None
    connected_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, row: asyncpg.Record | dict) -> "ExternalConnection":
        data = dict(row)
        settings = data.get("settings") or {}
        if isinstance(settings, str):
            settings = json.loads(settings)
        return cls(
            user_id=data["user_id"],
            provider=data["provider"],
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            token_expires_at=data.get("token_expires_at"),
            device_id=data.get("device_id"),
            device_name=data.get("device_name"),
            settings=settings,
            sync_status=data.get("sync_status") or "active",
            sync_error_message=data.get("sync_error_message"),
            last_sync_at=data.get("last_sync_at"),
            id=data.get("id"),
            connected_at=data.get("connected_at"),
            updated_at=data.get("updated_at"),
        )


@contextmanager
def storage_errors(
    action: str,
    user_id: uuid.UUID,
    provider: str | None = None,
    *,
    what: str = "connection",
    message: str | None = None,
) -> Iterator[None]:
    """Convert driver failures into PersistenceError, logging the cause."""
    try:
        yield
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
        logger.error(
            "Failed to %s %s user=%s provider=%s: %s",
            action,
            what,
            user_id,
            provider or "*",
            exc,
        )
        raise PersistenceError(message) from exc


class ConnectionStore:
    """Read and write ``health_tracker_connections`` rows."""

    async def upsert(self, connection: ExternalConnection) -> ExternalConnection:
        """Insert or overwrite the row for (user_id, provider)."""
        with storage_errors("save", connection.user_id, connection.provider):
            row = await fetchrow(
                _UPSERT_SQL,
                connection.user_id,
                connection.provider,
                connection.access_token,
                connection.refresh_token,
                connection.token_expires_at,
                connection.device_id,
                connection.device_name,
                json.dumps(connection.settings),
                connection.sync_status,
                user_id=connection.user_id,
            )
        logger.info(
            "Saved %s connection for user %s (device_id=%s)",
            connection.provider,
            connection.user_id,
            connection.device_id,
        )
        return ExternalConnection.from_record(row) if row else connection

    async def get(self, user_id: uuid.UUID, provider: str) -> ExternalConnection | None:
        with storage_errors("load", user_id, provider):
            row = await fetchrow(
                f"SELECT * FROM {_TABLE} WHERE user_id = $1 AND provider = $2",
                user_id,
                provider,
                user_id=user_id,
            )
        return ExternalConnection.from_record(row) if row else None

    async def list_for_user(self, user_id: uuid.UUID) -> list[ExternalConnection]:
        with storage_errors("list", user_id):
            rows = await fetch(
                f"SELECT * FROM {_TABLE} WHERE user_id = $1 ORDER BY connected_at DESC",
                user_id,
                user_id=user_id,
            )
        return [ExternalConnection.from_record(r) for r in rows]

    async def delete(self, user_id: uuid.UUID, provider: str) -> bool:
        """Remove the row for (user_id, provider).  Returns False if none existed."""
        with storage_errors("delete", user_id, provider):
            result = await execute(
                f"DELETE FROM {_TABLE} WHERE user_id = $1 AND provider = $2",
                user_id,
                provider,
                user_id=user_id,
            )
        deleted = result != "DELETE 0"
        if deleted:
            logger.info("Deleted %s connection for user %s", provider, user_id)
        return deleted

    async def mark_synced(self, user_id: uuid.UUID, provider: str) -> None:
        """Record a successful sync: stamp ``last_sync_at`` and clear any error."""
        with storage_errors("mark synced", user_id, provider):
            await execute(
                f"""
                UPDATE {_TABLE}
                SET last_sync_at = NOW(), sync_status = 'active',
                    sync_error_message = NULL, updated_at = NOW()
                WHERE user_id = $1 AND provider = $2
                """,
                user_id,
                provider,
                user_id=user_id,
            )

    async def mark_sync_failed(self, user_id: uuid.UUID, provider: str, error: str) -> None:
        """Record a failed sync; ``last_sync_at`` keeps the last good run."""
        with storage_errors("mark sync failed", user_id, provider):
            await execute(
                f"""
                UPDATE {_TABLE}
                SET sync_status = 'error', sync_error_message = $3, updated_at = NOW()
                WHERE user_id = $1 AND provider = $2
                """,
                user_id,
                provider,
                error,
                user_id=user_id,
            )
