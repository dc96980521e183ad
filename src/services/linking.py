"""The external-credential linking flow.

    Received → Authenticated → TokenExchanged → ProfileResolved (optional)
             → Persisted → Responded

A linked connection can later be synced: daily metrics are pulled with the
stored access token and written to ``health_tracker_data``, with every run
recorded in ``health_tracker_sync_logs``.

Authentication happens in middleware before these functions run.  Token
exchange failures abort; profile failures only fall back to sentinel
device metadata.  Nothing here retries.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import httpx

from src.errors import (
    ConnectionNotFoundError,
    MissingRefreshTokenError,
    PersistenceError,
    UpstreamProviderError,
)
from src.providers.base import OAuthProvider
from src.services.connections import ConnectionStore, ExternalConnection
from src.services.health_data import HealthDataStore

logger = logging.getLogger("tracklink.linking")


async def link_connection(
    store: ConnectionStore,
    provider: OAuthProvider,
    user_id: uuid.UUID,
    code: str,
    state: str | None = None,
) -> ExternalConnection:
    """Exchange ``code`` with the provider and save the resulting connection.

    Raises:
        UpstreamProviderError: The provider rejected the code.
        PersistenceError:      The upsert failed.
    """
    tokens = await provider.exchange_code(code, state=state)
    profile = await provider.fetch_profile(tokens.access_token)

    connection = ExternalConnection(
        user_id=user_id,
        provider=provider.SOURCE_ID,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_expires_at=tokens.expires_at,
        device_id=provider.device_id_for(profile),
        device_name=provider.device_name_for(profile),
        settings=provider.connection_settings(tokens, profile),
    )
    saved = await store.upsert(connection)
    logger.info("Linked %s for user %s", provider.SOURCE_ID, user_id)
    return saved


async def refresh_connection(
    store: ConnectionStore,
    provider: OAuthProvider,
    user_id: uuid.UUID,
) -> ExternalConnection:
    """Refresh the stored access token and overwrite the connection's tokens.

    Raises:
        ConnectionNotFoundError:  No connection for (user_id, provider).
        MissingRefreshTokenError: The connection has no refresh token.
        UpstreamProviderError:    The provider rejected the refresh token.
        PersistenceError:         Loading or saving failed.
    """
    existing = await store.get(user_id, provider.SOURCE_ID)
    if existing is None:
        raise ConnectionNotFoundError()
    if not existing.refresh_token:
        raise MissingRefreshTokenError()

    tokens = await provider.refresh(existing.refresh_token)

    existing.access_token = tokens.access_token
    existing.refresh_token = tokens.refresh_token
    existing.token_expires_at = tokens.expires_at
    existing.sync_status = "active"
    if tokens.scope:
        existing.settings = {**existing.settings, "scope": tokens.scope}

    saved = await store.upsert(existing)
    logger.info("Refreshed %s token for user %s", provider.SOURCE_ID, user_id)
    return saved


@dataclass
class SyncResult:
    """Outcome of one sync run.  ``error`` is set when the run failed."""

    provider: str
    records_synced: int
    error: str | None = None


async def sync_connection(
    store: ConnectionStore,
    health_data: HealthDataStore,
    provider: OAuthProvider,
    user_id: uuid.UUID,
    days: int = 7,
) -> SyncResult:
    """Pull the last ``days`` days of metrics for the caller's connection.

    Provider and storage failures during the pull do not raise: the run is
    logged as 'failed', the connection is marked 'error' with the message,
    and the result carries the error.

    Raises:
        ConnectionNotFoundError: No connection for (user_id, provider).
        PersistenceError:        The sync bookkeeping itself could not be written.
    """
    connection = await store.get(user_id, provider.SOURCE_ID)
    if connection is None:
        raise ConnectionNotFoundError()

    end_date = datetime.now(timezone.utc).date()
    start_date = end_date - timedelta(days=days)
    log_id = await health_data.start_sync_log(connection)

    try:
        records = await provider.fetch_daily_data(connection.access_token, start_date, end_date)
        synced = await health_data.save_records(connection, records)
    except (UpstreamProviderError, PersistenceError, httpx.HTTPError, KeyError, ValueError) as exc:
        error = str(exc) or type(exc).__name__
        logger.warning("Sync of %s failed for user %s: %s", provider.SOURCE_ID, user_id, error)
        await health_data.finish_sync_log(connection, log_id, 0, error=error)
        await store.mark_sync_failed(user_id, provider.SOURCE_ID, error)
        return SyncResult(provider=provider.SOURCE_ID, records_synced=0, error=error)

    await health_data.finish_sync_log(connection, log_id, synced)
    await store.mark_synced(user_id, provider.SOURCE_ID)
    logger.info(
        "Synced %d %s records for user %s (%s..%s)",
        synced,
        provider.SOURCE_ID,
        user_id,
        start_date,
        end_date,
    )
    return SyncResult(provider=provider.SOURCE_ID, records_synced=synced)
