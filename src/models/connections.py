"""Pydantic models for the OAuth callback and connection endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from src.models.base import SuccessBody, TracklinkBase


class OAuthCallbackRequest(TracklinkBase):
    code: str = Field(min_length=1)
    state: str | None = None  # provider round-trip value, not validated


class ConnectionRead(TracklinkBase):
    """A connection as shown to its owner.  Tokens are never included."""

    provider: str
    device_id: str | None = None
    device_name: str | None = None
    settings: dict[str, Any] = Field(default_factory=dict)
    sync_status: str | None = None
    sync_error_message: str | None = None
    last_sync_at: datetime | None = None
    token_expires_at: datetime | None = None
    connected_at: datetime | None = None
    updated_at: datetime | None = None


class RefreshResponse(SuccessBody):
    token_expires_at: datetime | None = None


class SyncRequest(TracklinkBase):
    days: int = Field(default=7, ge=1, le=90)


class SyncResponse(TracklinkBase):
    provider: str
    records_synced: int
    error: str | None = None
