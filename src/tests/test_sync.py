"""Unit tests for the data sync flow."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.errors import ConnectionNotFoundError, PersistenceError, UpstreamProviderError
from src.providers.base import DailyRecord
from src.providers.oura import OuraProvider
from src.services.connections import ExternalConnection
from src.services.linking import SyncResult, sync_connection
from src.tests.conftest import CONNECTION_ID, SYNC_LOG_ID, TEST_USER_ID

RECORDS = [
    DailyRecord(data_type="sleep", recorded_date=date(2026, 10, 18), value=84),
    DailyRecord(data_type="hrv", recorded_date=date(2026, 10, 18), value=48),
]


@pytest.fixture
def oura() -> OuraProvider:
    provider = OuraProvider(client_id="id", client_secret="secret")
    provider.fetch_daily_data = AsyncMock(return_value=RECORDS)
    return provider


@pytest.fixture
def existing(store: MagicMock) -> ExternalConnection:
    connection = ExternalConnection(
        user_id=TEST_USER_ID,
        provider="oura",
        access_token="oura-access",
        refresh_token="oura-refresh",
        token_expires_at=datetime(2026, 10, 20, tzinfo=timezone.utc),
        device_id="oura-user-1",
        device_name="Oura Ring",
        id=CONNECTION_ID,
    )
    store.get.return_value = connection
    return connection


class TestSyncSuccess:
    @pytest.mark.asyncio
    async def test_fetches_window_ending_today(
        self, oura: OuraProvider, store: MagicMock, health_data: MagicMock, existing
    ) -> None:
        await sync_connection(store, health_data, oura, TEST_USER_ID, days=7)

        access_token, start, end = oura.fetch_daily_data.await_args.args
        assert access_token == "oura-access"
        assert end == datetime.now(timezone.utc).date()
        assert end - start == timedelta(days=7)

    @pytest.mark.asyncio
    async def test_saves_records_and_marks_synced(
        self, oura: OuraProvider, store: MagicMock, health_data: MagicMock, existing
    ) -> None:
        result = await sync_connection(store, health_data, oura, TEST_USER_ID)

        assert result == SyncResult(provider="oura", records_synced=2)
        health_data.save_records.assert_awaited_once_with(existing, RECORDS)
        health_data.start_sync_log.assert_awaited_once_with(existing)
        health_data.finish_sync_log.assert_awaited_once_with(existing, SYNC_LOG_ID, 2)
        store.mark_synced.assert_awaited_once_with(TEST_USER_ID, "oura")
        store.mark_sync_failed.assert_not_called()

    @pytest.mark.asyncio
    async def test_default_window_is_seven_days(
        self, oura: OuraProvider, store: MagicMock, health_data: MagicMock, existing
    ) -> None:
        await sync_connection(store, health_data, oura, TEST_USER_ID)

        _, start, end = oura.fetch_daily_data.await_args.args
        assert end - start == timedelta(days=7)


class TestSyncFailure:
    @pytest.mark.asyncio
    async def test_missing_connection_raises(
        self, oura: OuraProvider, store: MagicMock, health_data: MagicMock
    ) -> None:
        with pytest.raises(ConnectionNotFoundError):
            await sync_connection(store, health_data, oura, TEST_USER_ID)

        oura.fetch_daily_data.assert_not_called()
        health_data.start_sync_log.assert_not_called()

    @pytest.mark.asyncio
    async def test_provider_error_marks_connection_error(
        self, oura: OuraProvider, store: MagicMock, health_data: MagicMock, existing
    ) -> None:
        oura.fetch_daily_data.side_effect = UpstreamProviderError("oura data request returned 401")

        result = await sync_connection(store, health_data, oura, TEST_USER_ID)

        assert result == SyncResult(
            provider="oura", records_synced=0, error="oura data request returned 401"
        )
        health_data.save_records.assert_not_called()
        health_data.finish_sync_log.assert_awaited_once_with(
            existing, SYNC_LOG_ID, 0, error="oura data request returned 401"
        )
        store.mark_sync_failed.assert_awaited_once_with(
            TEST_USER_ID, "oura", "oura data request returned 401"
        )
        store.mark_synced.assert_not_called()

    @pytest.mark.asyncio
    async def test_transport_error_is_recorded(
        self, oura: OuraProvider, store: MagicMock, health_data: MagicMock, existing
    ) -> None:
        oura.fetch_daily_data.side_effect = httpx.ConnectError("connection refused")

        result = await sync_connection(store, health_data, oura, TEST_USER_ID)

        assert result.error == "connection refused"
        assert store.mark_sync_failed.await_args.args[2] == "connection refused"

    @pytest.mark.asyncio
    async def test_save_failure_is_recorded(
        self, oura: OuraProvider, store: MagicMock, health_data: MagicMock, existing
    ) -> None:
        health_data.save_records.side_effect = PersistenceError("Failed to save health data")

        result = await sync_connection(store, health_data, oura, TEST_USER_ID)

        assert result.records_synced == 0
        assert result.error == "Failed to save health data"
        store.mark_sync_failed.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_sync_log_failure_propagates(
        self, oura: OuraProvider, store: MagicMock, health_data: MagicMock, existing
    ) -> None:
        health_data.start_sync_log.side_effect = PersistenceError("Failed to save health data")

        with pytest.raises(PersistenceError):
            await sync_connection(store, health_data, oura, TEST_USER_ID)

        oura.fetch_daily_data.assert_not_called()
