"""Shared fixtures for the API and linking-flow tests."""

from __future__ import annotations

import os
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

# src.main builds a module-level app from the environment on import
os.environ.setdefault("SUPABASE_URL", "https://project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("SUPABASE_DB_URL", "postgresql://postgres@localhost:5432/postgres")

from fastapi.testclient import TestClient  # noqa: E402

from src.config import Settings  # noqa: E402
from src.dependencies import AuthContext  # noqa: E402
from src.main import create_app  # noqa: E402
from src.providers import FitbitProvider, OuraProvider, ProviderRegistry  # noqa: E402
from src.services.connections import ConnectionStore, ExternalConnection  # noqa: E402
from src.services.health_data import HealthDataStore  # noqa: E402

TEST_USER_ID = uuid.UUID("12345678-1234-5678-1234-567812345678")
VALID_TOKEN = "valid-session-token"
AUTH_HEADERS = {"Authorization": f"Bearer {VALID_TOKEN}"}
CONNECTION_ID = uuid.UUID("aaaaaaaa-0000-4000-8000-000000000001")
SYNC_LOG_ID = uuid.UUID("bbbbbbbb-0000-4000-8000-000000000002")


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://project.supabase.co",
        supabase_service_role_key="test-service-role-key",
        supabase_db_url="postgresql://postgres@localhost:5432/postgres",
        fitbit_client_id="fitbit-id",
        fitbit_client_secret="fitbit-secret",
        fitbit_redirect_uri="https://app.example.com/fitbit/callback",
        oura_client_id="oura-id",
        oura_client_secret="oura-secret",
    )


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------


@pytest.fixture
def identity() -> MagicMock:
    """Identity client that accepts only VALID_TOKEN."""

    async def _get_user(token: str) -> AuthContext | None:
        if token == VALID_TOKEN:
            return AuthContext(user_id=TEST_USER_ID, email="dana@example.com", role="authenticated")
        return None

    client = MagicMock()
    client.get_user = AsyncMock(side_effect=_get_user)
    return client


@pytest.fixture
def provider_http() -> MagicMock:
    """httpx client shared by both providers; tests queue responses on ``request``."""
    client = MagicMock()
    client.request = AsyncMock()
    return client


@pytest.fixture
def providers(settings: Settings, provider_http: MagicMock) -> ProviderRegistry:
    return ProviderRegistry(
        {
            "fitbit": FitbitProvider(
                client_id=settings.fitbit_client_id,
                client_secret=settings.fitbit_client_secret,
                redirect_uri=settings.fitbit_redirect_uri,
                http_client=provider_http,
            ),
            "oura": OuraProvider(
                client_id=settings.oura_client_id,
                client_secret=settings.oura_client_secret,
                http_client=provider_http,
            ),
        }
    )


@pytest.fixture
def store() -> MagicMock:
    """ConnectionStore double that echoes back what it is given."""
    fake = MagicMock(spec=ConnectionStore)

    async def _upsert(connection: ExternalConnection) -> ExternalConnection:
        return connection

    fake.upsert = AsyncMock(side_effect=_upsert)
    fake.get = AsyncMock(return_value=None)
    fake.list_for_user = AsyncMock(return_value=[])
    fake.delete = AsyncMock(return_value=True)
    fake.mark_synced = AsyncMock()
    fake.mark_sync_failed = AsyncMock()
    return fake


@pytest.fixture
def health_data() -> MagicMock:
    """HealthDataStore double that reports every record as written."""
    fake = MagicMock(spec=HealthDataStore)

    async def _save(connection: ExternalConnection, records: list) -> int:
        return len(records)

    fake.save_records = AsyncMock(side_effect=_save)
    fake.start_sync_log = AsyncMock(return_value=SYNC_LOG_ID)
    fake.finish_sync_log = AsyncMock()
    return fake


@pytest.fixture
def client(
    settings: Settings,
    identity: MagicMock,
    providers: ProviderRegistry,
    store: MagicMock,
    health_data: MagicMock,
) -> TestClient:
    app = create_app(
        settings,
        identity=identity,
        providers=providers,
        connection_store=store,
        health_data_store=health_data,
    )
    # Unhandled errors must surface as responses, not re-raise into the test
    return TestClient(app, raise_server_exceptions=False)
