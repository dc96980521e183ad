"""Shared fixtures and canned API responses for provider tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

FITBIT_TOKEN_URL = "https://api.fitbit.com/oauth2/token"
FITBIT_PROFILE_URL = "https://api.fitbit.com/1/user/-/profile.json"
OURA_TOKEN_URL = "https://api.ouraring.com/oauth/token"
OURA_PROFILE_URL = "https://api.ouraring.com/v2/usercollection/personal_info"
FITBIT_SLEEP_URL = "https://api.fitbit.com/1.2/user/-/sleep/date/{start}/{end}.json"
FITBIT_HEART_URL = "https://api.fitbit.com/1/user/-/activities/heart/date/{day}/1d.json"
OURA_DAILY_SLEEP_URL = "https://api.ouraring.com/v2/usercollection/daily_sleep"
OURA_DAILY_READINESS_URL = "https://api.ouraring.com/v2/usercollection/daily_readiness"


def json_response(status_code: int, payload: object) -> httpx.Response:
    """A real httpx.Response carrying ``payload`` as JSON."""
    return httpx.Response(status_code, json=payload)


def make_client(*responses: httpx.Response | Exception) -> MagicMock:
    """Mock httpx.AsyncClient whose ``request`` returns ``responses`` in order."""
    client = MagicMock()
    client.request = AsyncMock(side_effect=list(responses))
    return client


# ---------------------------------------------------------------------------
# Canned payloads
# ---------------------------------------------------------------------------


@pytest.fixture
def fitbit_token_payload() -> dict:
    return {
        "access_token": "t1",
        "refresh_token": "r1",
        "expires_in": 3600,
        "scope": "activity",
        "token_type": "Bearer",
        "user_id": "XYZ",
    }


@pytest.fixture
def fitbit_profile_payload() -> dict:
    return {
        "user": {
            "encodedId": "XYZ",
            "displayName": "Dana",
            "timezone": "Europe/Berlin",
        }
    }


@pytest.fixture
def oura_token_payload() -> dict:
    return {
        "access_token": "oura-access",
        "refresh_token": "oura-refresh",
        "expires_in": 86400,
        "scope": "daily personal",
        "token_type": "bearer",
    }


@pytest.fixture
def oura_profile_payload() -> dict:
    return {
        "id": "8f9a5221-639e-4a85-81cb-4065ef23f979",
        "age": 41,
        "email": "dana@example.com",
    }


@pytest.fixture
def fitbit_sleep_payload() -> dict:
    return {
        "sleep": [
            {
                "dateOfSleep": "2026-10-18",
                "efficiency": 92,
                "duration": 27000000,
                "minutesAsleep": 410,
                "minutesAwake": 40,
                "isMainSleep": True,
            },
            {
                "dateOfSleep": "2026-10-18",
                "efficiency": 80,
                "duration": 1800000,
                "minutesAsleep": 25,
                "minutesAwake": 5,
                "isMainSleep": False,
            },
        ]
    }


def fitbit_heart_payload(resting: int | None) -> dict:
    value: dict = {"heartRateZones": [{"name": "Fat Burn", "min": 98, "max": 137}]}
    if resting is not None:
        value["restingHeartRate"] = resting
    return {"activities-heart": [{"dateTime": "2026-10-19", "value": value}]}


@pytest.fixture
def oura_daily_sleep_payload() -> dict:
    return {
        "data": [
            {"day": "2026-10-18", "score": 84, "contributors": {"efficiency": 90}},
            {"day": "2026-10-19", "score": 77, "contributors": {"efficiency": 85}},
        ],
        "next_token": None,
    }


@pytest.fixture
def oura_daily_readiness_payload() -> dict:
    return {
        "data": [
            {"day": "2026-10-18", "score": 81, "average_hrv": 48, "temperature_deviation": -0.1},
            {"day": "2026-10-19", "score": 70, "temperature_deviation": 0.3},
        ],
        "next_token": None,
    }
