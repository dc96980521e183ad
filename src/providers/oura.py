"""Oura Ring API v2 provider.

OAuth2 authorization code flow; client credentials travel in the form body.

API base: https://api.ouraring.com

Endpoints used:
    /oauth/token                         — Code exchange and token refresh
    /v2/usercollection/personal_info     — Account id and email
    /v2/usercollection/daily_sleep       — Nightly sleep score
    /v2/usercollection/daily_readiness   — Readiness, average HRV
"""

from __future__ import annotations

import logging
from datetime import date

from src.providers.base import DailyRecord, OAuthProvider, ProfileInfo

logger = logging.getLogger("tracklink.providers.oura")


class OuraProvider(OAuthProvider):
    """Oura Ring API v2 provider.

    Oura's personal_info carries no device name, so the stored device name
    is always the configured sentinel ("Oura Ring").
    """

    SOURCE_ID = "oura"
    ACCOUNT_SETTING_KEY = "oura_user_id"

    def _token_request(self, grant: dict[str, str]) -> tuple[dict[str, str], dict[str, str]]:
        data = {
            **grant,
            "client_id": self._client_id,
            "client_secret": self._client_secret,
        }
        return data, {"Content-Type": "application/x-www-form-urlencoded"}

    def _parse_profile(self, data: dict) -> ProfileInfo:
        account_id = data.get("id")
        if not account_id:
            logger.warning("Oura: personal_info response has no 'id'")
        return ProfileInfo(
            account_id=account_id or None,
            extra={"email": data["email"]} if data.get("email") else {},
        )

    async def fetch_daily_data(
        self, access_token: str, start_date: date, end_date: date
    ) -> list[DailyRecord]:
        """Daily sleep scores and readiness HRV over the range.

        Readiness days without ``average_hrv`` are skipped.
        """
        urls = self.endpoints.data_urls
        params = {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()}
        records: list[DailyRecord] = []

        sleep = await self._get_json(urls["daily_sleep"], access_token, params=params)
        for entry in sleep.get("data") or []:
            records.append(
                DailyRecord(
                    data_type="sleep",
                    recorded_date=date.fromisoformat(entry["day"]),
                    value=entry.get("score"),
                    metadata={
                        "efficiency": entry.get("efficiency"),
                        "duration": entry.get("total_sleep_duration"),
                        "deep_sleep": entry.get("deep_sleep_duration"),
                        "rem_sleep": entry.get("rem_sleep_duration"),
                    },
                    raw_data=entry,
                )
            )

        readiness = await self._get_json(urls["daily_readiness"], access_token, params=params)
        for entry in readiness.get("data") or []:
            if not entry.get("average_hrv"):
                continue
            records.append(
                DailyRecord(
                    data_type="hrv",
                    recorded_date=date.fromisoformat(entry["day"]),
                    value=entry["average_hrv"],
                    metadata={
                        "score": entry.get("score"),
                        "temperature_deviation": entry.get("temperature_deviation"),
                    },
                    raw_data=entry,
                )
            )

        logger.info("Oura: fetched %d records for %s..%s", len(records), start_date, end_date)
        return records
