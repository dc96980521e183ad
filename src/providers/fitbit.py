"""Fitbit Web API provider.

OAuth2 authorization code flow with HTTP Basic client authentication.

Endpoints used:
    /oauth2/token                          — Code exchange and token refresh
    /1/user/-/profile.json                 — Account profile (encodedId, displayName)
    /1.2/user/-/sleep/date/{start}/{end}   — Sleep logs for a date range
    /1/user/-/activities/heart/date/{day}  — Daily resting heart rate
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

import httpx

from src.providers.base import DailyRecord, OAuthProvider, ProfileInfo, TokenSet

logger = logging.getLogger("tracklink.providers.fitbit")


class FitbitProvider(OAuthProvider):
    """Fitbit Web API provider.

    Fitbit wants the client credentials as an ``Authorization: Basic`` header
    and the client id repeated in the form body.  The token response already
    names the Fitbit user (``user_id``), which is kept in the settings bag.
    """

    SOURCE_ID = "fitbit"
    ACCOUNT_SETTING_KEY = "fitbit_user_id"

    def _token_request(self, grant: dict[str, str]) -> tuple[dict[str, str], dict[str, str]]:
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        return {"client_id": self._client_id, **grant}, headers

    def _token_auth(self) -> httpx.Auth:
        return httpx.BasicAuth(self._client_id, self._client_secret)

    def _parse_profile(self, data: dict) -> ProfileInfo:
        user = data.get("user")
        if not isinstance(user, dict):
            logger.warning("Fitbit: profile response has no 'user' object")
            return ProfileInfo()
        return ProfileInfo(
            account_id=user.get("encodedId") or None,
            display_name=user.get("displayName") or None,
            extra={"timezone": user.get("timezone")} if user.get("timezone") else {},
        )

    def account_id_from_tokens(self, tokens: TokenSet) -> str | None:
        return tokens.extra.get("user_id")

    async def fetch_daily_data(
        self, access_token: str, start_date: date, end_date: date
    ) -> list[DailyRecord]:
        """Sleep logs for the whole range, then resting HR one day at a time.

        The heart-rate series is requested per day from ``end_date`` back to
        the day after ``start_date``.  Naps are skipped; only the main sleep
        of each night is kept.
        """
        urls = self.endpoints.data_urls
        records: list[DailyRecord] = []

        sleep = await self._get_json(
            urls["sleep"].format(start=start_date.isoformat(), end=end_date.isoformat()),
            access_token,
        )
        for entry in sleep.get("sleep") or []:
            if not entry.get("isMainSleep", True):
                continue
            records.append(
                DailyRecord(
                    data_type="sleep",
                    recorded_date=date.fromisoformat(entry["dateOfSleep"]),
                    value=entry.get("efficiency"),
                    metadata={
                        "duration": entry.get("duration"),
                        "minutesAsleep": entry.get("minutesAsleep"),
                        "minutesAwake": entry.get("minutesAwake"),
                    },
                    raw_data=entry,
                )
            )

        day = end_date
        while day > start_date:
            heart = await self._get_json(urls["heart_rate"].format(day=day.isoformat()), access_token)
            series = heart.get("activities-heart") or [{}]
            value = series[0].get("value") or {}
            resting = value.get("restingHeartRate")
            if resting:
                records.append(
                    DailyRecord(
                        data_type="heart_rate",
                        recorded_date=day,
                        value=resting,
                        metadata={"type": "resting", "zones": value.get("heartRateZones")},
                        raw_data=heart,
                    )
                )
            day -= timedelta(days=1)

        logger.info(
            "Fitbit: fetched %d records for %s..%s", len(records), start_date, end_date
        )
        return records
