"""Base classes for OAuth wearable providers.

Every provider subclasses ``OAuthProvider`` and supplies only the parts that
differ between vendors: how the token request is shaped and how the profile
response is read.  The exchange / refresh / profile flow itself is shared.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any

import httpx

from src.errors import UpstreamProviderError
from src.providers.config_loader import ProviderEndpoints, get_provider_config

logger = logging.getLogger("tracklink.providers")


# ---------------------------------------------------------------------------
# Token / profile results
# ---------------------------------------------------------------------------


@dataclass
class TokenSet:
    """OAuth token pair returned after a code exchange or refresh.

    Attributes:
        access_token:  Bearer token for API calls.
        refresh_token: Long-lived token used to obtain a new access_token.
        expires_at:    UTC datetime when the access_token expires.
        token_type:    Token type, typically "Bearer".
        scope:         Granted scope string exactly as the provider returned it.
        extra:         Remaining fields of the token response (e.g. user_id).
    """

    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None
    token_type: str = "Bearer"
    scope: str | None = None
    extra: dict = field(default_factory=dict)

    @property
    def scopes(self) -> list[str]:
        return self.scope.split() if self.scope else []


@dataclass
class ProfileInfo:
    """Minimal identifying profile read from the provider.

    Every field is optional: a missing profile only degrades display metadata.
    """

    account_id: str | None = None
    display_name: str | None = None
    extra: dict = field(default_factory=dict)


@dataclass
class DailyRecord:
    """One day of one metric pulled from a provider.

    Attributes:
        data_type:     'sleep', 'heart_rate' or 'hrv'.
        recorded_date: Calendar day the value belongs to.
        value:         Headline number (sleep efficiency/score, resting HR, HRV).
        metadata:      Secondary fields worth keeping next to the value.
        raw_data:      The provider's JSON for this entry, unmodified.
    """

    data_type: str
    recorded_date: date
    value: float | None = None
    metadata: dict = field(default_factory=dict)
    raw_data: dict = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Abstract provider
# ---------------------------------------------------------------------------


class OAuthProvider(ABC):
    """Abstract base class for OAuth2 authorization-code providers.

    Subclasses must implement:
        - _token_request()
        - _parse_profile()
        - fetch_daily_data()

    Optional overrides:
        - account_id_from_tokens()
        - _token_auth()
    """

    #: Slug stored in the connections table (e.g. 'fitbit', 'oura').
    SOURCE_ID: str = "unknown"

    #: Key under which the provider account id is kept in connection settings.
    ACCOUNT_SETTING_KEY: str = "account_id"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        endpoints: ProviderEndpoints | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            client_id:     OAuth2 client ID.
            client_secret: OAuth2 client secret.  Never logged.
            redirect_uri:  Redirect URI registered with the provider.
            http_client:   Optional pre-configured httpx client (for testing).
            endpoints:     Endpoint overrides; defaults to providers.yaml.
        """
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri or None
        self._http_client = http_client
        self.endpoints = endpoints or get_provider_config().provider(self.SOURCE_ID)

    # ------------------------------------------------------------------
    # Provider-specific hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _token_request(self, grant: dict[str, str]) -> tuple[dict[str, str], dict[str, str]]:
        """Build the form body and headers for a token endpoint POST.

        Args:
            grant: Grant-specific fields (grant_type plus code or refresh_token).

        Returns:
            ``(form_data, headers)`` ready to send.
        """

    @abstractmethod
    def _parse_profile(self, data: dict) -> ProfileInfo:
        """Convert the provider's profile JSON to ProfileInfo.

        Pure function.  Must tolerate missing fields.
        """

    @abstractmethod
    async def fetch_daily_data(
        self, access_token: str, start_date: date, end_date: date
    ) -> list[DailyRecord]:
        """Pull daily health metrics between ``start_date`` and ``end_date``.

        Raises:
            UpstreamProviderError: A data endpoint answered non-2xx.
            httpx.HTTPError:       Transport failure.
        """

    def account_id_from_tokens(self, tokens: TokenSet) -> str | None:
        """Provider account id carried in the token response, if any."""
        return None

    def _token_auth(self) -> httpx.Auth | None:
        """Client authentication for the token endpoint; None sends none."""
        return None

    # ------------------------------------------------------------------
    # Shared flow
    # ------------------------------------------------------------------

    async def exchange_code(self, code: str, state: str | None = None) -> TokenSet:
        """Exchange an authorization code for access + refresh tokens.

        Args:
            code:  Authorization code from the OAuth callback.
            state: Opaque state value; passed through, not validated.

        Raises:
            UpstreamProviderError: If the token endpoint returns non-2xx.
        """
        logger.info("%s: exchanging authorization code", self.SOURCE_ID)
        grant = {"grant_type": "authorization_code", "code": code}
        if self._redirect_uri:
            grant["redirect_uri"] = self._redirect_uri
        return await self._post_token(grant, UpstreamProviderError())

    async def refresh(self, refresh_token: str) -> TokenSet:
        """Obtain a new access token with a stored refresh token.

        The old refresh token is kept when the provider does not rotate it.

        Raises:
            UpstreamProviderError: If the token endpoint returns non-2xx.
        """
        logger.info("%s: refreshing access token", self.SOURCE_ID)
        tokens = await self._post_token(
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            UpstreamProviderError("Failed to refresh access token"),
        )
        if not tokens.refresh_token:
            tokens.refresh_token = refresh_token
        return tokens

    async def fetch_profile(self, access_token: str) -> ProfileInfo:
        """Read the provider profile for the new access token.

        Never raises for provider-side problems: a failed or malformed
        profile response yields an empty ProfileInfo so linking can proceed
        with sentinel device metadata.
        """
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }
        try:
            response = await self._request("GET", self.endpoints.profile_url, headers=headers)
            if not response.is_success:
                logger.warning(
                    "%s: profile fetch returned %s: %s",
                    self.SOURCE_ID,
                    response.status_code,
                    response.text,
                )
                return ProfileInfo()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("%s: profile fetch failed: %s", self.SOURCE_ID, exc)
            return ProfileInfo()

        if not isinstance(data, dict):
            logger.warning("%s: unexpected profile payload type %s", self.SOURCE_ID, type(data).__name__)
            return ProfileInfo()
        return self._parse_profile(data)

    # ------------------------------------------------------------------
    # Connection metadata
    # ------------------------------------------------------------------

    def device_id_for(self, profile: ProfileInfo) -> str:
        return profile.account_id or self.endpoints.default_device_id

    def device_name_for(self, profile: ProfileInfo) -> str:
        return profile.display_name or self.endpoints.default_device_name

    def connection_settings(self, tokens: TokenSet, profile: ProfileInfo) -> dict[str, Any]:
        """Provider-specific settings bag stored with the connection.

        Profile extras (timezone, email) are kept alongside the scope.
        """
        return {
            **profile.extra,
            "scope": tokens.scope,
            self.ACCOUNT_SETTING_KEY: self.account_id_from_tokens(tokens) or profile.account_id,
        }

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    async def _post_token(
        self, grant: dict[str, str], failure: UpstreamProviderError
    ) -> TokenSet:
        data, headers = self._token_request(grant)
        response = await self._request(
            "POST",
            self.endpoints.token_url,
            data=data,
            headers=headers,
            auth=self._token_auth(),
        )
        if not response.is_success:
            # Raw body stays server-side; the caller only gets the fixed message.
            logger.warning(
                "%s: token endpoint returned %s: %s",
                self.SOURCE_ID,
                response.status_code,
                response.text,
            )
            raise failure
        return self._parse_tokens(response.json())

    def _parse_tokens(self, data: dict) -> TokenSet:
        expires_in = self._safe_int(data.get("expires_in"))
        if expires_in is None:
            expires_in = self.endpoints.default_expires_in
        expires_at = datetime.now(timezone.utc).replace(microsecond=0) + timedelta(
            seconds=expires_in
        )
        known = {"access_token", "refresh_token", "expires_in", "token_type", "scope"}
        return TokenSet(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=expires_at,
            token_type=data.get("token_type", "Bearer"),
            scope=data.get("scope"),
            extra={k: v for k, v in data.items() if k not in known},
        )

    async def _get_json(
        self, url: str, access_token: str, params: dict | None = None
    ) -> dict:
        """Authenticated GET against a data endpoint.

        Raises:
            UpstreamProviderError: On non-2xx responses.
            ValueError:            If the body is not a JSON object.
        """
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }
        response = await self._request("GET", url, params=params, headers=headers)
        if not response.is_success:
            logger.warning(
                "%s: data request to %s returned %s: %s",
                self.SOURCE_ID,
                url,
                response.status_code,
                response.text,
            )
            raise UpstreamProviderError(
                f"{self.SOURCE_ID} data request returned {response.status_code}"
            )
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"{self.SOURCE_ID} data response is not an object")
        return data

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._http_client:
            return await self._http_client.request(method, url, **kwargs)
        async with httpx.AsyncClient() as client:
            return await client.request(method, url, **kwargs)

    @staticmethod
    def _safe_int(value: object) -> int | None:
        """Safely coerce a value to int, returning None on failure."""
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None
