"""Supabase Auth client: resolve the current user from a session token."""

from __future__ import annotations

import logging
import uuid

import httpx

from src.config import Settings, get_settings
from src.dependencies import AuthContext

logger = logging.getLogger("tracklink.identity")


class SupabaseIdentity:
    """Calls the Supabase Auth ``GET /auth/v1/user`` endpoint.

    A session is valid exactly when Supabase returns 200 with a user id.
    Transport failures propagate; they are not an authentication verdict.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        s = settings or get_settings()
        self._user_url = f"{s.supabase_url.rstrip('/')}/auth/v1/user"
        self._api_key = s.supabase_service_role_key
        self._http_client = http_client

    async def get_user(self, access_token: str) -> AuthContext | None:
        """Return the session's user, or None if Supabase rejects the token."""
        headers = {
            "Authorization": f"Bearer {access_token}",
            "apikey": self._api_key,
        }
        if self._http_client:
            response = await self._http_client.get(self._user_url, headers=headers)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.get(self._user_url, headers=headers)

        if response.status_code != 200:
            logger.info("Session rejected by Supabase Auth (status %s)", response.status_code)
            return None

        data = response.json()
        try:
            user_id = uuid.UUID(str(data.get("id")))
        except ValueError:
            logger.warning("Supabase Auth returned a user without a valid id")
            return None

        return AuthContext(
            user_id=user_id,
            email=data.get("email"),
            role=data.get("role"),
        )
