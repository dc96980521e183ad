"""OAuth wearable providers for Tracklink.

Each provider implements the OAuthProvider ABC and handles:
- Exchanging an authorization code for access + refresh tokens
- Refreshing an expired access token
- Reading a minimal profile used as device metadata

Available providers:
    FitbitProvider — Fitbit Web API (OAuth2, Basic client auth)
    OuraProvider   — Oura API v2 (OAuth2, credentials in body)
"""

from __future__ import annotations

import httpx

from src.config import Settings
from src.errors import UnknownProviderError
from src.providers.base import OAuthProvider, ProfileInfo, TokenSet
from src.providers.fitbit import FitbitProvider
from src.providers.oura import OuraProvider

__all__ = [
    "OAuthProvider",
    "ProfileInfo",
    "TokenSet",
    "FitbitProvider",
    "OuraProvider",
    "ProviderRegistry",
    "build_providers",
]

# Registry: source_id → provider class
PROVIDER_CLASSES: dict[str, type[OAuthProvider]] = {
    "fitbit": FitbitProvider,
    "oura": OuraProvider,
}


class ProviderRegistry:
    """Configured provider instances keyed by slug."""

    def __init__(self, providers: dict[str, OAuthProvider]) -> None:
        self._providers = dict(providers)

    def get(self, slug: str) -> OAuthProvider:
        """Return the provider for a slug.

        Raises:
            UnknownProviderError: If the slug is not registered.
        """
        provider = self._providers.get(slug)
        if provider is None:
            raise UnknownProviderError()
        return provider

    def __contains__(self, slug: object) -> bool:
        return slug in self._providers

    def __iter__(self):
        return iter(self._providers)


def build_providers(
    settings: Settings, http_client: httpx.AsyncClient | None = None
) -> ProviderRegistry:
    """Instantiate every registered provider with credentials from settings."""
    return ProviderRegistry(
        {
            slug: cls(
                client_id=getattr(settings, f"{slug}_client_id"),
                client_secret=getattr(settings, f"{slug}_client_secret"),
                redirect_uri=getattr(settings, f"{slug}_redirect_uri"),
                http_client=http_client,
            )
            for slug, cls in PROVIDER_CLASSES.items()
        }
    )
