"""OAuth callback endpoints: one per provider, one shared flow."""

from __future__ import annotations

from fastapi import APIRouter

from src.dependencies import Connections, CurrentUser, Providers
from src.models.base import SuccessBody
from src.models.connections import OAuthCallbackRequest
from src.services.linking import link_connection

router = APIRouter(prefix="/oauth", tags=["oauth"])


@router.post("/{provider}/callback", response_model=SuccessBody)
async def oauth_callback(
    provider: str,
    body: OAuthCallbackRequest,
    user: CurrentUser,
    providers: Providers,
    store: Connections,
) -> SuccessBody:
    """Exchange an authorization code and link the provider to the caller."""
    await link_connection(
        store,
        providers.get(provider),
        user.user_id,
        body.code,
        state=body.state,
    )
    return SuccessBody(success=True)
