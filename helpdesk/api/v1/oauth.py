from fastapi import APIRouter, Depends
from typing import Optional

from ..deps import get_oauth_handlers, get_store, resolve_provider
from ...integrations.base import UpstreamError
from ...integrations.oauth_handlers import OAuthHandlers
from ...integrations.providers import IntegrationProvider
from ...services.integration_store import IntegrationStore

router = APIRouter()


@router.post("/{provider}/start")
async def start_oauth(
    provider: IntegrationProvider = Depends(resolve_provider),
    oauth_handler: OAuthHandlers = Depends(get_oauth_handlers)
):
    """Get the provider authorization URL and its CSRF state"""

    handshake = await oauth_handler.start_handshake(provider)

    return {
        "success": True,
        "authorizeUrl": handshake["authorize_url"],
        "state": handshake["state"],
    }


@router.get("/{provider}/callback")
async def oauth_callback(
    provider: IntegrationProvider = Depends(resolve_provider),
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    oauth_handler: OAuthHandlers = Depends(get_oauth_handlers),
    store: IntegrationStore = Depends(get_store)
):
    """Handle the provider redirect and finish the handshake"""

    if error:
        # Provider refused the authorization; pass its message through
        raise UpstreamError(error_description or error, provider.value)

    await oauth_handler.complete_handshake(provider, code, state)
    record = await store.get(provider)

    return {
        "success": True,
        "provider": record.provider,
        "status": record.status,
        "mode": record.mode,
        "masked_token": record.masked_token,
        "message": "OAuth flow completed",
    }


@router.post("/{provider}/refresh")
async def refresh_oauth_token(
    provider: IntegrationProvider = Depends(resolve_provider),
    oauth_handler: OAuthHandlers = Depends(get_oauth_handlers),
    store: IntegrationStore = Depends(get_store)
):
    """Exchange the stored refresh token for a new access token"""

    await oauth_handler.refresh_tokens(provider)
    record = await store.get(provider)

    return {
        "success": True,
        "provider": record.provider,
        "status": record.status,
        "masked_token": record.masked_token,
        "token_expiry": record.token_expiry.isoformat() if record.token_expiry else None,
    }
